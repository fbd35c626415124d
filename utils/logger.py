"""Rotating file and console logging for the API and background media jobs."""
import logging
import os
from logging.handlers import RotatingFileHandler

# Module loggers used outside Flask's app logger, e.g. by media-attach threads
MODULE_LOGGERS = ("utils",)

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class ContextFormatter(logging.Formatter):
    """Renders ``extra=`` fields as ``key=value`` pairs after the message."""

    def formatMessage(self, record):
        line = super().formatMessage(record)
        context = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and not k.startswith("_")}
        if not context:
            return line
        return line + " | " + " ".join(f"{key}={context[key]!r}" for key in sorted(context))


def _handlers(log_path: str, level: int) -> list:
    formatter = ContextFormatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(module)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    stream_handler = logging.StreamHandler()
    for handler in (file_handler, stream_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return [file_handler, stream_handler]


def init_logging(app) -> logging.Logger:
    log_dir = app.config.get("LOG_DIR") or os.path.join(app.instance_path, "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "app.log")
    level = getattr(logging, (app.config.get("LOG_LEVEL") or "INFO").upper(), logging.INFO)

    handlers = _handlers(log_path, level)
    for name in (app.name, *MODULE_LOGGERS):
        configured = logging.getLogger(name)
        for old in configured.handlers:
            old.close()
        configured.handlers = list(handlers)
        configured.setLevel(level)
    logger = logging.getLogger(app.name)
    logger.propagate = False

    app.logger.handlers = list(handlers)
    app.logger.setLevel(level)

    logger.info("Logging initialized", extra={"path": log_path, "level": logging.getLevelName(level)})
    return logger
