"""Flask application factory for the complaint reporting service."""
import os
from typing import Any, Mapping, Optional

import click
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFError
from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from extensions import csrf, db, login_manager, migrate
from utils.identity import normalize_email
from utils.logger import init_logging
from utils.security import apply_security_headers
from utils.services import get_services, init_services


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CSRFError)
    def csrf_error(error):
        app.logger.warning("CSRF validation failed", extra={"path": request.path, "reason": error.description})
        return jsonify({"success": False, "error": error.description}), 400

    @app.errorhandler(HTTPException)
    def http_error(error):
        if error.code == 404:
            app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        elif error.code == 403:
            app.logger.warning("403 Forbidden", extra={"path": request.path, "method": request.method})
        return jsonify({"success": False, "error": error.description}), error.code

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        db.session.rollback()
        return jsonify({"success": False, "error": "Internal server error"}), 500


def ensure_default_admin(app: Flask) -> None:
    """Promote DEFAULT_ADMIN_EMAIL to admin once that user has signed in at least once."""
    admin_email = normalize_email(app.config.get("DEFAULT_ADMIN_EMAIL") or "")
    if not admin_email:
        return
    result = get_services().users.set_admin_by_email_or_id(admin_email, is_email=True)
    if result.success:
        app.logger.info("Default admin ensured", extra={"user_id": result.value.id})
    else:
        app.logger.info("Default admin not yet signed in", extra={"email": admin_email})


def ensure_database_exists(database_uri: str) -> None:
    """Create the target database if it does not exist (PostgreSQL + SQLite support)."""
    url = make_url(database_uri)

    if url.drivername.startswith("sqlite"):
        if url.database and url.database != ":memory:":
            os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        return

    if url.drivername.startswith("postgres"):
        db_name = url.database
        admin_url = url.set(database=os.getenv("POSTGRES_DB_ADMIN", "postgres"))
        engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")
        try:
            with engine.connect() as conn:
                exists = conn.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": db_name}
                ).scalar()
                if not exists:
                    conn.execute(text(f'CREATE DATABASE "{db_name}"'))
        except OperationalError:
            # Startup fails loudly later if the server is really unreachable.
            pass
        finally:
            engine.dispose()


def register_cli(app: Flask) -> None:
    @app.cli.command("set-admin")
    @click.argument("identifier")
    @click.option("--id", "by_id", is_flag=True, help="Treat IDENTIFIER as a user id instead of an email.")
    def set_admin(identifier, by_id):
        """Grant the admin role to a user who has signed in before."""
        result = get_services().users.set_admin_by_email_or_id(identifier, is_email=not by_id)
        if not result.success:
            raise click.ClickException(result.message)
        user = result.value
        click.echo(f"User {user.email or user.id} has been set as admin")


def create_app(config_name: Optional[str] = None, overrides: Optional[Mapping[str, Any]] = None, **service_options) -> Flask:
    """Application factory with environment-aware configuration.

    ``service_options`` (``storage``, ``http``) are passed to ``init_services``.
    """
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())
    if overrides:
        app.config.update(overrides)

    ensure_database_exists(app.config["SQLALCHEMY_DATABASE_URI"])
    os.makedirs(app.instance_path, exist_ok=True)
    if app.config.get("MEDIA_PROVIDER") == "storage" and app.config.get("STORAGE_BACKEND") == "local":
        os.makedirs(app.config["MEDIA_STORAGE_ROOT"], exist_ok=True)

    logger = init_logging(app)
    app.logger = logger

    csrf.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        from models import User  # Local import to avoid circular dependency

        if not user_id:
            return None
        return db.session.get(User, str(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "error": "You must be logged in"}), 401

    from routes import admin_bp, auth_bp, complaints_bp, main_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(complaints_bp)
    app.register_blueprint(admin_bp)

    register_error_handlers(app)
    register_cli(app)
    init_services(app, **service_options)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    with app.app_context():
        db.create_all()
        ensure_default_admin(app)

    return app
