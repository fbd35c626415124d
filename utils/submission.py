"""Complaint submission: fast metadata commit, then best-effort media attach."""
from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from models import COMPLAINT_PRIORITIES, DEFAULT_PRIORITY, DEFAULT_STATUS, utcnow
from utils.identity import Identity
from utils.image_codec import ImageCodecError, encode_inline_preview
from utils.media_uploader import MediaConfig, MediaFile, MediaUploader, UploadError, plan_storage_path
from utils.record_store import RecordStore, StoreError
from utils.result import Ok, Result, authorization_error, store_error, validation_error

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "description", "category", "location")
NOT_LOGGED_IN = "You must be logged in to submit a complaint"
MISSING_FIELDS = "Please fill in all required fields"


@dataclass(frozen=True)
class SubmissionReceipt:
    complaint_id: str
    # Background attach job, exposed for tests and diagnostics only.
    attachment: Optional[Future] = None


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


class ComplaintSubmitter:
    def __init__(
        self,
        store: RecordStore,
        uploader: MediaUploader,
        config: MediaConfig,
        executor: Optional[Executor] = None,
        app=None,
    ) -> None:
        self.store = store
        self.uploader = uploader
        self.config = config
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max(1, config.attach_workers), thread_name_prefix="media-attach"
        )
        self._app = app

    def _validate(self, complaint_input: Mapping[str, Any], media: Optional[MediaFile]) -> Optional[Result]:
        if any(not _clean(complaint_input.get(field)) for field in REQUIRED_FIELDS):
            return validation_error(MISSING_FIELDS)
        priority = complaint_input.get("priority") or DEFAULT_PRIORITY
        if priority not in COMPLAINT_PRIORITIES:
            return validation_error(f"Invalid priority: {priority}")
        if media is not None:
            if not media.data:
                return validation_error("Attached file is empty")
            if len(media.data) > self.config.max_upload_bytes:
                return validation_error("Attached file exceeds size limits")
        return None

    def _inline_preview(self, media: MediaFile) -> Optional[str]:
        cfg = self.config
        try:
            preview = encode_inline_preview(
                media.data,
                max_width=cfg.preview_max_width,
                max_height=cfg.preview_max_height,
                quality=cfg.preview_quality,
                max_bytes=cfg.preview_max_bytes,
            )
        except ImageCodecError as exc:
            logger.warning("Inline preview skipped", extra={"error": str(exc), "file_name": media.filename})
            return None
        return preview.data_url

    def submit(
        self,
        identity: Optional[Identity],
        complaint_input: Mapping[str, Any],
        media: Optional[MediaFile] = None,
    ) -> Result:
        if identity is None:
            return authorization_error(NOT_LOGGED_IN)
        invalid = self._validate(complaint_input, media)
        if invalid is not None:
            return invalid

        planned_path = None
        inline_image = None
        if media is not None:
            if self.config.uses_object_storage:
                planned_path = plan_storage_path(identity.id, media)
            if media.is_image:
                inline_image = self._inline_preview(media)

        now = utcnow()
        record = {
            "user_id": identity.id,
            "title": _clean(complaint_input.get("title")),
            "description": _clean(complaint_input.get("description")),
            "category": _clean(complaint_input.get("category")),
            "location": _clean(complaint_input.get("location")),
            "priority": complaint_input.get("priority") or DEFAULT_PRIORITY,
            "status": DEFAULT_STATUS,
            "created_at": now,
            "updated_at": now,
            "file_url": None,
            "storage_path": planned_path,
            "inline_image": inline_image,
            "admin_notes": None,
            "assigned_to": None,
        }

        try:
            complaint_id = self.store.create("complaints", record)
        except StoreError as exc:
            logger.error("Complaint metadata write failed", extra={"user_id": identity.id, "error": str(exc)})
            return store_error(str(exc) or "Failed to submit complaint. Please try again.")

        logger.info(
            "Complaint submitted",
            extra={"complaint_id": complaint_id, "user_id": identity.id, "has_media": media is not None},
        )

        attachment = None
        if media is not None:
            attachment = self.executor.submit(self._attach, complaint_id, media, identity.id, planned_path)
        return Ok(SubmissionReceipt(complaint_id=complaint_id, attachment=attachment))

    def _attach(self, complaint_id: str, media: MediaFile, user_id: str, planned_path: Optional[str]) -> Optional[str]:
        """Upload and link media; failures are logged and leave the record without media."""
        context = self._app.app_context() if self._app is not None else nullcontext()
        with context:
            try:
                uploaded = self.uploader.upload(media, user_id, complaint_id, planned_path)
                self.store.update(
                    f"complaints/{complaint_id}",
                    {
                        "file_url": uploaded.url,
                        "storage_path": uploaded.reference,
                        "provider": uploaded.provider,
                        "updated_at": utcnow(),
                    },
                )
            except UploadError as exc:
                logger.error(
                    "Media upload failed; complaint kept without media",
                    extra={
                        "complaint_id": complaint_id,
                        "provider": self.uploader.provider,
                        "status": exc.status,
                        "body": (exc.body or "")[:800],
                        "error": str(exc),
                    },
                )
                return None
            except StoreError as exc:
                logger.error(
                    "Media link update failed",
                    extra={"complaint_id": complaint_id, "error": str(exc)},
                )
                return None
            except Exception:
                logger.exception("Unexpected media attach error", extra={"complaint_id": complaint_id})
                return None

        logger.info(
            "Media attached to complaint",
            extra={"complaint_id": complaint_id, "provider": uploaded.provider, "url": uploaded.url},
        )
        return uploaded.url

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
