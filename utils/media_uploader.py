"""Media upload to a CDN endpoint or an object storage bucket."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import requests
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

PROVIDER_CDN = "cloudinary"
PROVIDER_STORAGE = "storage"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class UploadError(Exception):
    """Raised when a media transfer fails or the provider is misconfigured."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


@dataclass(frozen=True)
class MediaConfig:
    provider: str = PROVIDER_STORAGE
    cloud_name: str = ""
    upload_preset: str = ""
    folder: str = ""
    upload_url: str = "https://api.cloudinary.com/v1_1/{cloud_name}/auto/upload"
    timeout: int = 60
    storage_backend: str = "local"
    storage_root: str = "instance/media"
    public_base_url: str = "/media"
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_bucket: str = "complaints"
    max_upload_bytes: int = 10 * 1024 * 1024
    preview_max_width: int = 900
    preview_max_height: int = 900
    preview_quality: float = 0.72
    preview_max_bytes: int = 350_000
    attach_workers: int = 4

    @property
    def uses_object_storage(self) -> bool:
        return self.provider == PROVIDER_STORAGE

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "MediaConfig":
        return cls(
            provider=(config.get("MEDIA_PROVIDER") or PROVIDER_STORAGE).lower(),
            cloud_name=config.get("CLOUDINARY_CLOUD_NAME", ""),
            upload_preset=config.get("CLOUDINARY_UPLOAD_PRESET", ""),
            folder=config.get("CLOUDINARY_FOLDER", ""),
            upload_url=config.get("CLOUDINARY_UPLOAD_URL", cls.upload_url),
            timeout=int(config.get("MEDIA_UPLOAD_TIMEOUT", 60)),
            storage_backend=config.get("STORAGE_BACKEND", "local"),
            storage_root=config.get("MEDIA_STORAGE_ROOT", "instance/media"),
            public_base_url=config.get("MEDIA_PUBLIC_BASE_URL", "/media"),
            supabase_url=config.get("SUPABASE_URL", ""),
            supabase_key=config.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            supabase_bucket=config.get("SUPABASE_BUCKET", "complaints"),
            max_upload_bytes=int(config.get("MAX_MEDIA_UPLOAD_BYTES", 10 * 1024 * 1024)),
            preview_max_width=int(config.get("INLINE_PREVIEW_MAX_WIDTH", 900)),
            preview_max_height=int(config.get("INLINE_PREVIEW_MAX_HEIGHT", 900)),
            preview_quality=float(config.get("INLINE_PREVIEW_QUALITY", 0.72)),
            preview_max_bytes=int(config.get("INLINE_PREVIEW_MAX_BYTES", 350_000)),
            attach_workers=int(config.get("MEDIA_ATTACH_WORKERS", 4)),
        )


@dataclass(frozen=True)
class MediaFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def is_image(self) -> bool:
        return (self.content_type or "").startswith("image/")

    @property
    def extension(self) -> str:
        parts = (self.filename or "").rsplit(".", 1)
        ext = secure_filename(parts[1]) if len(parts) == 2 else ""
        return ext or "bin"

    @classmethod
    def from_file_storage(cls, file: FileStorage) -> "MediaFile":
        # Read eagerly: the request stream is gone once the background upload runs.
        return cls(
            filename=file.filename or "",
            content_type=file.mimetype or DEFAULT_CONTENT_TYPE,
            data=file.read(),
        )


@dataclass(frozen=True)
class UploadResult:
    url: str
    reference: str
    provider: str


def plan_storage_path(user_id: str, media: MediaFile, clock: Callable[[], int] = time.time_ns) -> str:
    """Object path for a user's upload; computed once and reused by the deferred upload."""
    return f"complaints/{user_id}/{clock()}.{media.extension}"


class MediaUploader:
    def __init__(self, config: MediaConfig, storage=None, http=None) -> None:
        self.config = config
        self.storage = storage
        self.http = http or requests

    @property
    def provider(self) -> str:
        return self.config.provider

    def upload(
        self,
        media: MediaFile,
        user_id: str,
        target_id: str,
        planned_path: Optional[str] = None,
    ) -> UploadResult:
        try:
            if self.config.provider == PROVIDER_CDN:
                return self._upload_cdn(media, user_id, target_id)
            if self.config.provider == PROVIDER_STORAGE:
                return self._upload_storage(media, user_id, planned_path)
        except UploadError:
            raise
        except Exception as exc:
            raise UploadError(f"{self.config.provider} upload failed: {exc}") from exc
        raise UploadError(f"Unsupported media provider: {self.config.provider}")

    def _upload_cdn(self, media: MediaFile, user_id: str, target_id: str) -> UploadResult:
        cfg = self.config
        if not cfg.cloud_name or not cfg.upload_preset:
            raise UploadError("Cloudinary config missing: set CLOUDINARY_CLOUD_NAME and CLOUDINARY_UPLOAD_PRESET")
        url = cfg.upload_url.format(cloud_name=cfg.cloud_name)
        fields = {"upload_preset": cfg.upload_preset, "context": f"complaintId={target_id}"}
        if cfg.folder:
            fields["folder"] = f"{cfg.folder}/{user_id}"

        started = time.monotonic()
        response = self.http.post(
            url,
            data=fields,
            files={"file": (media.filename or "upload", media.data, media.content_type or DEFAULT_CONTENT_TYPE)},
            timeout=cfg.timeout,
        )
        if not 200 <= response.status_code < 300:
            raise UploadError(
                f"Cloudinary upload failed: {response.status_code} {response.text}",
                status=response.status_code,
                body=response.text,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise UploadError("Cloudinary response not JSON-decodable", status=response.status_code, body=response.text) from exc
        secure_url = body.get("secure_url") if isinstance(body, dict) else None
        public_id = body.get("public_id") if isinstance(body, dict) else None
        if not secure_url or not public_id:
            raise UploadError("Cloudinary response missing secure_url/public_id", status=response.status_code, body=response.text)

        logger.info(
            "Cloudinary upload completed",
            extra={"target_id": target_id, "public_id": public_id, "elapsed_ms": int((time.monotonic() - started) * 1000)},
        )
        return UploadResult(url=secure_url, reference=public_id, provider=PROVIDER_CDN)

    def _upload_storage(self, media: MediaFile, user_id: str, planned_path: Optional[str]) -> UploadResult:
        if self.storage is None:
            raise UploadError("Object storage is not configured")
        path = planned_path or plan_storage_path(user_id, media)
        started = time.monotonic()
        self.storage.put(path, media.data, media.content_type or DEFAULT_CONTENT_TYPE)
        url = self.storage.resolve_url(path)
        logger.info(
            "Object storage upload completed",
            extra={"path": path, "elapsed_ms": int((time.monotonic() - started) * 1000)},
        )
        return UploadResult(url=url, reference=path, provider=PROVIDER_STORAGE)
