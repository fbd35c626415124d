"""Object storage buckets used by the storage upload strategy."""
import os
from urllib.parse import quote


class ObjectStorageError(Exception):
    """Raised when an object cannot be written or addressed."""


class LocalObjectStorage:
    """Bucket rooted at a directory, served back under ``public_base_url``."""

    def __init__(self, root: str, public_base_url: str = "/media") -> None:
        self.root = os.path.abspath(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _safe_path(self, path: str) -> str:
        abs_path = os.path.abspath(os.path.join(self.root, path))
        if not abs_path.startswith(self.root + os.sep):
            raise ObjectStorageError(f"Object path escapes storage root: {path}")
        return abs_path

    def put(self, path: str, data: bytes, content_type: str) -> None:
        target = self._safe_path(path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)

    def resolve_url(self, path: str) -> str:
        target = self._safe_path(path)
        if not os.path.isfile(target):
            raise ObjectStorageError(f"Object not found: {path}")
        return f"{self.public_base_url}/{quote(path)}"


class SupabaseObjectStorage:
    """Supabase Storage bucket addressed through the service-role client."""

    def __init__(self, client, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_credentials(cls, url: str, key: str, bucket: str) -> "SupabaseObjectStorage":
        from supabase import create_client

        if not url or not key:
            raise ObjectStorageError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the supabase backend")
        return cls(create_client(url, key), bucket)

    def put(self, path: str, data: bytes, content_type: str) -> None:
        self.client.storage.from_(self.bucket).upload(path, data, {"content-type": content_type})

    def resolve_url(self, path: str) -> str:
        return self.client.storage.from_(self.bucket).get_public_url(path)


def build_object_storage(config):
    """Return the bucket named by ``config.storage_backend``."""
    backend = (config.storage_backend or "local").lower()
    if backend == "local":
        return LocalObjectStorage(config.storage_root, config.public_base_url)
    if backend == "supabase":
        return SupabaseObjectStorage.from_credentials(
            config.supabase_url, config.supabase_key, config.supabase_bucket
        )
    raise ObjectStorageError(f"Unsupported storage backend: {backend}")
