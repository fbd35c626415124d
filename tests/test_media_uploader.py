import pytest

from conftest import FakeHttp, FakeObjectStorage, FakeResponse
from utils.media_uploader import (
    PROVIDER_CDN,
    PROVIDER_STORAGE,
    MediaConfig,
    MediaFile,
    MediaUploader,
    UploadError,
    plan_storage_path,
)
from utils.object_storage import LocalObjectStorage, ObjectStorageError

PHOTO = MediaFile("pothole.jpg", "image/jpeg", b"\xff\xd8jpeg-bytes")


def cdn_config(**kwargs):
    values = {"provider": PROVIDER_CDN, "cloud_name": "demo", "upload_preset": "unsigned", "folder": "complaints"}
    values.update(kwargs)
    return MediaConfig(**values)


def test_planned_path_layout():
    assert plan_storage_path("u1", PHOTO, clock=lambda: 1700) == "complaints/u1/1700.jpg"


def test_extension_defaults_to_bin():
    media = MediaFile("README", "application/octet-stream", b"x")
    assert plan_storage_path("u1", media, clock=lambda: 5) == "complaints/u1/5.bin"


def test_storage_upload_reuses_planned_path():
    storage = FakeObjectStorage()
    uploader = MediaUploader(MediaConfig(provider=PROVIDER_STORAGE), storage=storage)

    result = uploader.upload(PHOTO, "u1", "c1", planned_path="complaints/u1/42.jpg")

    assert storage.puts == [("complaints/u1/42.jpg", "image/jpeg")]
    assert result.reference == "complaints/u1/42.jpg"
    assert result.url == "https://storage.test/complaints/u1/42.jpg"
    assert result.provider == PROVIDER_STORAGE


def test_storage_upload_plans_path_when_none_given():
    storage = FakeObjectStorage()
    result = MediaUploader(MediaConfig(), storage=storage).upload(PHOTO, "u1", "c1")

    assert result.reference.startswith("complaints/u1/")
    assert result.reference.endswith(".jpg")


def test_storage_failure_becomes_upload_error():
    class BrokenStorage(FakeObjectStorage):
        def put(self, path, data, content_type):
            raise OSError("disk full")

    with pytest.raises(UploadError) as info:
        MediaUploader(MediaConfig(), storage=BrokenStorage()).upload(PHOTO, "u1", "c1")
    assert isinstance(info.value.__cause__, OSError)


def test_cdn_upload_posts_folder_and_context():
    http = FakeHttp()
    result = MediaUploader(cdn_config(), http=http).upload(PHOTO, "u1", "c1")

    call = http.posts[0]
    assert call["url"] == "https://api.cloudinary.com/v1_1/demo/auto/upload"
    assert call["data"] == {"upload_preset": "unsigned", "folder": "complaints/u1", "context": "complaintId=c1"}
    assert call["files"]["file"][0] == "pothole.jpg"
    assert result.url == "https://cdn.test/complaints/photo.jpg"
    assert result.reference == "complaints/photo"
    assert result.provider == PROVIDER_CDN


def test_cdn_rejection_carries_status_and_body():
    http = FakeHttp()
    http.post_response = FakeResponse(401, {"error": {"message": "Unknown API key"}}, text="Unknown API key")

    with pytest.raises(UploadError) as info:
        MediaUploader(cdn_config(), http=http).upload(PHOTO, "u1", "c1")
    assert info.value.status == 401
    assert "Unknown API key" in info.value.body


def test_cdn_response_without_url_is_rejected():
    http = FakeHttp()
    http.post_response = FakeResponse(200, {"public_id": "x"})

    with pytest.raises(UploadError):
        MediaUploader(cdn_config(), http=http).upload(PHOTO, "u1", "c1")


def test_cdn_requires_cloud_name_and_preset():
    http = FakeHttp()
    with pytest.raises(UploadError):
        MediaUploader(cdn_config(upload_preset=""), http=http).upload(PHOTO, "u1", "c1")
    assert http.posts == []


def test_local_storage_round_trip(tmp_path):
    storage = LocalObjectStorage(str(tmp_path), "/media/")
    storage.put("complaints/u1/1.jpg", b"abc", "image/jpeg")

    assert (tmp_path / "complaints" / "u1" / "1.jpg").read_bytes() == b"abc"
    assert storage.resolve_url("complaints/u1/1.jpg") == "/media/complaints/u1/1.jpg"


def test_local_storage_rejects_escaping_paths(tmp_path):
    storage = LocalObjectStorage(str(tmp_path / "bucket"))
    with pytest.raises(ObjectStorageError):
        storage.put("../outside.jpg", b"x", "image/jpeg")
    with pytest.raises(ObjectStorageError):
        storage.resolve_url("complaints/missing.jpg")
