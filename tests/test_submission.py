import base64
import io

import pytest
from PIL import Image

from conftest import FakeHttp, FakeResponse, jpeg_bytes
from utils.identity import Identity
from utils.media_uploader import PROVIDER_CDN, MediaConfig, MediaFile, MediaUploader
from utils.record_store import StoreError
from utils.result import ErrorKind
from utils.submission import MISSING_FIELDS, NOT_LOGGED_IN, ComplaintSubmitter

POTHOLE = {
    "title": "Pothole",
    "description": "Large pothole on Main St",
    "category": "roads",
    "location": "Main St & 5th",
}


class CountingStore:
    """Record store double that only counts writes."""

    def __init__(self):
        self.writes = 0

    def create(self, collection, record):
        self.writes += 1
        return "generated-key"

    def update(self, path, fields):
        self.writes += 1

    def set(self, path, value):
        self.writes += 1


@pytest.fixture
def offline_submitter():
    store = CountingStore()
    submitter = ComplaintSubmitter(store, MediaUploader(MediaConfig()), MediaConfig())
    yield submitter, store
    submitter.shutdown()


def test_submit_without_media_stores_pending_record(services, citizen):
    result = services.submitter.submit(citizen, POTHOLE)

    assert result.success
    receipt = result.value
    assert receipt.complaint_id
    assert receipt.attachment is None
    record = services.store.get(f"complaints/{receipt.complaint_id}")
    assert record["status"] == "pending"
    assert record["priority"] == "medium"
    assert record["file_url"] is None
    assert record["storage_path"] is None
    assert record["user_id"] == citizen.id


def test_submit_with_photo_attaches_media_at_planned_path(services, citizen, storage, monkeypatch):
    created = []
    original_create = services.store.create

    def recording_create(collection, record):
        created.append(dict(record))
        return original_create(collection, record)

    monkeypatch.setattr(services.store, "create", recording_create)
    media = MediaFile("pothole.jpg", "image/jpeg", jpeg_bytes(2000, 1000))

    result = services.submitter.submit(citizen, POTHOLE, media)

    assert result.success
    planned = created[0]["storage_path"]
    assert planned.startswith(f"complaints/{citizen.id}/") and planned.endswith(".jpg")
    assert created[0]["file_url"] is None

    url = result.value.attachment.result(timeout=10)

    assert storage.puts == [(planned, "image/jpeg")]
    record = services.store.get(f"complaints/{result.value.complaint_id}")
    assert record["file_url"] == url == f"https://storage.test/{planned}"
    assert record["storage_path"] == planned
    assert record["provider"] == "storage"


def test_inline_preview_is_bounded_jpeg(services, citizen):
    media = MediaFile("pothole.jpg", "image/jpeg", jpeg_bytes(2000, 1000))

    result = services.submitter.submit(citizen, POTHOLE, media)
    result.value.attachment.result(timeout=10)

    inline = services.store.get(f"complaints/{result.value.complaint_id}")["inline_image"]
    assert inline.startswith("data:image/jpeg;base64,")
    with Image.open(io.BytesIO(base64.b64decode(inline.split(",", 1)[1]))) as img:
        assert img.size == (900, 450)


def test_non_image_media_gets_no_inline_preview(services, citizen):
    media = MediaFile("clip.mp4", "video/mp4", b"\x00\x00\x00\x18ftypmp42")

    result = services.submitter.submit(citizen, POTHOLE, media)
    result.value.attachment.result(timeout=10)

    record = services.store.get(f"complaints/{result.value.complaint_id}")
    assert record["inline_image"] is None
    assert record["storage_path"].endswith(".mp4")


def test_corrupt_image_still_submits(services, citizen):
    media = MediaFile("broken.jpg", "image/jpeg", b"definitely not a jpeg")

    result = services.submitter.submit(citizen, POTHOLE, media)

    assert result.success
    result.value.attachment.result(timeout=10)
    assert services.store.get(f"complaints/{result.value.complaint_id}")["inline_image"] is None


def test_rejected_cdn_upload_leaves_record_without_media(app, services, citizen):
    http = FakeHttp()
    http.post_response = FakeResponse(401, {"error": {"message": "Invalid preset"}}, text="Invalid preset")
    config = MediaConfig(provider=PROVIDER_CDN, cloud_name="demo", upload_preset="unsigned", folder="complaints")
    submitter = ComplaintSubmitter(services.store, MediaUploader(config, http=http), config, app=app)
    try:
        result = submitter.submit(citizen, POTHOLE, MediaFile("pothole.jpg", "image/jpeg", jpeg_bytes(40, 20)))

        assert result.success
        future = result.value.attachment
        assert future.result(timeout=10) is None
        assert future.exception() is None
    finally:
        submitter.shutdown()

    record = services.store.get(f"complaints/{result.value.complaint_id}")
    assert record["file_url"] is None
    assert record["storage_path"] is None
    assert http.posts[0]["data"]["folder"] == f"complaints/{citizen.id}"


def test_anonymous_submit_is_rejected_without_writes(offline_submitter):
    submitter, store = offline_submitter

    result = submitter.submit(None, POTHOLE)

    assert not result.success
    assert result.kind is ErrorKind.AUTHORIZATION
    assert result.message == NOT_LOGGED_IN
    assert store.writes == 0


@pytest.mark.parametrize("field", ["title", "description", "category", "location"])
def test_missing_required_field_is_rejected_without_writes(offline_submitter, field):
    submitter, store = offline_submitter
    complaint = dict(POTHOLE, **{field: "   "})

    result = submitter.submit(object(), complaint)

    assert result.kind is ErrorKind.VALIDATION
    assert result.message == MISSING_FIELDS
    assert store.writes == 0


def test_invalid_priority_and_empty_media_are_rejected(offline_submitter):
    submitter, store = offline_submitter

    assert submitter.submit(object(), dict(POTHOLE, priority="urgent")).kind is ErrorKind.VALIDATION
    assert submitter.submit(object(), POTHOLE, MediaFile("x.jpg", "image/jpeg", b"")).kind is ErrorKind.VALIDATION
    assert store.writes == 0


def test_oversize_media_is_rejected():
    store = CountingStore()
    config = MediaConfig(max_upload_bytes=10)
    submitter = ComplaintSubmitter(store, MediaUploader(config), config)
    try:
        result = submitter.submit(object(), POTHOLE, MediaFile("x.jpg", "image/jpeg", b"x" * 11))
    finally:
        submitter.shutdown()

    assert result.kind is ErrorKind.VALIDATION
    assert store.writes == 0


class BrokenStore(CountingStore):
    def create(self, collection, record):
        raise StoreError("disk full")


def test_metadata_write_failure_is_returned_as_store_error():
    config = MediaConfig()
    submitter = ComplaintSubmitter(BrokenStore(), MediaUploader(config), config)
    try:
        result = submitter.submit(Identity("u1"), POTHOLE, MediaFile("x.jpg", "image/jpeg", jpeg_bytes(8, 8)))
    finally:
        submitter.shutdown()

    assert not result.success
    assert result.kind is ErrorKind.STORE
    assert result.message == "disk full"
