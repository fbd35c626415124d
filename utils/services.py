"""Per-application service wiring, stored on ``app.extensions``."""
from flask import current_app

from utils.complaint_service import ComplaintService, UserService
from utils.identity import GoogleIdentityProvider
from utils.media_uploader import MediaConfig, MediaUploader
from utils.object_storage import build_object_storage
from utils.record_store import RecordStore
from utils.submission import ComplaintSubmitter

EXTENSION_KEY = "complaint_services"


class Services:
    def __init__(self, store, users, complaints, submitter, identity_provider) -> None:
        self.store = store
        self.users = users
        self.complaints = complaints
        self.submitter = submitter
        self.identity_provider = identity_provider


def init_services(app, storage=None, http=None) -> Services:
    """Build the store, uploader and orchestrator from ``app.config``.

    ``storage`` and ``http`` replace the configured bucket and HTTP client.
    """
    media_config = MediaConfig.from_mapping(app.config)
    if storage is None and media_config.uses_object_storage:
        storage = build_object_storage(media_config)
    store = RecordStore()
    users = UserService(store)
    services = Services(
        store=store,
        users=users,
        complaints=ComplaintService(store, users),
        submitter=ComplaintSubmitter(store, MediaUploader(media_config, storage=storage, http=http), media_config, app=app),
        identity_provider=GoogleIdentityProvider(
            app.config.get("GOOGLE_CLIENT_ID", ""),
            app.config.get("GOOGLE_TOKENINFO_URL", "https://oauth2.googleapis.com/tokeninfo"),
            timeout=int(app.config.get("IDENTITY_TIMEOUT", 10)),
            http=http,
        ),
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
