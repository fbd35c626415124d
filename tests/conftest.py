import io

import pytest
from PIL import Image

from app import create_app
from extensions import db
from utils.identity import Identity
from utils.object_storage import ObjectStorageError
from utils.services import get_services

CLIENT_ID = "test-client-id"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeHttp:
    """Stands in for ``requests`` on the tokeninfo and CDN upload calls."""

    def __init__(self):
        self.tokens = {}
        self.posts = []
        self.post_response = FakeResponse(
            200, {"secure_url": "https://cdn.test/complaints/photo.jpg", "public_id": "complaints/photo"}
        )

    def register(self, token, sub, email, name="", picture="", aud=CLIENT_ID):
        self.tokens[token] = {
            "aud": aud,
            "iss": "https://accounts.google.com",
            "sub": sub,
            "email": email,
            "name": name,
            "picture": picture,
        }

    def get(self, url, params=None, timeout=None):
        claims = self.tokens.get((params or {}).get("id_token"))
        if claims is None:
            return FakeResponse(400, {"error": "invalid_token"}, text="invalid_token")
        return FakeResponse(200, claims)

    def post(self, url, data=None, files=None, timeout=None):
        self.posts.append({"url": url, "data": dict(data or {}), "files": files, "timeout": timeout})
        return self.post_response


class FakeObjectStorage:
    def __init__(self):
        self.objects = {}
        self.puts = []

    def put(self, path, data, content_type):
        self.puts.append((path, content_type))
        self.objects[path] = data

    def resolve_url(self, path):
        if path not in self.objects:
            raise ObjectStorageError(f"No object at {path}")
        return f"https://storage.test/{path}"


def jpeg_bytes(width, height, color=(200, 40, 40)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def storage():
    return FakeObjectStorage()


@pytest.fixture
def config_overrides(tmp_path):
    return {
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'complaints.db'}",
        "LOG_DIR": str(tmp_path / "logs"),
        "MEDIA_STORAGE_ROOT": str(tmp_path / "media"),
        "MEDIA_PROVIDER": "storage",
    }


@pytest.fixture
def app(config_overrides, storage, http):
    app = create_app("testing", overrides=config_overrides, storage=storage, http=http)
    yield app
    with app.app_context():
        get_services().submitter.shutdown(wait=True)
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def services(ctx, app):
    return get_services()


def make_user(store, user_id, email=None, role="user"):
    store.set(
        f"users/{user_id}",
        {
            "email": email or f"{user_id}@example.com",
            "display_name": user_id.title(),
            "photo_url": "",
            "provider": "google",
            "role": role,
        },
    )
    return Identity(id=user_id, email=email or f"{user_id}@example.com", display_name=user_id.title())


@pytest.fixture
def citizen(services):
    return make_user(services.store, "citizen")


@pytest.fixture
def admin(services):
    return make_user(services.store, "officer", role="admin")


def sign_in(client, http, sub, email=None):
    token = f"token-{sub}"
    http.register(token, sub, email or f"{sub}@example.com", name=sub.title())
    return client.post("/auth/session", json={"id_token": token})
