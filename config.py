"""Environment-aware configuration for the Flask application."""
import os
from datetime import timedelta


class BaseConfig:
    def __init__(self) -> None:
        # Defaults for local dev: SQLite db and a non-empty secret. Override via env for production.
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        db_url = os.getenv("DATABASE_URL")
        # If DATABASE_URL points to a placeholder host (e.g., db_host) or is missing, fall back to SQLite for local dev.
        if db_url and "db_host" not in db_url:
            self.SQLALCHEMY_DATABASE_URI = db_url
            self.SQLALCHEMY_ENGINE_OPTIONS = {
                "pool_size": int(os.getenv("DB_POOL_SIZE", 10)),
                "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 20)),
                "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", 30)),
                "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
            }
        else:
            self.SQLALCHEMY_DATABASE_URI = os.getenv(
                "SQLITE_URL",
                f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'app.db')}",
            )
            self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SESSION_COOKIE_HTTPONLY = True
        self.REMEMBER_COOKIE_HTTPONLY = True
        self.SESSION_COOKIE_SAMESITE = "Lax"
        self.PERMANENT_SESSION_LIFETIME = timedelta(days=30)
        self.REMEMBER_COOKIE_DURATION = timedelta(days=30)
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.WTF_CSRF_TIME_LIMIT = 3600
        self.WTF_CSRF_ENABLED = True
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "")

        # Identity provider (Google ID tokens verified against the tokeninfo endpoint)
        self.GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
        self.GOOGLE_TOKENINFO_URL = os.getenv("GOOGLE_TOKENINFO_URL", "https://oauth2.googleapis.com/tokeninfo")
        self.IDENTITY_TIMEOUT = int(os.getenv("IDENTITY_TIMEOUT", 10))

        # Media attachment: "cloudinary" (CDN upload endpoint) or "storage" (object storage bucket)
        self.MEDIA_PROVIDER = os.getenv("MEDIA_PROVIDER", "storage").lower()
        self.CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
        self.CLOUDINARY_UPLOAD_PRESET = os.getenv("CLOUDINARY_UPLOAD_PRESET", "")
        self.CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "complaints")
        self.CLOUDINARY_UPLOAD_URL = os.getenv(
            "CLOUDINARY_UPLOAD_URL",
            "https://api.cloudinary.com/v1_1/{cloud_name}/auto/upload",
        )
        self.MEDIA_UPLOAD_TIMEOUT = int(os.getenv("MEDIA_UPLOAD_TIMEOUT", 60))
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local").lower()
        self.MEDIA_STORAGE_ROOT = os.getenv(
            "MEDIA_STORAGE_ROOT",
            os.path.join(os.getcwd(), "instance", "media"),
        )
        self.MEDIA_PUBLIC_BASE_URL = os.getenv("MEDIA_PUBLIC_BASE_URL", "/media")
        self.SUPABASE_URL = os.getenv("SUPABASE_URL", "")
        self.SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
        self.SUPABASE_BUCKET = os.getenv("SUPABASE_BUCKET", "complaints")
        self.MEDIA_ATTACH_WORKERS = int(os.getenv("MEDIA_ATTACH_WORKERS", 4))

        self.MAX_MEDIA_UPLOAD_BYTES = int(os.getenv("MAX_MEDIA_UPLOAD_BYTES", 10 * 1024 * 1024))
        self.MAX_CONTENT_LENGTH = int(os.getenv("MAX_REQUEST_BYTES", 16 * 1024 * 1024))

        # Inline preview embedded in the complaint record
        self.INLINE_PREVIEW_MAX_WIDTH = int(os.getenv("INLINE_PREVIEW_MAX_WIDTH", 900))
        self.INLINE_PREVIEW_MAX_HEIGHT = int(os.getenv("INLINE_PREVIEW_MAX_HEIGHT", 900))
        self.INLINE_PREVIEW_QUALITY = float(os.getenv("INLINE_PREVIEW_QUALITY", 0.72))
        self.INLINE_PREVIEW_MAX_BYTES = int(os.getenv("INLINE_PREVIEW_MAX_BYTES", 350_000))


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"
        self.SESSION_COOKIE_SECURE = False
        self.REMEMBER_COOKIE_SECURE = False


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.ENV = "production"
        self.SESSION_COOKIE_SECURE = True
        self.REMEMBER_COOKIE_SECURE = True


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.TESTING = True
        self.DEBUG = False
        self.ENV = "testing"
        self.WTF_CSRF_ENABLED = False
        self.SESSION_COOKIE_SECURE = False
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.GOOGLE_CLIENT_ID = "test-client-id"
        self.LOG_LEVEL = "DEBUG"
