"""Identity provider adapter and Flask-Login session helpers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import requests
from flask_login import current_user, login_user, logout_user, user_logged_in, user_logged_out

from extensions import db
from models import DEFAULT_ROLE, User, utcnow
from utils.record_store import RecordStore, StoreError
from utils.result import Ok, Result, authorization_error, store_error

logger = logging.getLogger(__name__)

VALID_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


def normalize_email(email: Optional[str]) -> Optional[str]:
    return email.strip().lower() if email else email


class IdentityError(Exception):
    """Raised when the identity provider rejects or cannot verify a token."""


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None
    display_name: str = ""
    avatar_url: str = ""

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(
            id=str(user.id),
            email=user.email,
            display_name=user.display_name or "",
            avatar_url=user.photo_url or "",
        )


class GoogleIdentityProvider:
    """Verifies Google ID tokens issued to the browser sign-in popup."""

    name = "google"

    def __init__(self, client_id: str, tokeninfo_url: str, timeout: int = 10, http=None) -> None:
        self.client_id = client_id
        self.tokeninfo_url = tokeninfo_url
        self.timeout = timeout
        self.http = http or requests

    def verify(self, id_token: str) -> Identity:
        if not id_token:
            raise IdentityError("Missing ID token")
        if not self.client_id:
            raise IdentityError("GOOGLE_CLIENT_ID is not configured")
        try:
            response = self.http.get(self.tokeninfo_url, params={"id_token": id_token}, timeout=self.timeout)
        except requests.RequestException as exc:
            raise IdentityError("Identity provider unreachable") from exc
        if response.status_code != 200:
            raise IdentityError(f"Token rejected by identity provider ({response.status_code})")
        try:
            claims = response.json()
        except ValueError as exc:
            raise IdentityError("Identity provider returned non-JSON output") from exc

        if claims.get("aud") != self.client_id:
            raise IdentityError("Token audience mismatch")
        if claims.get("iss") not in VALID_ISSUERS:
            raise IdentityError("Token issuer not trusted")
        subject = claims.get("sub")
        if not subject:
            raise IdentityError("Token has no subject")
        return Identity(
            id=str(subject),
            email=normalize_email(claims.get("email")),
            display_name=claims.get("name") or "",
            avatar_url=claims.get("picture") or "",
        )


def current_identity() -> Optional[Identity]:
    if current_user and current_user.is_authenticated:
        return Identity.from_user(current_user)
    return None


def record_sign_in(store: RecordStore, identity: Identity, provider: str = "google") -> None:
    """Create the user record on first sign-in, refresh login time and profile afterwards."""
    path = f"users/{identity.id}"
    existing = store.get(path)
    now = utcnow()
    if existing is None:
        store.set(
            path,
            {
                "email": normalize_email(identity.email),
                "display_name": identity.display_name or "",
                "photo_url": identity.avatar_url or "",
                "provider": provider,
                "role": DEFAULT_ROLE,
                "created_at": now,
                "last_login": now,
            },
        )
        logger.info("New user created", extra={"user_id": identity.id})
        return
    store.update(
        path,
        {
            "last_login": now,
            "email": normalize_email(identity.email),
            "display_name": identity.display_name or existing.get("display_name") or "",
            "photo_url": identity.avatar_url or existing.get("photo_url") or "",
        },
    )
    logger.info("User login time updated", extra={"user_id": identity.id})


def sign_in(provider: GoogleIdentityProvider, store: RecordStore, id_token: str) -> Result:
    try:
        identity = provider.verify(id_token)
    except IdentityError as exc:
        logger.warning("Sign-in rejected", extra={"error": str(exc)})
        return authorization_error(f"Sign in failed: {exc}")
    try:
        record_sign_in(store, identity, provider.name)
    except StoreError as exc:
        logger.error("Saving user on sign-in failed", extra={"user_id": identity.id, "error": str(exc)})
        return store_error(str(exc))
    user = db.session.get(User, identity.id)
    login_user(user, remember=True)
    return Ok(identity)


def sign_out() -> Result:
    logout_user()
    return Ok(None)


def on_identity_change(callback: Callable[[Optional[Identity]], None], app=None) -> Callable[[], None]:
    """Call ``callback`` with the new identity on login and ``None`` on logout."""

    def _logged_in(sender, user, **extra):
        callback(Identity.from_user(user))

    def _logged_out(sender, user, **extra):
        callback(None)

    if app is not None:
        user_logged_in.connect(_logged_in, app, weak=False)
        user_logged_out.connect(_logged_out, app, weak=False)
    else:
        user_logged_in.connect(_logged_in, weak=False)
        user_logged_out.connect(_logged_out, weak=False)

    def unsubscribe() -> None:
        user_logged_in.disconnect(_logged_in)
        user_logged_out.disconnect(_logged_out)

    return unsubscribe
