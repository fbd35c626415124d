"""Typed views over raw record-store values."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models import (
    COMPLAINT_PRIORITIES,
    COMPLAINT_STATUSES,
    DEFAULT_PRIORITY,
    DEFAULT_ROLE,
    DEFAULT_STATUS,
    USER_ROLES,
)

COMPLAINT_REQUIRED = ("user_id", "title", "description", "category", "location")


class SnapshotError(ValueError):
    """Raised when a stored value lacks required fields or holds invalid enums."""


def _text(data: Mapping[str, Any], field: str) -> str:
    value = data.get(field)
    if value is None or not str(value).strip():
        raise SnapshotError(f"Missing required field: {field}")
    return str(value)


def _optional(data: Mapping[str, Any], field: str) -> Optional[str]:
    value = data.get(field)
    return None if value is None else str(value)


def _choice(data: Mapping[str, Any], field: str, allowed: Iterable[str], default: str) -> str:
    value = data.get(field)
    if value is None or value == "":
        return default
    if value not in allowed:
        raise SnapshotError(f"Invalid {field}: {value}")
    return value


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class ComplaintSnapshot:
    id: str
    user_id: str
    title: str
    description: str
    category: str
    location: str
    priority: str = DEFAULT_PRIORITY
    status: str = DEFAULT_STATUS
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    file_url: Optional[str] = None
    storage_path: Optional[str] = None
    inline_image: Optional[str] = None
    admin_notes: Optional[str] = None
    assigned_to: Optional[str] = None
    provider: Optional[str] = None

    @property
    def media_pending(self) -> bool:
        return self.file_url is None and self.storage_path is not None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["created_at"] = _isoformat(self.created_at)
        payload["updated_at"] = _isoformat(self.updated_at)
        return payload


@dataclass(frozen=True)
class UserSnapshot:
    id: str
    email: Optional[str]
    display_name: str = ""
    photo_url: str = ""
    provider: str = "google"
    role: str = DEFAULT_ROLE
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    admin_set_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for key in ("created_at", "last_login", "updated_at", "admin_set_at"):
            payload[key] = _isoformat(getattr(self, key))
        return payload


def parse_complaint(key: str, data: Mapping[str, Any]) -> ComplaintSnapshot:
    if not key:
        raise SnapshotError("Missing complaint key")
    if not isinstance(data, Mapping):
        raise SnapshotError("Complaint value must be a mapping")
    return ComplaintSnapshot(
        id=key,
        **{field: _text(data, field) for field in COMPLAINT_REQUIRED},
        priority=_choice(data, "priority", COMPLAINT_PRIORITIES, DEFAULT_PRIORITY),
        status=_choice(data, "status", COMPLAINT_STATUSES, DEFAULT_STATUS),
        created_at=data.get("created_at"),
        updated_at=data.get("updated_at"),
        file_url=_optional(data, "file_url"),
        storage_path=_optional(data, "storage_path"),
        inline_image=_optional(data, "inline_image"),
        admin_notes=_optional(data, "admin_notes"),
        assigned_to=_optional(data, "assigned_to"),
        provider=_optional(data, "provider"),
    )


def parse_user(key: str, data: Mapping[str, Any]) -> UserSnapshot:
    if not key:
        raise SnapshotError("Missing user key")
    if not isinstance(data, Mapping):
        raise SnapshotError("User value must be a mapping")
    return UserSnapshot(
        id=key,
        email=_optional(data, "email"),
        display_name=data.get("display_name") or "",
        photo_url=data.get("photo_url") or "",
        provider=data.get("provider") or "google",
        role=_choice(data, "role", USER_ROLES, DEFAULT_ROLE),
        created_at=data.get("created_at"),
        last_login=data.get("last_login"),
        updated_at=data.get("updated_at"),
        admin_set_at=data.get("admin_set_at"),
    )


def parse_complaints(snapshot: Mapping[str, Any], on_invalid=None) -> List[ComplaintSnapshot]:
    """Parse a collection snapshot, newest first. Invalid entries go to ``on_invalid``."""
    complaints: List[ComplaintSnapshot] = []
    for key, data in (snapshot or {}).items():
        try:
            complaints.append(parse_complaint(key, data))
        except SnapshotError as exc:
            if on_invalid:
                on_invalid(key, exc)
    complaints.sort(key=lambda c: c.created_at or datetime.min, reverse=True)
    return complaints


def parse_users(snapshot: Mapping[str, Any], on_invalid=None) -> List[UserSnapshot]:
    users: List[UserSnapshot] = []
    for key, data in (snapshot or {}).items():
        try:
            users.append(parse_user(key, data))
        except SnapshotError as exc:
            if on_invalid:
                on_invalid(key, exc)
    return users
