"""Complaint and user operations exposed to routes and CLI commands."""
from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Dict, List, Mapping, Optional

from flask import has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import COMPLAINT_STATUSES, USER_ROLES, AuditLog, utcnow
from utils.identity import Identity, normalize_email
from utils.record_store import RecordStore, StoreError
from utils.result import Ok, Result, authorization_error, not_found, store_error, validation_error
from utils.snapshots import ComplaintSnapshot, UserSnapshot, parse_complaint, parse_complaints, parse_user, parse_users

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("display_name", "photo_url")
ADMIN_ONLY = "Only admins can perform this action"


def surface_store_errors(func):
    """Turn StoreError raised by ``func`` into an Err result."""

    @wraps(func)
    def wrapped(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except StoreError as exc:
            logger.error("Record store failure", extra={"operation": func.__name__, "error": str(exc)})
            return store_error(str(exc))

    return wrapped


def record_audit(action: str, user_id: Optional[str], context: Optional[str] = None) -> None:
    try:
        db.session.add(
            AuditLog(
                user_id=user_id,
                action_type=action,
                ip_address=request.remote_addr if has_request_context() else None,
                user_agent=request.headers.get("User-Agent", "unknown") if has_request_context() else "system",
                context_entity=context,
            )
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Audit log failed", extra={"action": action})


def _log_invalid(key: str, exc: Exception) -> None:
    logger.warning("Skipping malformed record", extra={"key": key, "error": str(exc)})


class UserService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _user(self, user_id: str) -> Optional[UserSnapshot]:
        data = self.store.get(f"users/{user_id}")
        return parse_user(user_id, data) if data is not None else None

    def is_admin(self, identity: Optional[Identity]) -> bool:
        if identity is None:
            return False
        try:
            user = self._user(identity.id)
        except StoreError:
            logger.exception("Error checking admin status", extra={"user_id": identity.id})
            return False
        return bool(user and user.is_admin)

    def require_admin(self, identity: Optional[Identity], action: str) -> Optional[Result]:
        if identity is None:
            return authorization_error("You must be logged in")
        if not self.is_admin(identity):
            logger.warning("Unauthorized role access attempt", extra={"user_id": identity.id, "action": action})
            record_audit("UNAUTHORIZED_ACCESS", identity.id, action)
            return authorization_error(ADMIN_ONLY)
        return None

    def get_user_role(self, identity: Optional[Identity]) -> Optional[str]:
        if identity is None:
            return None
        user = self._user(identity.id)
        return user.role if user else "user"

    @surface_store_errors
    def get_user_data(self, user_id: str) -> Result:
        user = self._user(user_id)
        if user is None:
            return not_found("User not found")
        return Ok(user)

    @surface_store_errors
    def update_user_profile(self, identity: Optional[Identity], user_id: str, updates: Mapping[str, Any]) -> Result:
        if identity is None or identity.id != user_id:
            return authorization_error("Unauthorized: You can only update your own profile")
        if self._user(user_id) is None:
            return not_found("User not found")
        fields = {k: str(v).strip() for k, v in updates.items() if k in PROFILE_FIELDS and v is not None}
        if not fields:
            return validation_error("Nothing to update")
        fields["updated_at"] = utcnow()
        self.store.update(f"users/{user_id}", fields)
        return Ok(self._user(user_id))

    @surface_store_errors
    def list_users(self, identity: Optional[Identity]) -> Result:
        denied = self.require_admin(identity, "list_users")
        if denied:
            return denied
        return Ok(parse_users(self.store.get("users"), on_invalid=_log_invalid))

    def listen_all_users(self, identity: Optional[Identity], callback: Callable[[List[UserSnapshot]], None]) -> Result:
        denied = self.require_admin(identity, "listen_all_users")
        if denied:
            return denied
        return Ok(self.store.subscribe("users", lambda snap: callback(parse_users(snap, on_invalid=_log_invalid))))

    @surface_store_errors
    def set_user_role(self, identity: Optional[Identity], user_id: str, role: str) -> Result:
        denied = self.require_admin(identity, "set_user_role")
        if denied:
            return denied
        if role not in USER_ROLES:
            return validation_error("Invalid role. Must be 'admin' or 'user'")
        if self._user(user_id) is None:
            return not_found("User not found")
        self.store.update(f"users/{user_id}", {"role": role, "updated_at": utcnow()})
        record_audit("ROLE_CHANGED", identity.id, f"{user_id}:{role}")
        logger.info("User role updated", extra={"user_id": user_id, "role": role, "by": identity.id})
        return Ok(self._user(user_id))

    @surface_store_errors
    def set_admin_by_email_or_id(self, identifier: str, is_email: bool = True) -> Result:
        """Promote a user to admin. Operator bootstrap; callers must be trusted."""
        user_id = identifier
        if is_email:
            identifier = normalize_email(identifier)
            matches = self.store.query("users", order_by_child="email", equal_to=identifier)
            if not matches:
                return not_found(f"User with email {identifier} not found in database")
            user_id = next(iter(matches))
        user = self._user(user_id)
        if user is None:
            return not_found(f"User with ID {user_id} not found")
        if user.is_admin:
            return Ok(user)
        now = utcnow()
        self.store.update(f"users/{user_id}", {"role": "admin", "updated_at": now, "admin_set_at": now})
        record_audit("ADMIN_BOOTSTRAP", user_id, identifier)
        return Ok(self._user(user_id))


class ComplaintService:
    def __init__(self, store: RecordStore, users: Optional[UserService] = None) -> None:
        self.store = store
        self.users = users or UserService(store)

    def _complaint(self, complaint_id: str) -> Optional[ComplaintSnapshot]:
        data = self.store.get(f"complaints/{complaint_id}")
        return parse_complaint(complaint_id, data) if data is not None else None

    def _parsed(self, callback: Callable[[List[ComplaintSnapshot]], None]) -> Callable[[Dict], None]:
        return lambda snap: callback(parse_complaints(snap, on_invalid=_log_invalid))

    @surface_store_errors
    def listen_user_complaints(self, identity: Optional[Identity], callback: Callable[[List[ComplaintSnapshot]], None]) -> Result:
        if identity is None:
            return authorization_error("You must be logged in to view complaints")
        unsubscribe = self.store.subscribe(
            "complaints", self._parsed(callback), order_by_child="user_id", equal_to=identity.id
        )
        return Ok(unsubscribe)

    @surface_store_errors
    def list_user_complaints(self, identity: Optional[Identity]) -> Result:
        if identity is None:
            return authorization_error("You must be logged in to view complaints")
        snap = self.store.query("complaints", order_by_child="user_id", equal_to=identity.id)
        return Ok(parse_complaints(snap, on_invalid=_log_invalid))

    @surface_store_errors
    def listen_all_complaints(self, identity: Optional[Identity], callback: Callable[[List[ComplaintSnapshot]], None]) -> Result:
        denied = self.users.require_admin(identity, "listen_all_complaints")
        if denied:
            return denied
        return Ok(self.store.subscribe("complaints", self._parsed(callback)))

    @surface_store_errors
    def list_all_complaints(self, identity: Optional[Identity], status: Optional[str] = None) -> Result:
        denied = self.users.require_admin(identity, "list_all_complaints")
        if denied:
            return denied
        if status:
            if status not in COMPLAINT_STATUSES:
                return validation_error(f"Invalid status: {status}")
            snap = self.store.query("complaints", order_by_child="status", equal_to=status)
        else:
            snap = self.store.get("complaints")
        return Ok(parse_complaints(snap, on_invalid=_log_invalid))

    @surface_store_errors
    def get_complaint_by_id(self, identity: Optional[Identity], complaint_id: str) -> Result:
        if identity is None:
            return authorization_error("You must be logged in to view complaints")
        complaint = self._complaint(complaint_id)
        if complaint is None:
            return not_found("Complaint not found")
        if complaint.user_id != identity.id and not self.users.is_admin(identity):
            return authorization_error("You can only view your own complaints")
        return Ok(complaint)

    @surface_store_errors
    def update_complaint_status(
        self,
        identity: Optional[Identity],
        complaint_id: str,
        status: str,
        admin_notes: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> Result:
        denied = self.users.require_admin(identity, "update_complaint_status")
        if denied:
            return denied
        if status not in COMPLAINT_STATUSES:
            return validation_error(f"Invalid status: {status}")
        if self._complaint(complaint_id) is None:
            return not_found("Complaint not found")
        updates: Dict[str, Any] = {"status": status, "updated_at": utcnow()}
        if admin_notes:
            updates["admin_notes"] = admin_notes
        if assigned_to:
            updates["assigned_to"] = assigned_to
        self.store.update(f"complaints/{complaint_id}", updates)
        record_audit("COMPLAINT_STATUS_CHANGED", identity.id, f"{complaint_id}:{status}")
        return Ok(self._complaint(complaint_id))

    @surface_store_errors
    def delete_complaint(self, identity: Optional[Identity], complaint_id: str) -> Result:
        if identity is None:
            return authorization_error("You must be logged in to delete a complaint")
        complaint = self._complaint(complaint_id)
        if complaint is None:
            return not_found("Complaint not found")
        if complaint.user_id != identity.id and not self.users.is_admin(identity):
            return authorization_error("You can only delete your own complaints")
        self.store.delete(f"complaints/{complaint_id}")
        record_audit("COMPLAINT_DELETED", identity.id, complaint_id)
        return Ok(complaint_id)
