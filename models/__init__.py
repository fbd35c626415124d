"""Data models for users, complaints and the audit trail."""
import uuid
from datetime import datetime, timezone

from flask_login import UserMixin

from extensions import db


def generate_uuid() -> str:
	return str(uuid.uuid4())


def utcnow() -> datetime:
	return datetime.now(timezone.utc).replace(tzinfo=None)


COMPLAINT_PRIORITIES: tuple[str, ...] = (
	"low",
	"medium",
	"high",
)

COMPLAINT_STATUSES: tuple[str, ...] = (
	"pending",
	"in_progress",
	"resolved",
	"rejected",
)

USER_ROLES: tuple[str, ...] = (
	"user",
	"admin",
)

MEDIA_PROVIDERS: tuple[str, ...] = (
	"cloudinary",
	"storage",
)

DEFAULT_PRIORITY = "medium"
DEFAULT_STATUS = "pending"
DEFAULT_ROLE = "user"


class User(UserMixin, db.Model):
	__tablename__ = "users"

	# Subject identifier issued by the identity provider
	id = db.Column(db.String(128), primary_key=True)
	email = db.Column(db.String(255), nullable=True, index=True)
	display_name = db.Column(db.String(150), nullable=False, default="")
	photo_url = db.Column(db.String(1024), nullable=False, default="")
	provider = db.Column(db.String(30), nullable=False, default="google")
	role = db.Column(db.String(10), nullable=False, default=DEFAULT_ROLE, index=True)
	created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
	last_login = db.Column(db.DateTime, nullable=True)
	updated_at = db.Column(db.DateTime, nullable=True)
	admin_set_at = db.Column(db.DateTime, nullable=True)

	__table_args__ = (
		db.CheckConstraint("role IN ('user','admin')", name="ck_users_role"),
	)

	complaints = db.relationship("Complaint", back_populates="user", lazy="dynamic")
	audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic")

	@property
	def is_admin(self) -> bool:
		return self.role == "admin"


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	user_id = db.Column(db.String(128), db.ForeignKey("users.id"), nullable=False, index=True)
	title = db.Column(db.String(255), nullable=False)
	description = db.Column(db.Text, nullable=False)
	category = db.Column(db.String(100), nullable=False, index=True)
	location = db.Column(db.String(255), nullable=False)
	priority = db.Column(db.String(10), nullable=False, default=DEFAULT_PRIORITY)
	status = db.Column(db.String(20), nullable=False, default=DEFAULT_STATUS, index=True)
	created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, default=utcnow, nullable=False)
	file_url = db.Column(db.String(2048), nullable=True)
	storage_path = db.Column(db.String(1024), nullable=True)  # object path or CDN public id
	inline_image = db.Column(db.Text, nullable=True)  # data:image/jpeg;base64,...
	admin_notes = db.Column(db.Text, nullable=True)
	assigned_to = db.Column(db.String(255), nullable=True)
	provider = db.Column(db.String(30), nullable=True)

	__table_args__ = (
		db.CheckConstraint("priority IN ('low','medium','high')", name="ck_complaints_priority"),
		db.CheckConstraint(
			"status IN ('pending','in_progress','resolved','rejected')",
			name="ck_complaints_status",
		),
	)

	user = db.relationship("User", back_populates="complaints")


class AuditLog(db.Model):
	__tablename__ = "audit_logs"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(128), db.ForeignKey("users.id"), nullable=True)
	action_type = db.Column(db.String(50), nullable=False)
	ip_address = db.Column(db.String(64), nullable=True)
	user_agent = db.Column(db.String(255), nullable=True)
	context_entity = db.Column(db.String(120), nullable=True)
	timestamp = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

	user = db.relationship("User", back_populates="audit_logs")
