"""Administrator triage and role management blueprint."""
from flask import Blueprint, current_app, jsonify, request
from flask_wtf import FlaskForm
from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from models import COMPLAINT_STATUSES, USER_ROLES
from routes.responses import error_response, form_error_response
from utils.decorators import roles_required
from utils.identity import current_identity
from utils.services import get_services

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


class StatusUpdateForm(FlaskForm):
    status = SelectField("Status", choices=[(s, s) for s in COMPLAINT_STATUSES], validators=[DataRequired()])
    admin_notes = TextAreaField("Admin notes", validators=[Optional(), Length(max=3000)])
    assigned_to = StringField("Assigned to", validators=[Optional(), Length(max=255)])


class RoleForm(FlaskForm):
    role = SelectField("Role", choices=[(r, r) for r in USER_ROLES], validators=[DataRequired()])


@admin_bp.route("/complaints", methods=["GET"])
@roles_required("admin")
def all_complaints():
    status_filter = request.args.get("status") or None
    result = get_services().complaints.list_all_complaints(current_identity(), status=status_filter)
    if not result.success:
        return error_response(result)
    return jsonify({"success": True, "complaints": [c.to_dict() for c in result.value]})


@admin_bp.route("/complaints/<string:complaint_id>", methods=["PATCH"])
@roles_required("admin")
def update_status(complaint_id):
    form = StatusUpdateForm()
    if not form.validate_on_submit():
        return form_error_response(form, "Invalid status update")
    result = get_services().complaints.update_complaint_status(
        current_identity(),
        complaint_id,
        form.status.data,
        admin_notes=(form.admin_notes.data or "").strip() or None,
        assigned_to=(form.assigned_to.data or "").strip() or None,
    )
    if not result.success:
        return error_response(result)
    current_app.logger.info(
        "Complaint status updated",
        extra={"complaint_id": complaint_id, "status": form.status.data},
    )
    return jsonify(
        {
            "success": True,
            "message": "Complaint status updated successfully",
            "complaint": result.value.to_dict(),
        }
    )


@admin_bp.route("/complaints/<string:complaint_id>", methods=["DELETE"])
@roles_required("admin")
def delete_complaint(complaint_id):
    result = get_services().complaints.delete_complaint(current_identity(), complaint_id)
    if not result.success:
        return error_response(result)
    return jsonify({"success": True, "message": "Complaint deleted successfully"})


@admin_bp.route("/users", methods=["GET"])
@roles_required("admin")
def all_users():
    result = get_services().users.list_users(current_identity())
    if not result.success:
        return error_response(result)
    return jsonify({"success": True, "users": [u.to_dict() for u in result.value]})


@admin_bp.route("/users/<string:user_id>/role", methods=["PUT"])
@roles_required("admin")
def set_role(user_id):
    form = RoleForm()
    if not form.validate_on_submit():
        return form_error_response(form, "Invalid role. Must be 'admin' or 'user'")
    result = get_services().users.set_user_role(current_identity(), user_id, form.role.data)
    if not result.success:
        return error_response(result)
    return jsonify(
        {
            "success": True,
            "message": f"User role updated to {form.role.data}",
            "user": result.value.to_dict(),
        }
    )
