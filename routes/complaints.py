"""Complaint submission and self-service blueprint."""
from flask import Blueprint, current_app, jsonify
from flask_login import login_required
from flask_wtf import FlaskForm
from flask_wtf.file import FileField
from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import Length, Optional

from models import COMPLAINT_PRIORITIES
from routes.responses import error_response, form_error_response
from utils.identity import current_identity
from utils.media_uploader import MediaFile
from utils.services import get_services

complaints_bp = Blueprint("complaints", __name__, url_prefix="/complaints")


class ComplaintForm(FlaskForm):
    # Presence is checked by the submitter so every caller gets the same answer.
    title = StringField("Title", validators=[Optional(), Length(max=255)])
    description = TextAreaField("Description", validators=[Optional(), Length(max=5000)])
    category = StringField("Category", validators=[Optional(), Length(max=100)])
    location = StringField("Location", validators=[Optional(), Length(max=255)])
    priority = SelectField(
        "Priority",
        choices=[("", "Default")] + [(p, p.title()) for p in COMPLAINT_PRIORITIES],
        validators=[Optional()],
        default="",
    )
    file = FileField("Photo or video (optional)")


@complaints_bp.route("/", methods=["POST"])
def submit_complaint():
    form = ComplaintForm()
    if not form.validate_on_submit():
        return form_error_response(form, "Please check the complaint details")

    media = None
    upload = form.file.data
    if upload and upload.filename:
        media = MediaFile.from_file_storage(upload)

    result = get_services().submitter.submit(
        current_identity(),
        {
            "title": form.title.data,
            "description": form.description.data,
            "category": form.category.data,
            "location": form.location.data,
            "priority": form.priority.data or None,
        },
        media,
    )
    if not result.success:
        current_app.logger.warning("Complaint submission rejected", extra={"error": result.message, "kind": result.kind.value})
        return error_response(result)
    return (
        jsonify(
            {
                "success": True,
                "message": "Complaint submitted successfully!",
                "complaint_id": result.value.complaint_id,
                "media_pending": media is not None,
            }
        ),
        201,
    )


@complaints_bp.route("/", methods=["GET"])
@login_required
def list_my_complaints():
    result = get_services().complaints.list_user_complaints(current_identity())
    if not result.success:
        return error_response(result)
    return jsonify({"success": True, "complaints": [c.to_dict() for c in result.value]})


@complaints_bp.route("/<string:complaint_id>", methods=["GET"])
@login_required
def get_complaint(complaint_id):
    result = get_services().complaints.get_complaint_by_id(current_identity(), complaint_id)
    if not result.success:
        return error_response(result)
    return jsonify({"success": True, "complaint": result.value.to_dict()})


@complaints_bp.route("/<string:complaint_id>", methods=["DELETE"])
@login_required
def delete_complaint(complaint_id):
    result = get_services().complaints.delete_complaint(current_identity(), complaint_id)
    if not result.success:
        return error_response(result)
    current_app.logger.info("Complaint deleted", extra={"complaint_id": complaint_id})
    return jsonify({"success": True, "message": "Complaint deleted successfully"})
