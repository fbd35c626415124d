"""Sign-in session and profile blueprint."""
from flask import Blueprint, current_app, jsonify
from flask_login import login_required
from flask_wtf import FlaskForm
from flask_wtf.csrf import generate_csrf
from wtforms import StringField
from wtforms.validators import DataRequired, Length, Optional, URL

from routes.responses import error_response, form_error_response
from utils.identity import current_identity, sign_in, sign_out
from utils.services import get_services

auth_bp = Blueprint("auth", __name__)


class SessionForm(FlaskForm):
    id_token = StringField("ID token", validators=[DataRequired(), Length(max=8192)])


class ProfileForm(FlaskForm):
    display_name = StringField("Display name", validators=[Optional(), Length(max=150)])
    photo_url = StringField("Photo URL", validators=[Optional(), URL(), Length(max=1024)])


@auth_bp.route("/csrf", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


@auth_bp.route("/session", methods=["POST"])
def create_session():
    form = SessionForm()
    if not form.validate_on_submit():
        return form_error_response(form, "An ID token is required")
    services = get_services()
    result = sign_in(services.identity_provider, services.store, form.id_token.data)
    if not result.success:
        return error_response(result)
    identity = result.value
    role = services.users.get_user_role(identity)
    current_app.logger.info("User signed in", extra={"user_id": identity.id, "role": role})
    return jsonify(
        {
            "success": True,
            "message": "Admin signed in successfully" if role == "admin" else "Successfully signed in",
            "user": {"id": identity.id, "email": identity.email, "display_name": identity.display_name},
            "is_admin": role == "admin",
        }
    )


@auth_bp.route("/session", methods=["DELETE"])
@login_required
def end_session():
    identity = current_identity()
    sign_out()
    current_app.logger.info("User signed out", extra={"user_id": identity.id if identity else None})
    return jsonify({"success": True, "message": "Successfully signed out"})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    identity = current_identity()
    result = get_services().users.get_user_data(identity.id)
    if not result.success:
        return error_response(result)
    return jsonify({"success": True, "user": result.value.to_dict(), "is_admin": result.value.is_admin})


@auth_bp.route("/me", methods=["PATCH"])
@login_required
def update_me():
    form = ProfileForm()
    if not form.validate_on_submit():
        return form_error_response(form, "Invalid profile update")
    identity = current_identity()
    updates = {
        "display_name": form.display_name.data or None,
        "photo_url": form.photo_url.data or None,
    }
    result = get_services().users.update_user_profile(identity, identity.id, updates)
    if not result.success:
        return error_response(result)
    return jsonify({"success": True, "message": "Profile updated successfully", "user": result.value.to_dict()})
