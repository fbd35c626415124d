"""Blueprint registration, health check and locally stored media."""
from flask import Blueprint, abort, current_app, jsonify, send_from_directory
from flask_login import login_required

from extensions import db
from routes.responses import error_response
from utils.identity import current_identity
from utils.services import get_services
from .admin import admin_bp
from .auth import auth_bp
from .complaints import complaints_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/health", methods=["GET"])
def health():
    try:
        db.session.execute(db.text("SELECT 1"))
        database = "ok"
    except Exception:
        current_app.logger.exception("Health check database probe failed")
        database = "unavailable"
    return jsonify(
        {
            "status": "ok" if database == "ok" else "degraded",
            "database": database,
            "media_provider": current_app.config.get("MEDIA_PROVIDER"),
        }
    ), (200 if database == "ok" else 503)


@main_bp.route("/media/<path:object_path>", methods=["GET"])
@login_required
def media(object_path):
    if current_app.config.get("MEDIA_PROVIDER") != "storage" or current_app.config.get("STORAGE_BACKEND") != "local":
        abort(404)
    services = get_services()
    holders = services.store.query("complaints", order_by_child="storage_path", equal_to=object_path)
    if not holders:
        abort(404)
    result = services.complaints.get_complaint_by_id(current_identity(), next(iter(holders)))
    if not result.success:
        return error_response(result)
    return send_from_directory(current_app.config["MEDIA_STORAGE_ROOT"], object_path)


__all__ = ["main_bp", "auth_bp", "complaints_bp", "admin_bp"]
