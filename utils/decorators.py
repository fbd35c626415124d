"""Role gate for admin-only views."""
from functools import wraps

from flask import abort, current_app, request
from flask_login import login_required

from utils.complaint_service import ADMIN_ONLY, record_audit
from utils.identity import current_identity
from utils.services import get_services


def roles_required(*roles):
    """Allow the view only for signed-in users whose stored role is in ``roles``."""
    allowed = frozenset(r.lower() for r in roles)

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapped(*args, **kwargs):
            identity = current_identity()
            role = get_services().users.get_user_role(identity)
            if role in allowed:
                return view_func(*args, **kwargs)

            current_app.logger.warning(
                "Role check failed",
                extra={"user_id": identity.id, "role": role, "path": request.path},
            )
            record_audit("UNAUTHORIZED_ACCESS", identity.id, request.path[:120])
            abort(403, description=ADMIN_ONLY)

        return wrapped

    return decorator
