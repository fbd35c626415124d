"""JSON envelopes for Result values."""
from flask import jsonify

from utils.identity import current_identity
from utils.result import ErrorKind

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORE: 500,
    ErrorKind.UPLOAD: 502,
}


def error_response(err):
    status = STATUS_BY_KIND.get(err.kind, 500)
    if err.kind is ErrorKind.AUTHORIZATION and current_identity() is None:
        status = 401
    return jsonify({"success": False, "error": err.message, "kind": err.kind.value}), status


def form_error_response(form, message: str = "Invalid request"):
    return jsonify({"success": False, "error": message, "kind": ErrorKind.VALIDATION.value, "fields": form.errors}), 400
