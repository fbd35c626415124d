"""Security headers for JSON API responses and served media."""
from flask import request


def apply_security_headers(response, force_https: bool = False):
    """Apply headers suited to an API that only returns JSON and stored media."""
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; img-src 'self' data:; frame-ancestors 'none'")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    if response.mimetype == "application/json":
        response.headers.setdefault("Cache-Control", "no-store")
    elif request.path.startswith("/media/"):
        # Stored complaint media is only served to signed-in users
        response.headers["Cache-Control"] = "private, max-age=3600"
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    return response
