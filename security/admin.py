import hmac
from functools import wraps

from flask import current_app, jsonify, request


def _bearer_token():
    header = (request.headers.get("Authorization") or "").strip()
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


def require_admin(fn):
    """
    Usage: @require_admin
    Static bearer token from ADMIN_API_TOKEN; no token configured means no admin access.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify(error="Authentication required"), 401

        expected = current_app.config.get("ADMIN_API_TOKEN")
        if not expected or not hmac.compare_digest(token, expected):
            return jsonify(error="Forbidden"), 403

        return fn(*args, **kwargs)
    return wrapper
