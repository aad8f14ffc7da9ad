# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, jsonify, request


def require_user(f):
    """
    Establish the acting user for billing operations.

    Sets g.user_id from the X-User-Id header. Authentication is handled
    upstream; this only refuses requests that carry no usable user id.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id", "").strip()
        if not raw:
            return jsonify({"error": "X-User-Id header required"}), 401
        try:
            g.user_id = int(raw)
        except ValueError:
            return jsonify({"error": "X-User-Id must be an integer"}), 401
        return f(*args, **kwargs)

    return decorated_function
