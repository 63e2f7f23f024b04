# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services import session_service


def get_request_token() -> str | None:
    """Session token from the Authorization header, else the session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])


def load_current_user():
    """
    Resolve the session for this request, if any.

    Sets g.current_user (None when anonymous) and g.session_context.
    """
    context = session_service.validate_session(get_request_token())
    g.session_context = context
    g.current_user = context.user if context else None
    return g.current_user


def require_auth(f):
    """
    Require a valid session.

    Sets g.current_user and g.session_context, or returns 401.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if load_current_user() is None:
            return jsonify({"error": "You must be logged in"}), 401
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to be an admin. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = g.get("current_user")
        if user is None:
            return jsonify({"error": "You must be logged in"}), 401
        if not user.is_admin:
            return jsonify({"error": "You must be an administrator to access this resource"}), 403
        return f(*args, **kwargs)

    return decorated_function
