# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/frosty/routes/auth.py
"""
Authentication API routes

- Self-registration creates an unapproved staff account
- Login issues an opaque session token, set as an HttpOnly cookie and also
  returned in the body for clients that send it as a Bearer header
- Unapproved accounts cannot log in until an admin approves them
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import FrostyError, error_response
from ..services import approval_service
from ..services import auth_service
from ..services import session_service
from ..decorators import get_request_token, require_auth
from frosty.time_utils import to_utc_z
from frosty.validation import parse_string, require_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api")


def _set_session_cookie(response, token: str):
    response.set_cookie(
        current_app.config["AUTH_COOKIE_NAME"],
        token,
        max_age=int(session_service.session_lifetime().total_seconds()),
        httponly=True,
        secure=current_app.config["AUTH_COOKIE_SECURE"],
        samesite="Lax",
    )
    return response


@auth_bp.post("/register")
def register_route():
    """
    Self-registration.

    The new account is staff and unapproved; a role in the body is ignored.
    """
    try:
        data = request.get_json(silent=True)
        user = approval_service.register_user(data, actor=None)
        return jsonify({
            "user": user.to_dict(),
            "message": "Registration successful. Your account is pending approval by an administrator.",
        }), 201
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    401 for unknown user, wrong password, or an account awaiting approval;
    the message tells the last case apart.
    """
    try:
        data = require_object(request.get_json(silent=True))
        username = parse_string("username", data.get("username"))
        password = parse_string("password", data.get("password"), strip=False)

        if not username or not password:
            return jsonify({"error": "username and password required"}), 400

        user = auth_service.authenticate(username, password)

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        response = jsonify({
            "user": user.to_dict(),
            "token": token,
            "expiresAt": to_utc_z(session.expires_at),
            "message": "Login successful",
        })
        return _set_session_cookie(response, token), 200

    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the current session (if any) and clear the cookie."""
    try:
        token = get_request_token()
        if token:
            session_service.revoke_session(token, reason="User logout")

        response = jsonify({"message": "Logout successful"})
        response.delete_cookie(current_app.config["AUTH_COOKIE_NAME"])
        return response, 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/user")
@require_auth
def current_user_route():
    """The logged-in user, without the password hash."""
    return jsonify(g.current_user.to_dict())
