# Overview: Flask API routes for staff accounts and the approval queue.

"""
User administration routes

SECURITY: Everything here is admin-only except POST /api/staff, which is
open so the staff form can double as a sign-up form. An anonymous or
non-admin caller gets an unapproved staff account; an admin gets an
approved account with the requested role.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import load_current_user, require_admin, require_auth
from ..errors import FrostyError, error_response
from ..services import approval_service
from ..services import user_service


users_bp = Blueprint("users", __name__, url_prefix="/api")


@users_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    users = user_service.list_users(g.current_user)
    return jsonify([u.to_dict() for u in users])


@users_bp.get("/users/pending")
@require_auth
@require_admin
def list_pending_route():
    """Accounts awaiting approval, oldest first."""
    users = approval_service.list_pending(g.current_user)
    return jsonify([u.to_dict() for u in users])


@users_bp.patch("/users/<int:user_id>/approve")
@require_auth
@require_admin
def approve_user_route(user_id: int):
    try:
        user = approval_service.approve(user_id, g.current_user)
        return jsonify(user.to_dict())
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to approve user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/users/<int:user_id>")
@users_bp.delete("/staff/<int:user_id>")
@require_auth
@require_admin
def reject_user_route(user_id: int):
    """Reject a pending account, or remove an existing one."""
    try:
        user_service.delete_user(user_id, g.current_user)
        return "", 204
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/staff")
@require_auth
@require_admin
def list_staff_route():
    users = user_service.list_users(g.current_user)
    return jsonify([u.to_dict() for u in users])


@users_bp.post("/staff")
def create_staff_route():
    try:
        actor = load_current_user()
        user = approval_service.register_user(request.get_json(silent=True), actor=actor)
        if user.approved:
            message = "Staff account created successfully."
        else:
            message = "Staff account created successfully. New accounts require admin approval before they can be used."
        return jsonify({"user": user.to_dict(), "message": message}), 201
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create staff account")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/staff/<int:user_id>")
@require_auth
@require_admin
def update_staff_route(user_id: int):
    try:
        user = user_service.update_user(user_id, request.get_json(silent=True), g.current_user)
        return jsonify(user.to_dict())
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update staff account")
        return jsonify({"error": "Internal server error"}), 500
