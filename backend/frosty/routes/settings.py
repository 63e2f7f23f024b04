# Overview: Flask API routes for company settings; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_admin, require_auth
from ..errors import FrostyError, error_response
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/company-settings")


@settings_bp.get("")
def get_company_settings_route():
    """Public: the invoice header and the login screen both show it."""
    return jsonify(settings_service.get_company_settings())


@settings_bp.put("")
@require_auth
@require_admin
def update_company_settings_route():
    try:
        settings = settings_service.update_company_settings(request.get_json(silent=True), g.current_user)
        return jsonify(settings)
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update company settings")
        return jsonify({"error": "Internal server error"}), 500
