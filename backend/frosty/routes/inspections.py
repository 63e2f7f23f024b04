# Overview: Flask API routes for vehicle inspections; parses input and returns JSON responses.

"""
Vehicle Inspection Routes

Bodies are JSON, or multipart/form-data where each form field carries a
column value and up to four files arrive under "photos". Uploaded files are
base64 encoded before they reach the service.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..errors import FrostyError, error_response
from ..services import inspection_service


inspections_bp = Blueprint("inspections", __name__, url_prefix="/api/vehicle-inspections")


def _request_payload() -> dict | None:
    if not request.mimetype.startswith("multipart/"):
        return request.get_json(silent=True)

    payload = request.form.to_dict()
    files = request.files.getlist("photos")
    if files:
        payload["photos"] = [
            inspection_service.encode_upload(f.filename, f.mimetype, f.read())
            for f in files
        ]
    return payload


@inspections_bp.get("")
@require_auth
def list_inspections_route():
    try:
        inspections = inspection_service.list_inspections(job_id=request.args.get("jobId"))
        return jsonify([i.to_dict() for i in inspections])
    except FrostyError as e:
        return error_response(e)


@inspections_bp.get("/<int:inspection_id>")
@require_auth
def get_inspection_route(inspection_id: int):
    try:
        return jsonify(inspection_service.get_inspection(inspection_id).to_dict())
    except FrostyError as e:
        return error_response(e)


@inspections_bp.post("")
@require_auth
def create_inspection_route():
    try:
        inspection = inspection_service.create_inspection(_request_payload(), g.current_user)
        return jsonify(inspection.to_dict()), 201
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create vehicle inspection")
        return jsonify({"error": "Internal server error"}), 500


@inspections_bp.put("/<int:inspection_id>")
@require_auth
def update_inspection_route(inspection_id: int):
    try:
        inspection = inspection_service.update_inspection(inspection_id, _request_payload())
        return jsonify(inspection.to_dict())
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update vehicle inspection")
        return jsonify({"error": "Internal server error"}), 500


@inspections_bp.delete("/<int:inspection_id>")
@require_auth
def delete_inspection_route(inspection_id: int):
    try:
        inspection_service.delete_inspection(inspection_id)
        return "", 204
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete vehicle inspection")
        return jsonify({"error": "Internal server error"}), 500
