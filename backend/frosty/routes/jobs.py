# Overview: Flask API routes for job operations; parses input and returns JSON responses.

"""
Job Routes

Query parameters on the list route:
- status: scheduled | in-progress | completed | canceled
- customerId: only jobs booked for this customer
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..errors import FrostyError, error_response
from ..services import job_service


jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")


@jobs_bp.get("")
@require_auth
def list_jobs_route():
    try:
        jobs = job_service.list_jobs(
            status=request.args.get("status"),
            customer_id=request.args.get("customerId"),
        )
        return jsonify([j.to_dict() for j in jobs])
    except FrostyError as e:
        return error_response(e)


@jobs_bp.get("/<int:job_id>")
@require_auth
def get_job_route(job_id: int):
    try:
        return jsonify(job_service.get_job(job_id).to_dict())
    except FrostyError as e:
        return error_response(e)


@jobs_bp.post("")
@require_auth
def create_job_route():
    """
    Book a job.

    jobId is optional; when omitted the next JOB-#### code is issued.
    """
    try:
        job = job_service.create_job(request.get_json(silent=True), g.current_user)
        return jsonify(job.to_dict()), 201
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create job")
        return jsonify({"error": "Internal server error"}), 500


@jobs_bp.put("/<int:job_id>")
@require_auth
def update_job_route(job_id: int):
    try:
        job = job_service.update_job(job_id, request.get_json(silent=True))
        return jsonify(job.to_dict())
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update job")
        return jsonify({"error": "Internal server error"}), 500


@jobs_bp.delete("/<int:job_id>")
@require_auth
def delete_job_route(job_id: int):
    try:
        job_service.delete_job(job_id)
        return "", 204
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete job")
        return jsonify({"error": "Internal server error"}), 500
