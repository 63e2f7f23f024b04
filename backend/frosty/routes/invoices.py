# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

"""
Invoice Routes

Create and update accept the header fields plus a lineItems array. Amount,
VAT and total in the response are always computed server-side from the
stored line items; values sent by the client are ignored.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..errors import FrostyError, error_response
from ..services import invoice_service
from ..services import settings_service
from ..validation import parse_string, require_object


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
def list_invoices_route():
    """
    Query parameters:
    - status: draft | pending | paid | overdue
    - customerId, jobId: filter by owner
    """
    try:
        invoices = invoice_service.list_invoices(
            status=request.args.get("status"),
            customer_id=request.args.get("customerId"),
            job_id=request.args.get("jobId"),
        )
        return jsonify([i.to_dict() for i in invoices])
    except FrostyError as e:
        return error_response(e)


@invoices_bp.post("/preview")
@require_auth
def preview_invoice_route():
    """
    Totals for a set of line items, computed exactly as create would.

    Nothing is saved. An empty list yields one blank placeholder row.
    """
    try:
        data = require_object(request.get_json(silent=True))
        return jsonify(invoice_service.preview_invoice(data.get("lineItems", [])))
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to preview invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        return jsonify(invoice_service.get_invoice(invoice_id).to_dict())
    except FrostyError as e:
        return error_response(e)


@invoices_bp.post("")
@require_auth
def create_invoice_route():
    try:
        invoice = invoice_service.create_invoice(request.get_json(silent=True), g.current_user)
        return jsonify(invoice.to_dict()), 201
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.put("/<int:invoice_id>")
@require_auth
def update_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.update_invoice(invoice_id, request.get_json(silent=True))
        return jsonify(invoice.to_dict())
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(invoice_id)
        return "", 204
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/email")
@require_auth
def email_invoice_route(invoice_id: int):
    """
    Email a plain-text rendering of the invoice.

    Request body: {"recipient": "...", "subject": "...", "message": "..."}
    """
    try:
        data = require_object(request.get_json(silent=True))
        invoice_service.email_invoice(
            invoice_id,
            recipient=parse_string("recipient", data.get("recipient")) or "",
            subject=parse_string("subject", data.get("subject")) or "",
            message=parse_string("message", data.get("message"), strip=False),
            company=settings_service.get_company_settings(),
        )
        return jsonify({"message": "Invoice sent"}), 200
    except FrostyError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to email invoice")
        return jsonify({"error": "Internal server error"}), 500
