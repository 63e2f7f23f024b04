# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoices and their line items.

WHY: The invoice header and its line items are one document. Creating or
editing an invoice writes both in a single transaction, so a bad line item
leaves nothing behind, and amount/tax/total are always recomputed here from
the stored items, never taken from the client.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, FrostyError, NotFound, ValidationError
from ..extensions import db
from ..invoicing import (
    InvoiceDraft,
    LineItem,
    POLICY_COERCE,
    Totals,
    VAT_RATE,
    compute_totals,
    parse_line_items,
    validate_for_submission,
)
from ..models import Invoice, InvoiceItem, User, INVOICE_STATUSES
from ..validation import ModelValidationPolicy, enforce_money, parse_int, validate_payload
from frosty.time_utils import payment_due, utcnow
from .concurrency import lock_for_update, run_with_retry
from .customer_service import get_customer
from .document_service import INVOICE, next_document_number
from .job_service import get_job
from . import mail_service

logger = logging.getLogger(__name__)

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "invoice_number", "job_id", "customer_id", "issue_date", "due_date",
        "notes", "payment_terms", "payment_method", "status",
    },
    required_on_create={"job_id", "customer_id"},
    choices={"status": INVOICE_STATUSES},
    # Derived server-side; clients routinely echo them back
    ignored_fields={"id", "amount", "tax", "total", "subtotal", "created_by"},
)


def _line_item_policy() -> str:
    return current_app.config.get("LINE_ITEM_POLICY", POLICY_COERCE)


def _vat_rate() -> Decimal:
    return Decimal(str(current_app.config.get("VAT_RATE", VAT_RATE)))


def _split_line_items(payload) -> tuple[dict, object]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    raw_items = payload.pop("lineItems", None)
    if "line_items" in payload:
        raw_items = payload.pop("line_items")
    return payload, raw_items


def _billable_items(raw_items) -> list[LineItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError(
            "At least one line item is required",
            {"lineItems": "at least one line item is required"},
        )
    return validate_for_submission(parse_line_items(raw_items, _line_item_policy()))


def _check_references(patch: dict) -> None:
    if "job_id" in patch:
        try:
            get_job(patch["job_id"])
        except NotFound:
            raise ValidationError("Job not found", {"job_id": "does not exist"})
    if "customer_id" in patch:
        try:
            get_customer(patch["customer_id"])
        except NotFound:
            raise ValidationError("Customer not found", {"customer_id": "does not exist"})


def _check_invoice_number(number: str, invoice_id: int | None = None) -> None:
    query = db.session.query(Invoice.id).filter(Invoice.invoice_number == number)
    if invoice_id is not None:
        query = query.filter(Invoice.id != invoice_id)
    if query.first():
        raise Conflict("Invoice number already exists", {"invoice_number": "already exists"})


def _next_free_invoice_number() -> str:
    # Skip numbers already taken by manually numbered invoices
    while True:
        number = next_document_number(document_type=INVOICE, prefix="INV")
        if not db.session.query(Invoice.id).filter(Invoice.invoice_number == number).first():
            return number


def _apply_totals(invoice: Invoice, totals: Totals) -> None:
    invoice.amount = totals.subtotal
    invoice.tax = totals.tax
    invoice.total = totals.total


def _replace_line_items(invoice: Invoice, items: list[LineItem]) -> None:
    """Delete-all-then-insert; runs inside the caller's transaction."""
    invoice.line_items.clear()
    for item in items:
        invoice.line_items.append(InvoiceItem(
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=item.total,
        ))
    totals = compute_totals(items, _vat_rate())
    enforce_money("amount", totals.subtotal)
    _apply_totals(invoice, totals)


def _check_dates(invoice: Invoice) -> None:
    if invoice.due_date < invoice.issue_date:
        raise ValidationError("due_date cannot be before issue_date", {"due_date": "must be on or after issue_date"})


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound("Invoice not found")
    return invoice


def list_invoices(*, status: str | None = None, customer_id=None, job_id=None) -> list[Invoice]:
    query = db.session.query(Invoice)
    if status:
        if status not in INVOICE_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(sorted(INVOICE_STATUSES))}",
                {"status": "unknown status"},
            )
        query = query.filter(Invoice.status == status)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == parse_int("customerId", customer_id))
    if job_id is not None:
        query = query.filter(Invoice.job_id == parse_int("jobId", job_id))
    return query.order_by(Invoice.id).all()


def create_invoice(payload: dict, actor: User) -> Invoice:
    """
    Create an invoice with its line items.

    Raises:
        ValidationError: missing job/customer, unknown references, no
            billable line item, or (strict policy) a malformed item
        Conflict: the supplied invoice number is taken
    """
    header, raw_items = _split_line_items(payload)
    if isinstance(header.get("invoiceNumber"), str) and not header["invoiceNumber"].strip():
        header.pop("invoiceNumber")

    patch = validate_payload(model=Invoice, payload=header, policy=INVOICE_POLICY, partial=False)
    items = _billable_items(raw_items)
    _check_references(patch)
    if patch.get("invoice_number"):
        _check_invoice_number(patch["invoice_number"])

    def _op() -> Invoice:
        number = patch.get("invoice_number") or _next_free_invoice_number()
        issue_date = patch.get("issue_date") or utcnow()
        due_date = patch.get("due_date") or payment_due(issue_date)

        invoice = Invoice(
            **{k: v for k, v in patch.items() if k not in ("invoice_number", "issue_date", "due_date")},
            invoice_number=number,
            issue_date=issue_date,
            due_date=due_date,
            created_by=actor.id,
        )
        invoice.status = invoice.status or "draft"
        _check_dates(invoice)

        db.session.add(invoice)
        _replace_line_items(invoice, items)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict("Invoice number already exists", {"invoice_number": "already exists"})
        return invoice

    try:
        invoice = run_with_retry(_op)
    except FrostyError:
        db.session.rollback()
        raise
    logger.info("Created invoice %s (id=%s) with %d line items", invoice.invoice_number, invoice.id, len(items))
    return invoice


def update_invoice(invoice_id: int, payload: dict) -> Invoice:
    """
    Partial update. When line items are supplied the stored set is replaced
    and totals recomputed, in the same transaction as the header changes.
    """
    header, raw_items = _split_line_items(payload)
    patch = validate_payload(model=Invoice, payload=header, policy=INVOICE_POLICY, partial=True)
    items = _billable_items(raw_items) if raw_items is not None else None

    def _op() -> Invoice:
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFound("Invoice not found")

        _check_references(patch)
        if patch.get("invoice_number") and patch["invoice_number"] != invoice.invoice_number:
            _check_invoice_number(patch["invoice_number"], invoice.id)

        for key, value in patch.items():
            setattr(invoice, key, value)
        _check_dates(invoice)

        if items is not None:
            _replace_line_items(invoice, items)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict("Invoice number already exists", {"invoice_number": "already exists"})
        return invoice

    try:
        return run_with_retry(_op)
    except FrostyError:
        db.session.rollback()
        raise


def preview_invoice(raw_items) -> dict:
    """Line items and totals as they would be stored, without saving anything."""
    if not isinstance(raw_items, list):
        raise ValidationError("lineItems must be a list", {"lineItems": "must be a list"})
    draft = InvoiceDraft.from_raw(raw_items, policy=_line_item_policy(), tax_rate=_vat_rate())
    return {
        "lineItems": [item.to_dict() for item in draft.items],
        **draft.totals.to_dict(),
    }


def delete_invoice(invoice_id: int) -> None:
    """Delete an invoice together with its line items."""
    invoice = get_invoice(invoice_id)
    db.session.delete(invoice)
    db.session.commit()


def render_invoice_text(invoice: Invoice, customer, company: dict, message: str | None = None) -> str:
    lines = [
        company.get("companyName", ""),
        f"Invoice #{invoice.invoice_number}",
        f"Date: {invoice.issue_date:%d/%m/%Y}",
        f"Due Date: {invoice.due_date:%d/%m/%Y}",
        "",
        "Customer:",
        customer.name,
    ]
    if customer.address:
        lines.append(customer.address)
    lines += ["", "Line Items:"]
    for item in invoice.line_items:
        lines.append(
            f"  {item.description}  {item.quantity} x £{Decimal(item.unit_price):.2f} = £{Decimal(item.total):.2f}"
        )
    lines += [
        "",
        f"Subtotal: £{Decimal(invoice.amount):.2f}",
        f"VAT: £{Decimal(invoice.tax):.2f}",
        f"Total: £{Decimal(invoice.total):.2f}",
    ]
    if company.get("vatNumber"):
        lines.append(f"VAT Number: {company['vatNumber']}")
    note = message or invoice.notes
    if note:
        lines += ["", note]
    return "\n".join(lines)


def email_invoice(invoice_id: int, recipient: str, subject: str, message: str | None, company: dict) -> None:
    if not recipient or not subject:
        raise ValidationError(
            "Recipient and subject are required",
            {k: "is required" for k, v in (("recipient", recipient), ("subject", subject)) if not v},
        )

    invoice = get_invoice(invoice_id)
    customer = get_customer(invoice.customer_id)

    body = render_invoice_text(invoice, customer, company, message)
    mail_service.send_message(recipient=recipient, subject=subject, body=body)
    logger.info("Emailed invoice %s to %s", invoice.invoice_number, recipient)
