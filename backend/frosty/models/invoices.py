from __future__ import annotations

from ..extensions import db
from frosty.time_utils import to_utc_z


INVOICE_STATUSES = {"draft", "pending", "paid", "overdue"}


def _money(value) -> float | None:
    return float(value) if value is not None else None


class Invoice(db.Model):
    """
    Customer invoice for a job.

    amount is the pre-tax subtotal. amount, tax and total are always derived
    server-side from the line items; clients cannot set them.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        db.Index("ix_invoices_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False)

    # Soft references (see Customer)
    job_id = db.Column(db.Integer, nullable=False, index=True)
    customer_id = db.Column(db.Integer, nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    # 20% of a penny amount needs a third decimal place to stay exact
    tax = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    issue_date = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)

    notes = db.Column(db.Text, nullable=True)
    payment_terms = db.Column(db.String(64), nullable=False, default="30 days")
    payment_method = db.Column(db.String(64), nullable=False, default="bank transfer")

    status = db.Column(db.String(16), nullable=False, default="draft")

    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    line_items = db.relationship(
        "InvoiceItem",
        backref=db.backref("invoice", lazy=True),
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoiceNumber": self.invoice_number,
            "jobId": self.job_id,
            "customerId": self.customer_id,
            "amount": _money(self.amount),
            "tax": _money(self.tax),
            "total": _money(self.total),
            "issueDate": to_utc_z(self.issue_date),
            "dueDate": to_utc_z(self.due_date),
            "notes": self.notes,
            "paymentTerms": self.payment_terms,
            "paymentMethod": self.payment_method,
            "status": self.status,
            "createdBy": self.created_by,
        }
        if include_items:
            data["lineItems"] = [item.to_dict() for item in self.line_items]
        return data


class InvoiceItem(db.Model):
    """One billable row: total = quantity * unit_price."""
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_invoice_items_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_invoice_items_unit_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    description = db.Column(db.String(500), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoiceId": self.invoice_id,
            "description": self.description,
            "quantity": self.quantity,
            "unitPrice": _money(self.unit_price),
            "total": _money(self.total),
        }
