from __future__ import annotations

from ..extensions import db


class CompanySetting(db.Model):
    """
    Key-value settings for the company profile printed on invoices.

    value holds a JSON document; the "company" key carries the profile.
    """
    __tablename__ = "company_settings"
    __table_args__ = (
        db.UniqueConstraint("key", name="uq_company_settings_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    key = db.Column(db.String(128), nullable=False)
    value = db.Column(db.Text, nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
