# Overview: Service-layer operations for the company profile settings document.

"""
Company settings are a small JSON document (name, address, VAT number...)
stored under one key. Defaults apply for any field that has never been
saved.

The merged document is loaded once per application and kept in
app.extensions; update_company_settings() writes through and replaces that
copy. Handlers get the document by calling get_company_settings(), never
through module state.
"""

from __future__ import annotations

import json
import logging

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import CompanySetting, User
from .approval_service import require_admin

logger = logging.getLogger(__name__)

COMPANY_KEY = "company"
CACHE_KEY = "frosty.company_settings"

DEFAULT_COMPANY_SETTINGS = {
    "companyName": "Frosty's Ice Blasting Solutions LTD",
    "address": "123 Snowflake Street, Frostville, FV1 2IB",
    "phone": "+44 1234 567890",
    "email": "info@frostysblasting.co.uk",
    "website": "https://www.frostysblasting.co.uk",
    "vatNumber": "GB123456789",
}
ALLOWED_FIELDS = set(DEFAULT_COMPANY_SETTINGS)


def _load_stored() -> dict:
    row = db.session.query(CompanySetting).filter_by(key=COMPANY_KEY).first()
    if not row or not row.value:
        return {}
    try:
        stored = json.loads(row.value)
    except ValueError:
        logger.warning("Ignoring unreadable company settings document")
        return {}
    return stored if isinstance(stored, dict) else {}


def get_company_settings(refresh: bool = False) -> dict:
    cached = current_app.extensions.get(CACHE_KEY)
    if cached is None or refresh:
        cached = {**DEFAULT_COMPANY_SETTINGS, **_load_stored()}
        current_app.extensions[CACHE_KEY] = cached
    return dict(cached)


def update_company_settings(patch: dict, actor: User | None) -> dict:
    require_admin(actor)
    if not isinstance(patch, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(k for k in patch if k not in ALLOWED_FIELDS)
    if unknown:
        raise ValidationError(
            f"Field not allowed: {', '.join(unknown)}",
            {k: "is not allowed" for k in unknown},
        )
    bad = sorted(k for k, v in patch.items() if v is not None and not isinstance(v, str))
    if bad:
        raise ValidationError("Settings values must be strings", {k: "must be a string" for k in bad})

    merged = {**DEFAULT_COMPANY_SETTINGS, **_load_stored(), **patch}

    row = db.session.query(CompanySetting).filter_by(key=COMPANY_KEY).first()
    if not row:
        row = CompanySetting(key=COMPANY_KEY)
        db.session.add(row)
    row.value = json.dumps(merged)
    row.updated_by_user_id = actor.id
    db.session.commit()

    current_app.extensions[CACHE_KEY] = merged
    logger.info("Company settings updated by user id=%s", actor.id)
    return dict(merged)
