"""
Date/time helpers.

Every timestamp frosty stores is naive UTC: job start/end dates, inspection
dates, invoice issue/due dates and session expiry. The web client sends
either a bare date from a date picker or a full ISO string, and reads back
ISO strings with a trailing Z.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

# Invoices fall due a month after issue unless a due date is given
PAYMENT_TERMS_DAYS = 30


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def payment_due(issue_date: datetime) -> datetime:
    return issue_date + timedelta(days=PAYMENT_TERMS_DAYS)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-05-01" from a date picker lands at midnight. Values carrying Z or
    an offset are converted; naive values are taken as UTC already.

    Raises ValueError for anything datetime.fromisoformat rejects.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """2026-05-01T09:00:00Z, seconds precision."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
