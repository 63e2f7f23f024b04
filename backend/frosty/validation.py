from __future__ import annotations
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from frosty.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum money amount: £9,999,999.99
MAX_MONEY = Decimal("9999999.99")

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")
_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: allowed values for enumerated string columns
    - ignored_fields: keys clients commonly send that are silently dropped
      (server-computed values, read-only ids)
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, set[str]] = field(default_factory=dict)
    ignored_fields: set[str] = field(default_factory=set)


def to_snake(key: str) -> str:
    """fullName -> full_name; keys already in snake_case pass through."""
    return _CAMEL_RE.sub("_", key).lower()


def normalize_keys(payload: dict) -> dict:
    """The web client speaks camelCase; models are snake_case."""
    return {to_snake(k): v for k, v in payload.items()}


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def require_object(payload: Any) -> dict:
    """Request bodies must be a JSON object; a missing body counts as empty."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def parse_string(key: str, value: Any, *, strip: bool = True) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", {key: "must be a string"})
    return value.strip() if strip else value


def parse_bool(key: str, value: Any) -> bool:
    # Forms post checkbox state as text
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValidationError(f"{key} must be true or false", {key: "must be true or false"})


def parse_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number", {key: "must be a number"})
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{key} must be a number", {key: "must be a number"})
    if not amount.is_finite():
        raise ValidationError(f"{key} must be a number", {key: "must be a number"})
    return amount


def parse_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer", {key: "must be an integer"})
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(
                f"{key} must be a plain integer (scientific notation not allowed)",
                {key: "must be a plain integer"},
            )
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)", {key: "must be an integer"})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer", {key: "must be an integer"})
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal", {key: "must be an integer"})
    raise ValidationError(f"{key} must be an integer", {key: "must be an integer"})


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(col.key, value)

    if isinstance(coltype, Numeric):
        return parse_decimal(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        return parse_bool(col.key, value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                dt = None
            if dt is None:
                raise ValidationError(
                    f"{col.key} must be an ISO-8601 datetime",
                    {col.key: "must be an ISO-8601 datetime"},
                )
            return dt
        raise ValidationError(f"{col.key} must be a datetime", {col.key: "must be a datetime"})

    # Strings / Text (numbers such as phone digits are accepted as text)
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list, bool)):
            raise ValidationError(f"{col.key} must be a string", {col.key: "must be a string"})
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Keys may arrive in camelCase; they are normalized to column names first.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = {
        k: v for k, v in normalize_keys(payload).items()
        if k not in policy.ignored_fields
    }

    if not partial:
        missing = sorted(
            f for f in policy.required_on_create
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                {f: "is required" for f in missing},
            )

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", {k: "is not allowed"})
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", {k: "is unknown"})

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # Forms send "" for cleared optional inputs
        if isinstance(raw, str) and raw.strip() == "" and col.nullable:
            raw = None

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", {k: "cannot be null"})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", {k: "cannot be blank"})

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(
                    f"{k} exceeds max length {col.type.length}",
                    {k: f"exceeds max length {col.type.length}"},
                )

        allowed = policy.choices.get(k)
        if allowed is not None and val not in allowed:
            raise ValidationError(
                f"{k} must be one of: {', '.join(sorted(allowed))}",
                {k: f"must be one of: {', '.join(sorted(allowed))}"},
            )

        patch[k] = val

    return patch


def enforce_money(key: str, amount: Decimal) -> Decimal:
    """Range check for money values that are not captured by column metadata."""
    if amount < 0:
        raise ValidationError(f"{key} must be >= 0", {key: "must be >= 0"})
    if amount > MAX_MONEY:
        raise ValidationError(f"{key} cannot exceed {MAX_MONEY}", {key: f"cannot exceed {MAX_MONEY}"})
    return amount
