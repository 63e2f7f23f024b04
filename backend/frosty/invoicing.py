# Overview: Invoice line-item arithmetic and edit-state handling; no database access.

"""
Invoice aggregation.

All money is Decimal. Unit prices are quantized to pennies when they cross
the input boundary; after that nothing is rounded, so

    subtotal = sum(quantity * unit_price)
    tax      = subtotal * VAT_RATE
    total    = subtotal + tax

hold exactly. With a 20% rate the tax never needs more than three decimal
places, which is what the invoice columns store.

Client input arrives as strings from HTML forms as often as numbers.
parse_line_item() is the single place that turns it into a LineItem, under
one of two policies:

- POLICY_COERCE (default): a quantity is read the way the invoice form reads
  its integer field, keeping the leading whole number ("2.5" and 2.5 give 2,
  "3 hrs" gives 3); if nothing usable of at least 1 remains it becomes 1. A
  unit price that is missing, non-numeric or negative becomes 0.
- POLICY_STRICT: the same inputs raise InvalidLineItem naming the field.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

from .errors import InvalidLineItem, ValidationError


VAT_RATE = Decimal("0.20")
PENNY = Decimal("0.01")

POLICY_COERCE = "coerce"
POLICY_STRICT = "strict"
POLICIES = {POLICY_COERCE, POLICY_STRICT}

MAX_DESCRIPTION_LENGTH = 500

_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


@dataclass
class LineItem:
    description: str = ""
    quantity: int = 1
    unit_price: Decimal = Decimal("0.00")

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def is_blank(self) -> bool:
        return not self.description.strip()

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "quantity": self.quantity,
            "unitPrice": float(self.unit_price),
            "total": float(self.total),
        }


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "total": float(self.total),
        }


def _parse_quantity(raw: Any, policy: str, index: int | None) -> int:
    quantity = None
    if isinstance(raw, bool):
        quantity = None
    elif isinstance(raw, int):
        quantity = raw
    elif isinstance(raw, float) and raw.is_integer():
        quantity = int(raw)
    elif isinstance(raw, str):
        try:
            quantity = int(raw.strip())
        except ValueError:
            quantity = None

    if quantity is not None and quantity >= 1:
        return quantity
    if policy == POLICY_STRICT:
        raise InvalidLineItem(
            "Line item quantity must be a whole number of at least 1",
            _item_details(index, "quantity", "must be a whole number >= 1"),
        )
    leading = _leading_whole_number(raw)
    return leading if leading is not None and leading >= 1 else 1


def _leading_whole_number(raw: Any) -> int | None:
    if isinstance(raw, float) and math.isfinite(raw):
        return math.trunc(raw)
    if isinstance(raw, str):
        match = _LEADING_INT_RE.match(raw)
        if match:
            return int(match.group(1))
    return None


def _parse_unit_price(raw: Any, policy: str, index: int | None) -> Decimal:
    price = None
    if raw is not None and not isinstance(raw, bool):
        try:
            price = Decimal(str(raw).strip())
        except (InvalidOperation, ValueError):
            price = None
        if price is not None and not price.is_finite():
            price = None

    if price is not None and price >= 0:
        return price.quantize(PENNY, rounding=ROUND_HALF_UP)
    if policy == POLICY_STRICT:
        raise InvalidLineItem(
            "Line item unit price must be a number >= 0",
            _item_details(index, "unitPrice", "must be a number >= 0"),
        )
    return Decimal("0.00")


def _item_details(index: int | None, field_name: str, message: str) -> dict:
    if index is None:
        return {field_name: message}
    return {f"lineItems[{index}].{field_name}": message}


def parse_line_item(raw: dict, policy: str = POLICY_COERCE, index: int | None = None) -> LineItem:
    """
    Build a LineItem from client input (camelCase or snake_case keys).

    Client-supplied totals are ignored; the total is always derived.
    """
    if policy not in POLICIES:
        raise ValueError(f"Unknown line item policy: {policy}")
    if not isinstance(raw, dict):
        raise InvalidLineItem("Line item must be an object", _item_details(index, "item", "must be an object"))

    description = raw.get("description")
    description = "" if description is None else str(description).strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise InvalidLineItem(
            f"Line item description exceeds max length {MAX_DESCRIPTION_LENGTH}",
            _item_details(index, "description", f"exceeds max length {MAX_DESCRIPTION_LENGTH}"),
        )

    unit_price_raw = raw.get("unitPrice", raw.get("unit_price"))
    return LineItem(
        description=description,
        quantity=_parse_quantity(raw.get("quantity"), policy, index),
        unit_price=_parse_unit_price(unit_price_raw, policy, index),
    )


def parse_line_items(raw_items: Any, policy: str = POLICY_COERCE) -> list[LineItem]:
    if not isinstance(raw_items, list):
        raise ValidationError("lineItems must be a list", {"lineItems": "must be a list"})
    return [parse_line_item(raw, policy, index=i) for i, raw in enumerate(raw_items)]


def compute_totals(items: Iterable[LineItem], tax_rate: Decimal = VAT_RATE) -> Totals:
    subtotal = sum((item.total for item in items), Decimal("0.00"))
    tax = subtotal * tax_rate
    return Totals(subtotal=subtotal, tax=tax, total=subtotal + tax)


def validate_for_submission(items: Iterable[LineItem]) -> list[LineItem]:
    """
    Drop blank placeholder rows and require at least one described item.

    Raises ValidationError when nothing billable remains.
    """
    billable = [item for item in items if not item.is_blank]
    if not billable:
        raise ValidationError(
            "At least one line item with a description is required",
            {"lineItems": "at least one line item with a description is required"},
        )
    return billable


@dataclass
class InvoiceDraft:
    """
    Edit state of an invoice's line items.

    Always holds at least one row; totals are recomputed after every change.
    """
    items: list[LineItem] = field(default_factory=list)
    tax_rate: Decimal = VAT_RATE
    policy: str = POLICY_COERCE
    totals: Totals = field(init=False)

    def __post_init__(self):
        if not self.items:
            self.items = [LineItem()]
        self._recompute()

    @classmethod
    def from_raw(cls, raw_items: list, policy: str = POLICY_COERCE, tax_rate: Decimal = VAT_RATE) -> "InvoiceDraft":
        return cls(items=parse_line_items(raw_items, policy), tax_rate=tax_rate, policy=policy)

    def _recompute(self) -> None:
        self.totals = compute_totals(self.items, self.tax_rate)

    def add_item(self, raw: dict | None = None) -> LineItem:
        item = parse_line_item(raw or {}, self.policy)
        self.items.append(item)
        self._recompute()
        return item

    def remove_item(self, index: int) -> None:
        if index < 0 or index >= len(self.items):
            raise IndexError(f"No line item at index {index}")
        del self.items[index]
        if not self.items:
            self.items.append(LineItem())
        self._recompute()

    def update_item(self, index: int, **fields) -> LineItem:
        """Edit description, quantity and/or unit_price of one row."""
        if index < 0 or index >= len(self.items):
            raise IndexError(f"No line item at index {index}")
        current = self.items[index]
        merged = {
            "description": current.description,
            "quantity": current.quantity,
            "unitPrice": current.unit_price,
        }
        for key, value in fields.items():
            if key in ("unit_price", "unitPrice"):
                merged["unitPrice"] = value
            elif key in ("description", "quantity"):
                merged[key] = value
            else:
                raise TypeError(f"Unknown line item field: {key}")
        self.items[index] = parse_line_item(merged, self.policy)
        self._recompute()
        return self.items[index]

    def billable_items(self) -> list[LineItem]:
        return validate_for_submission(self.items)
