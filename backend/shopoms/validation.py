from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum amount: $9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

CENT = Decimal("0.01")

# Largest value a signed 32-bit Integer column holds
MAX_INT = 2**31 - 1


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level problem: referenced entity does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - money_fields: payload keys holding currency amounts, stored as <key>_cents
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    money_fields: set[str] = None  # type: ignore


def to_decimal(value: Any, field: str, *, allow_strings: bool = False) -> Decimal:
    """
    Coerce a JSON number to Decimal.

    Booleans are rejected even though they are ints in Python. Strings are only
    accepted when `allow_strings` is set (catalog forms send "4.50").
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, str):
        if not allow_strings:
            raise ValidationError(f"{field} must be a number")
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} must be a number")
    elif not isinstance(value, (int, float, Decimal)):
        raise ValidationError(f"{field} must be a number")

    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return amount


def to_cents(value: Any, field: str, *, allow_strings: bool = False) -> int:
    """Currency amount -> integer cents (half-up), range checked."""
    amount = to_decimal(value, field, allow_strings=allow_strings)
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    cents = int((amount / CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
    return cents


def cents_to_amount(cents: int | None) -> float | None:
    """Authoritative cents -> display amount for JSON responses."""
    if cents is None:
        return None
    return float(Decimal(cents) * CENT)


def to_positive_int(value: Any, field: str) -> int:
    """
    Strict integer in [1, MAX_INT]: rejects bools, floats, scientific notation
    and non-ASCII digits. The upper bound matches the Integer columns.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        try:
            parsed = int(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")
    if parsed < 1:
        raise ValidationError(f"{field} must be >= 1")
    if parsed > MAX_INT:
        raise ValidationError(f"{field} cannot exceed {MAX_INT}")
    return parsed


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: Any,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column name.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    money = policy.money_fields or set()

    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in money:
            patch[f"{k}_cents"] = to_cents(raw, k, allow_strings=True)
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        if isinstance(col.type, Integer):
            patch[k] = to_positive_int(raw, k)
            continue

        if isinstance(col.type, (String, Text)):
            if not isinstance(raw, (str, int, float)) or isinstance(raw, bool):
                raise ValidationError(f"{k} must be a string")
            val = str(raw).strip()
            if not col.nullable and val == "":
                raise ValidationError(f"{k} cannot be blank")
            if isinstance(col.type, String) and col.type.length and len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")
            patch[k] = val
            continue

        patch[k] = raw

    return patch
