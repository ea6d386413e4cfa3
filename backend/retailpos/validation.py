from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from .errors import ValidationError
from .time_utils import parse_date


PAYMENT_METHODS = ("cash", "card", "wallet", "instapay", "credit")

# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


def require_fields(payload: dict | None, fields: Iterable[str]) -> dict:
    """Reject a payload that is not an object or lacks any of `fields` (None counts as missing)."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = [f for f in fields if payload.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return payload


def coerce_int(value: Any, field: str, *, allow_none: bool = False) -> int | None:
    """
    Strict integer coercion - rejects floats, bools and scientific notation.
    Plain digit strings (with optional leading minus) are accepted.
    """
    if value is None:
        if allow_none:
            return None
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        return value

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")

    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")

    raise ValidationError(f"{field} must be an integer")


def coerce_cents(value: Any, field: str, *, allow_none: bool = False, allow_negative: bool = False) -> int | None:
    """Money in integer cents, range-checked."""
    cents = coerce_int(value, field, allow_none=allow_none)
    if cents is None:
        return None
    if cents < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return cents


def coerce_decimal_cents(value: Any, field: str) -> int:
    """
    Accept either integer cents or a decimal amount string like "12.50".

    Used by the CLI where operators type prices in currency units.
    """
    if isinstance(value, str) and "." in value:
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
        return coerce_cents(int((amount * 100).to_integral_value()), field)
    return coerce_cents(value, field)


def coerce_payment_method(value: Any) -> str:
    method = str(value or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Unknown payment method: {value!r} (expected one of {', '.join(PAYMENT_METHODS)})"
        )
    return method


def coerce_list(value: Any, field: str) -> list:
    if not isinstance(value, list) or not value:
        raise ValidationError(f"{field} must be a non-empty list")
    return value


def coerce_date(value: Any, field: str, *, allow_none: bool = False) -> date | None:
    """'YYYY-MM-DD' (or ISO datetime) to a date."""
    if value in (None, ""):
        if allow_none:
            return None
        raise ValidationError(f"{field} is required")
    if isinstance(value, date):
        return value
    try:
        return parse_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")
