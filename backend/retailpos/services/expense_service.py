"""
Expenses paid from the cash drawer.

Shift close subtracts expenses created inside the shift period from the
expected cash, so `created_at` is always stamped server-side (naive UTC).
"""

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Expense
from ..time_utils import ms_to_datetime, now_ms
from ..validation import coerce_cents, coerce_date, require_fields
from .unit_of_work import unit_of_work


def _validated(payload: dict) -> dict:
    require_fields(payload, ("description", "amount_cents", "expense_date"))
    description = str(payload["description"]).strip()
    if not description:
        raise ValidationError("description cannot be blank")
    amount = coerce_cents(payload["amount_cents"], "amount_cents")
    if amount == 0:
        raise ValidationError("amount_cents must be > 0")
    return {
        "description": description,
        "amount_cents": amount,
        "category": (str(payload.get("category")).strip() or None) if payload.get("category") else None,
        "expense_date": coerce_date(payload["expense_date"], "expense_date"),
    }


def create_expense(payload: dict, *, user_id: int) -> Expense:
    fields = _validated(payload)
    with unit_of_work():
        # Millisecond precision, matching the epoch-ms shift bounds it is compared against
        expense = Expense(**fields, user_id=user_id, created_at=ms_to_datetime(now_ms()))
        db.session.add(expense)
    return expense


def update_expense(expense_id: int, payload: dict) -> Expense:
    fields = _validated(payload)
    with unit_of_work():
        expense = db.session.get(Expense, expense_id)
        if not expense:
            raise NotFoundError("Expense not found")
        for key, value in fields.items():
            setattr(expense, key, value)
    return expense


def delete_expense(expense_id: int) -> None:
    with unit_of_work():
        expense = db.session.get(Expense, expense_id)
        if not expense:
            raise NotFoundError("Expense not found")
        db.session.delete(expense)


def list_expenses() -> list[Expense]:
    return (
        db.session.query(Expense)
        .order_by(Expense.expense_date.desc(), Expense.id.desc())
        .all()
    )
