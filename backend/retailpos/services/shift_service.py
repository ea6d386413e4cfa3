"""
Shift Close Service

WHY: At the end of a shift the operator counts the drawer and the card
terminal batch. The system computes what should be there from the sales,
refunds and expenses recorded since the previous close, and stores both
sides together with the variance.

PERIOD:
- start = end_time of the most recently closed shift (0 when none exists,
  so the first close covers the full history)
- end = now
- A row belongs to the period when start < timestamp <= end. The half-open
  lower bound keeps a sale stamped exactly at the previous close from
  being counted twice.

EXPECTED TOTALS (per tender):
- expected[m] = closed sale payments[m] - return refunds[m]
- expected_cash additionally subtracts expenses, which are paid from the drawer
- variance = (actual_cash + actual_card) - (expected_cash + expected_card);
  wallet, instapay and credit are informational only

IMMUTABLE: A shift row is written once and never modified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import (
    Expense,
    Return,
    ReturnPaymentMethod,
    Shift,
    Transaction,
    TransactionPaymentMethod,
    User,
)
from ..time_utils import day_bounds_ms, ms_to_datetime, now_ms
from ..validation import PAYMENT_METHODS, coerce_cents, coerce_date
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


SHIFT_STATUS_CLOSED = "CLOSED"


@dataclass(frozen=True)
class ShiftTotals:
    """Expected drawer/tender totals for one period, in cents."""
    start_time: int
    end_time: int
    sales_by_method: dict
    returns_by_method: dict
    total_expenses: int

    def expected(self, method: str) -> int:
        value = self.sales_by_method.get(method, 0) - self.returns_by_method.get(method, 0)
        if method == "cash":
            value -= self.total_expenses
        return value

    @property
    def expected_cash(self) -> int:
        return self.expected("cash")

    @property
    def expected_card(self) -> int:
        return self.expected("card")

    def variance(self, actual_cash: int, actual_card: int) -> int:
        return (actual_cash + actual_card) - (self.expected_cash + self.expected_card)

    def to_dict(self) -> dict:
        return {
            **asdict(self),
            **{f"expected_{m}": self.expected(m) for m in PAYMENT_METHODS},
        }


def current_period_start() -> int:
    """
    end_time of the latest closed shift, or 0.

    Always read from the database; concurrent closes on other workers would
    make any cached value stale.
    """
    last_end = (
        db.session.query(func.max(Shift.end_time))
        .filter(Shift.status == SHIFT_STATUS_CLOSED)
        .scalar()
    )
    return int(last_end or 0)


def _sum_by_method(rows) -> dict:
    totals = {method: 0 for method in PAYMENT_METHODS}
    for method, total in rows:
        totals[method] = totals.get(method, 0) + int(total or 0)
    return totals


def compute_shift_totals(start_ms: int, end_ms: int) -> ShiftTotals:
    """Aggregate sale tenders, refunds and expenses for (start_ms, end_ms]."""
    sales_rows = (
        db.session.query(
            TransactionPaymentMethod.payment_method,
            func.sum(TransactionPaymentMethod.amount_cents),
        )
        .join(Transaction, TransactionPaymentMethod.transaction_id == Transaction.id)
        .filter(
            Transaction.type == "sale",
            Transaction.status == "closed",
            Transaction.timestamp > start_ms,
            Transaction.timestamp <= end_ms,
        )
        .group_by(TransactionPaymentMethod.payment_method)
        .all()
    )

    returns_rows = (
        db.session.query(
            ReturnPaymentMethod.payment_method,
            func.sum(ReturnPaymentMethod.amount_cents),
        )
        .join(Return, ReturnPaymentMethod.return_id == Return.id)
        .filter(Return.timestamp > start_ms, Return.timestamp <= end_ms)
        .group_by(ReturnPaymentMethod.payment_method)
        .all()
    )

    # Expenses are stamped as datetimes; convert the epoch-ms bounds the same way
    expenses_total = (
        db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0))
        .filter(
            Expense.created_at > ms_to_datetime(start_ms),
            Expense.created_at <= ms_to_datetime(end_ms),
        )
        .scalar()
    )

    return ShiftTotals(
        start_time=start_ms,
        end_time=end_ms,
        sales_by_method=_sum_by_method(sales_rows),
        returns_by_method=_sum_by_method(returns_rows),
        total_expenses=int(expenses_total or 0),
    )


def preview_shift(*, end_ms: int | None = None) -> dict:
    """Expected totals for the open period without closing it."""
    start_ms = current_period_start()
    totals = compute_shift_totals(start_ms, end_ms if end_ms is not None else now_ms())
    return totals.to_dict()


def close_shift(
    *,
    user_id: int,
    actual_cash,
    actual_card,
    end_ms: int | None = None,
) -> dict:
    """
    Close the open period and persist the reconciliation.

    Args:
        user_id: Operator closing the shift
        actual_cash: Counted drawer cash (cents)
        actual_card: Card terminal batch total (cents)
        end_ms: Period end; defaults to now

    Returns:
        The shift report (all expected/actual fields, variance, username)

    Raises:
        ValidationError: Missing or non-integer amounts
        PersistenceError: Any database failure (no shift row is written)
    """
    if actual_cash is None or actual_card is None or not user_id:
        raise ValidationError("actual_cash, actual_card and user_id are required")
    actual_cash = coerce_cents(actual_cash, "actual_cash")
    actual_card = coerce_cents(actual_card, "actual_card")

    with unit_of_work():
        start_ms = current_period_start()
        end = end_ms if end_ms is not None else now_ms()
        if end < start_ms:
            raise ValidationError("Shift end precedes the previous shift close")

        totals = compute_shift_totals(start_ms, end)

        shift = Shift(
            user_id=user_id,
            start_time=start_ms,
            end_time=end,
            expected_cash=totals.expected_cash,
            actual_cash=actual_cash,
            expected_card=totals.expected_card,
            actual_card=actual_card,
            expected_wallet=totals.expected("wallet"),
            expected_instapay=totals.expected("instapay"),
            expected_credit=totals.expected("credit"),
            total_expenses=totals.total_expenses,
            variance=totals.variance(actual_cash, actual_card),
            status=SHIFT_STATUS_CLOSED,
        )
        db.session.add(shift)
        db.session.flush()

        user = db.session.get(User, user_id)
        report = {
            **shift.to_dict(),
            "username": user.username if user else "Unknown",
        }

    logger.info(
        "Closed shift %s for user %s: expected_cash=%d actual_cash=%d variance=%d",
        report["id"], user_id, report["expected_cash"], actual_cash, report["variance"],
    )
    return report


def shift_history(day) -> list[dict]:
    """Shifts whose end_time falls on `day` (UTC), newest first."""
    day = coerce_date(day, "date")
    start_ms, end_ms = day_bounds_ms(day)
    shifts = (
        db.session.query(Shift)
        .filter(Shift.end_time.between(start_ms, end_ms))
        .order_by(Shift.end_time.desc(), Shift.id.desc())
        .all()
    )
    return [s.to_dict() for s in shifts]
