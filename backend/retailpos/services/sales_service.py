"""
Sales recording and lookup.

WHY: A sale is the header, its lines, its tender rows and the stock
decrements for catalog lines. All of it is written in one unit of work so a
failure part-way leaves nothing behind.

Manual lines (product_id missing or <= 0) are kept for the receipt and
revenue but never touch stock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Transaction, TransactionItem, TransactionPaymentMethod, User
from ..time_utils import day_bounds_ms, now_ms
from ..validation import coerce_cents, coerce_date, coerce_int, coerce_list, coerce_payment_method
from .inventory_service import adjust_stock, require_product
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


SALE_STATUS_CLOSED = "closed"
SALE_STATUS_PENDING = "pending"
SALE_STATUSES = (SALE_STATUS_CLOSED, SALE_STATUS_PENDING)


@dataclass(frozen=True)
class CartLine:
    product_id: int | None  # None for manual lines
    quantity: int
    price_cents: int
    name: str | None = None

    @property
    def is_manual(self) -> bool:
        return self.product_id is None

    @property
    def total_cents(self) -> int:
        return self.quantity * self.price_cents


@dataclass(frozen=True)
class Tender:
    method: str
    amount_cents: int


def parse_cart_lines(raw_items: list, *, field: str = "items") -> list[CartLine]:
    """
    Normalize incoming cart lines.

    Accepts `product_id` or the cart's `id` key. Anything <= 0 or missing
    marks a manual line.
    """
    lines = []
    for i, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"{field}[{i}] must be an object")

        raw_pid = raw.get("product_id", raw.get("id"))
        product_id = coerce_int(raw_pid, f"{field}[{i}].product_id", allow_none=True)
        if product_id is not None and product_id <= 0:
            product_id = None

        quantity = coerce_int(raw.get("quantity"), f"{field}[{i}].quantity")
        if quantity <= 0:
            raise ValidationError(f"{field}[{i}].quantity must be > 0")

        price_cents = coerce_cents(raw.get("price_cents"), f"{field}[{i}].price_cents")

        name = raw.get("name")
        if product_id is None and not name:
            name = "Manual item"

        lines.append(CartLine(
            product_id=product_id,
            quantity=quantity,
            price_cents=price_cents,
            name=str(name).strip() if name else None,
        ))
    return lines


def parse_tenders(raw_payments: list, *, field: str = "payment_methods") -> list[Tender]:
    tenders = []
    for i, raw in enumerate(raw_payments):
        if not isinstance(raw, dict):
            raise ValidationError(f"{field}[{i}] must be an object")
        tenders.append(Tender(
            method=coerce_payment_method(raw.get("method")),
            amount_cents=coerce_cents(raw.get("amount_cents"), f"{field}[{i}].amount_cents"),
        ))
    return tenders


def record_sale(
    *,
    user_id: int,
    items: list,
    payment_methods: list,
    total_cents=None,
    discount_cents=0,
    final_total_cents=None,
    notes: str | None = None,
    is_delivery: bool = False,
    customer_id=None,
    status: str = SALE_STATUS_CLOSED,
) -> Transaction:
    """
    Persist a sale with its lines and tenders and decrement stock.

    Args:
        user_id: Authenticated cashier
        items: Cart lines ({product_id|id, quantity, price_cents, name})
        payment_methods: One or more {method, amount_cents}
        total_cents: Pre-discount total (computed from lines when omitted)
        discount_cents: Invoice-level discount
        final_total_cents: Amount due (total - discount when omitted)
        status: "closed" (default) or "pending"

    Raises:
        ValidationError: Empty cart, bad quantities, unknown tender
        NotFoundError: A catalog line references a missing product
    """
    lines = parse_cart_lines(coerce_list(items, "items"))
    tenders = parse_tenders(coerce_list(payment_methods, "payment_methods"))

    if status not in SALE_STATUSES:
        raise ValidationError(f"Invalid sale status: {status}")

    computed_total = sum(line.total_cents for line in lines)
    total = coerce_cents(total_cents, "total_cents", allow_none=True)
    total = computed_total if total is None else total
    discount = coerce_cents(discount_cents or 0, "discount_cents")
    final_total = coerce_cents(final_total_cents, "final_total_cents", allow_none=True)
    final_total = total - discount if final_total is None else final_total

    customer_id = coerce_int(customer_id, "customer_id", allow_none=True) or None

    with unit_of_work():
        if customer_id is not None and not db.session.get(Customer, customer_id):
            raise NotFoundError(f"Customer {customer_id} not found")

        sale = Transaction(
            type="sale",
            status=status,
            user_id=user_id,
            customer_id=customer_id,
            total_cents=total,
            discount_cents=discount,
            final_total_cents=final_total,
            notes=notes,
            is_delivery=bool(is_delivery),
            timestamp=now_ms(),
        )
        db.session.add(sale)
        db.session.flush()

        for tender in tenders:
            db.session.add(TransactionPaymentMethod(
                transaction_id=sale.id,
                payment_method=tender.method,
                amount_cents=tender.amount_cents,
            ))

        for line in lines:
            if line.is_manual:
                db.session.add(TransactionItem(
                    transaction_id=sale.id,
                    product_id=None,
                    quantity=line.quantity,
                    price_cents=line.price_cents,
                    item_name=line.name,
                    item_price_cents=line.price_cents,
                ))
                continue

            require_product(line.product_id)
            db.session.add(TransactionItem(
                transaction_id=sale.id,
                product_id=line.product_id,
                quantity=line.quantity,
                price_cents=line.price_cents,
            ))
            adjust_stock(line.product_id, -line.quantity)

    logger.info("Recorded sale %s (%d lines, final_total_cents=%d)", sale.id, len(lines), final_total)
    return sale


def list_pending_sales() -> list[dict]:
    sales = (
        db.session.query(Transaction)
        .filter_by(type="sale", status=SALE_STATUS_PENDING)
        .order_by(Transaction.timestamp.desc(), Transaction.id.desc())
        .all()
    )
    return [
        {
            "id": s.id,
            "seller": s.user.username if s.user else None,
            "customer": s.customer.name if s.customer else None,
            "final_total_cents": s.final_total_cents,
            "timestamp": s.timestamp,
        }
        for s in sales
    ]


def close_pending_sales(ids: list) -> int:
    """
    Move pending sales to closed so they count toward the shift.

    Returns the number of sales closed.

    Raises:
        ValidationError: ids missing or not integers
        NotFoundError: none of the ids is a pending sale
    """
    if not isinstance(ids, list) or not ids:
        raise ValidationError("ids must be a non-empty list")
    sale_ids = [coerce_int(v, "ids[]") for v in ids]

    with unit_of_work():
        sales = (
            db.session.query(Transaction)
            .filter(
                Transaction.id.in_(sale_ids),
                Transaction.type == "sale",
                Transaction.status == SALE_STATUS_PENDING,
            )
            .all()
        )
        if not sales:
            raise NotFoundError("No pending sales found for the given ids")
        for sale in sales:
            sale.status = SALE_STATUS_CLOSED

    return len(sales)


def get_transaction_detail(transaction_id: int) -> dict:
    """Sale with lines, tenders and every return recorded against it."""
    sale = db.session.get(Transaction, transaction_id)
    if not sale:
        raise NotFoundError("Transaction not found")

    return {
        **sale.to_dict(),
        "items": [item.to_dict() for item in sale.items],
        "payment_methods": [pm.to_dict() for pm in sale.payment_methods],
        "returns": [
            {
                **ret.to_dict(),
                "items": [item.to_dict() for item in ret.items],
                "payment_methods": [pm.to_dict() for pm in ret.payment_methods],
            }
            for ret in sale.returns
        ],
    }


def search_transactions(
    *,
    transaction_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    q: str | None = None,
) -> list[dict]:
    """
    Receipt search: exact id, or a whole-day date range, optionally narrowed
    by customer name / cashier username.
    """
    query = (
        db.session.query(Transaction)
        .outerjoin(Customer, Transaction.customer_id == Customer.id)
        .join(User, Transaction.user_id == User.id)
    )

    if transaction_id is not None:
        query = query.filter(Transaction.id == transaction_id)
    elif start_date and end_date:
        start_ms, end_ms = day_bounds_ms(coerce_date(start_date, "startDate"), coerce_date(end_date, "endDate"))
        query = query.filter(Transaction.timestamp.between(start_ms, end_ms))

    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Customer.name.like(pattern), User.username.like(pattern)))

    sales = query.order_by(Transaction.timestamp.desc(), Transaction.id.desc()).all()
    return [
        {
            **s.to_dict(),
            "items": [item.to_dict() for item in s.items],
            "payment_methods": [pm.to_dict() for pm in s.payment_methods],
        }
        for s in sales
    ]
