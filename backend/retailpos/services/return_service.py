"""
Return Processing Service

WHY: Returns reverse part of an earlier sale: returned catalog units go back
on the shelf and the refund is recorded per tender so shift close can
subtract it from the matching drawer total.

DESIGN PRINCIPLES:
- Returns reference the original sale for traceability
- Manual-sale lines and lines for products no longer in the catalog are
  recorded but never touch stock
- Header, lines, refund tenders and stock increments share one unit of work
"""

from __future__ import annotations

import logging

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Return, ReturnItem, ReturnPaymentMethod, Transaction
from ..time_utils import now_ms
from ..validation import coerce_int, coerce_list
from .inventory_service import adjust_stock
from .sales_service import parse_cart_lines, parse_tenders
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def record_return(
    *,
    original_transaction_id,
    user_id: int,
    items: list,
    payment_methods: list,
    notes: str | None = "Returned from POS",
) -> Return:
    """
    Persist a return and restock the returned catalog units.

    Args:
        original_transaction_id: Sale being returned from
        user_id: Authenticated user processing the return
        items: Returned lines ({product_id, quantity, price_cents, name})
        payment_methods: Refund tenders ({method, amount_cents})

    Returns:
        The Return header; total_amount_cents = sum(price * quantity)

    Raises:
        ValidationError: Missing sale id, items or tenders
        NotFoundError: Original sale does not exist
    """
    if original_transaction_id in (None, "", 0):
        raise ValidationError("original_transaction_id is required")
    original_id = coerce_int(original_transaction_id, "original_transaction_id")

    lines = parse_cart_lines(coerce_list(items, "items"))
    tenders = parse_tenders(coerce_list(payment_methods, "payment_methods"))
    total = sum(line.total_cents for line in lines)

    with unit_of_work():
        if not db.session.get(Transaction, original_id):
            raise NotFoundError(f"Transaction {original_id} not found")

        return_doc = Return(
            original_transaction_id=original_id,
            user_id=user_id,
            total_amount_cents=total,
            notes=notes,
            timestamp=now_ms(),
        )
        db.session.add(return_doc)
        db.session.flush()

        for line in lines:
            # Lines whose product no longer exists are kept as manual lines
            product_id = line.product_id
            if product_id is not None and not db.session.get(Product, product_id):
                product_id = None

            db.session.add(ReturnItem(
                return_id=return_doc.id,
                product_id=product_id,
                item_name=line.name or ("Manual item" if product_id is None else None),
                quantity=line.quantity,
                price_at_return_cents=line.price_cents,
            ))

            if product_id is not None:
                adjust_stock(product_id, line.quantity)

        for tender in tenders:
            db.session.add(ReturnPaymentMethod(
                return_id=return_doc.id,
                payment_method=tender.method,
                amount_cents=tender.amount_cents,
            ))

    logger.info("Recorded return %s against sale %s (total_cents=%d)", return_doc.id, original_id, total)
    return return_doc


def get_return_summary(return_id: int) -> dict:
    return_doc = db.session.get(Return, return_id)
    if not return_doc:
        raise NotFoundError("Return not found")
    return {
        **return_doc.to_dict(),
        "items": [item.to_dict() for item in return_doc.items],
        "payment_methods": [pm.to_dict() for pm in return_doc.payment_methods],
    }
