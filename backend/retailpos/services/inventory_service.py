# Overview: Stock primitives and count-scope product selection.

"""
Stock mutation helpers.

Product.stock is a running balance. Increments and decrements are issued as
a single `UPDATE products SET stock = stock + :delta` so the arithmetic runs
inside the database; concurrent writers are serialized by the engine's row
locking rather than by application-level locks.
"""

from __future__ import annotations

from sqlalchemy import select, update

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Purchase, PurchaseItem


COUNT_TYPE_ALL = "ALL"
COUNT_TYPE_CATEGORY = "CATEGORY"
COUNT_TYPE_SUPPLIER = "SUPPLIER"
COUNT_TYPES = (COUNT_TYPE_ALL, COUNT_TYPE_CATEGORY, COUNT_TYPE_SUPPLIER)


def require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def adjust_stock(product_id: int, delta: int) -> None:
    """Server-side `stock = stock + delta` for one product."""
    db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + delta)
    )


def set_stock(product_id: int, quantity: int) -> None:
    """Absolute stock set, used when a count is finalized."""
    db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=quantity)
    )


def normalize_scope(count_type: str | None, count_scope) -> tuple[str, str | None]:
    """
    Validate a count scope. A CATEGORY or SUPPLIER type without a scope
    value falls back to ALL.
    """
    count_type = (count_type or COUNT_TYPE_ALL).strip().upper()
    if count_type not in COUNT_TYPES:
        raise ValidationError(f"Invalid count type: {count_type}")

    scope = None if count_scope in (None, "") else str(count_scope).strip()
    if count_type != COUNT_TYPE_ALL and not scope:
        return COUNT_TYPE_ALL, None
    if count_type == COUNT_TYPE_SUPPLIER and not scope.isdigit():
        raise ValidationError("count_scope must be a supplier id for SUPPLIER counts")
    return count_type, scope if count_type != COUNT_TYPE_ALL else None


def products_in_scope(count_type: str, count_scope: str | None) -> list[Product]:
    """
    Products covered by a count scope, ordered by name.

    SUPPLIER scope means every product ever received from that supplier
    (resolved through purchase history, not a product column).
    """
    query = db.session.query(Product)

    if count_type == COUNT_TYPE_CATEGORY:
        query = query.filter(Product.category == count_scope)
    elif count_type == COUNT_TYPE_SUPPLIER:
        supplied = (
            select(PurchaseItem.product_id)
            .join(Purchase, PurchaseItem.purchase_id == Purchase.id)
            .where(Purchase.supplier_id == int(count_scope))
            .distinct()
        )
        query = query.filter(Product.id.in_(supplied))

    return query.order_by(Product.name.asc(), Product.id.asc()).all()
