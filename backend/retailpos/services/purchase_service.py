"""
Purchasing: goods received from suppliers.

Each purchase line increments product stock in the same unit of work as
the header insert. Purchase history also drives SUPPLIER-scoped inventory
counts and the low-stock report's "last supplier".
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import joinedload

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Purchase, PurchaseItem, Supplier
from ..time_utils import utcnow
from ..validation import coerce_cents, coerce_int, coerce_list
from .inventory_service import adjust_stock, require_product
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 100
SEARCH_TYPES = ("invoiceId", "supplierName", "productName", "productBarcode")


def record_purchase(
    *,
    supplier_id,
    user_id: int,
    items: list,
    total_amount_cents=None,
) -> Purchase:
    """
    Persist a purchase and increment stock for every line.

    Raises:
        ValidationError: Missing supplier or items, bad quantities
        NotFoundError: Supplier or product does not exist
    """
    if supplier_id in (None, "", 0):
        raise ValidationError("supplier_id is required")
    supplier_id = coerce_int(supplier_id, "supplier_id")

    parsed = []
    for i, raw in enumerate(coerce_list(items, "items")):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{i}] must be an object")
        product_id = coerce_int(raw.get("product_id"), f"items[{i}].product_id")
        quantity = coerce_int(raw.get("quantity"), f"items[{i}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{i}].quantity must be > 0")
        cost = coerce_cents(raw.get("cost_price_cents"), f"items[{i}].cost_price_cents")
        parsed.append((product_id, quantity, cost))

    total = coerce_cents(total_amount_cents, "total_amount_cents", allow_none=True)
    if total is None:
        total = sum(q * c for _, q, c in parsed)

    with unit_of_work():
        if not db.session.get(Supplier, supplier_id):
            raise NotFoundError(f"Supplier {supplier_id} not found")

        purchase = Purchase(
            supplier_id=supplier_id,
            user_id=user_id,
            total_amount_cents=total,
            created_at=utcnow(),
        )
        db.session.add(purchase)
        db.session.flush()

        for product_id, quantity, cost in parsed:
            require_product(product_id)
            db.session.add(PurchaseItem(
                purchase_id=purchase.id,
                product_id=product_id,
                quantity=quantity,
                cost_price_cents=cost,
            ))
            adjust_stock(product_id, quantity)

    logger.info("Recorded purchase %s from supplier %s (%d lines)", purchase.id, supplier_id, len(parsed))
    return purchase


def list_purchases() -> list[dict]:
    purchases = (
        db.session.query(Purchase)
        .options(joinedload(Purchase.supplier), joinedload(Purchase.user))
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .all()
    )
    return [p.to_dict() for p in purchases]


def get_purchase_items(purchase_id: int) -> list[dict]:
    if not db.session.get(Purchase, purchase_id):
        raise NotFoundError("Purchase not found")
    items = (
        db.session.query(PurchaseItem)
        .filter_by(purchase_id=purchase_id)
        .order_by(PurchaseItem.id)
        .all()
    )
    return [item.to_dict() for item in items]


def search_purchases(term: str | None = None, search_type: str | None = None) -> list[dict]:
    """
    Purchase history search, newest first, capped at SEARCH_LIMIT.

    search_type:
        invoiceId: exact purchase id (ignored when term is not numeric)
        supplierName: supplier name contains term
        productName / productBarcode: any line's product matches
    An empty term lists the most recent purchases.
    """
    query = db.session.query(Purchase).outerjoin(Supplier, Purchase.supplier_id == Supplier.id)
    term = (term or "").strip()

    if term:
        if search_type is not None and search_type not in SEARCH_TYPES:
            raise ValidationError(f"Invalid search type: {search_type}")

        pattern = f"%{term}%"
        if search_type == "invoiceId":
            if term.isdigit():
                query = query.filter(Purchase.id == int(term))
        elif search_type == "supplierName":
            query = query.filter(Supplier.name.like(pattern))
        elif search_type in ("productName", "productBarcode"):
            column = Product.name if search_type == "productName" else Product.barcode
            matching = (
                db.session.query(PurchaseItem.purchase_id)
                .join(Product, PurchaseItem.product_id == Product.id)
                .filter(column.like(pattern))
            )
            query = query.filter(Purchase.id.in_(matching))

    purchases = query.order_by(Purchase.created_at.desc(), Purchase.id.desc()).limit(SEARCH_LIMIT).all()
    return [p.to_dict() for p in purchases]
