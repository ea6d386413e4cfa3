# backend/retailpos/services/count_service.py
"""
Physical inventory count service.

WHY: Shelf counts catch shrinkage and data-entry drift. A count snapshots
the system quantity for every product in scope, lets the operator enter
what is physically there, and on finalize sets stock to the counted values
and reports the variance valued at cost.

LIFECYCLE:
1. IN_PROGRESS: items snapshotted, counted quantities being entered
2. COMPLETED: stock updated, items read-only

There is no cancel state. A new count cannot start until the current one is
finalized; the ActiveInventoryCount marker row turns that rule into a
primary-key constraint.

SNAPSHOT: expected_quantity is frozen at start. Sales made while the count
is open are not reflected in it.
"""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import ActiveInventoryCount, InventoryCount, InventoryCountItem
from ..time_utils import utcnow
from ..validation import coerce_int
from .inventory_service import normalize_scope, products_in_scope, set_stock
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


# Count status constants
COUNT_STATUS_IN_PROGRESS = "IN_PROGRESS"
COUNT_STATUS_COMPLETED = "COMPLETED"


def get_worksheet(count_type: str | None, count_scope) -> list[dict]:
    """Printable product list for a prospective count; starts nothing."""
    count_type, count_scope = normalize_scope(count_type, count_scope)
    return [
        {
            "id": p.id,
            "name": p.name,
            "barcode": p.barcode,
            "price_cents": p.price_cents,
            "stock": p.stock,
        }
        for p in products_in_scope(count_type, count_scope)
    ]


def _active_marker() -> ActiveInventoryCount | None:
    return db.session.get(ActiveInventoryCount, ActiveInventoryCount.SLOT)


def get_active_count() -> dict | None:
    """The IN_PROGRESS count with its items, or None."""
    marker = _active_marker()
    if not marker:
        return None
    return get_count_summary(marker.inventory_count_id)


def start_count(
    *,
    user_id: int,
    count_type: str | None = None,
    count_scope=None,
) -> InventoryCount:
    """
    Start a count over the products in scope.

    Args:
        user_id: Operator starting the count
        count_type: "ALL", "CATEGORY" or "SUPPLIER"
        count_scope: Category name or supplier id

    Returns:
        InventoryCount: The new IN_PROGRESS count

    Raises:
        ConflictError: A count is already in progress
        NotFoundError: No products match the scope (nothing is persisted)
        ValidationError: Unknown count type
    """
    count_type, count_scope = normalize_scope(count_type, count_scope)

    with unit_of_work():
        if _active_marker():
            raise ConflictError("An inventory count is already in progress.")

        products = products_in_scope(count_type, count_scope)
        if not products:
            raise NotFoundError("No products found for the selected filter.")

        count = InventoryCount(
            user_id=user_id,
            count_type=count_type,
            count_scope=count_scope,
            status=COUNT_STATUS_IN_PROGRESS,
            created_at=utcnow(),
        )
        db.session.add(count)
        db.session.flush()

        # A concurrent start that passed the check above collides here
        db.session.add(ActiveInventoryCount(slot=ActiveInventoryCount.SLOT, inventory_count_id=count.id))
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError("An inventory count is already in progress.")

        db.session.add_all([
            InventoryCountItem(
                inventory_count_id=count.id,
                product_id=p.id,
                expected_quantity=p.stock,
            )
            for p in products
        ])

    logger.info("Started inventory count %s (%s %s, %d items)", count.id, count_type, count_scope or "", len(products))
    return count


def update_item_count(item_id: int, counted_quantity) -> InventoryCountItem:
    """
    Record (or clear, with None) the counted quantity of one item.

    Repeating the same value leaves the row unchanged; expected_quantity is
    never written here.

    Raises:
        NotFoundError: Unknown item
        ConflictError: The count is already finalized
        ValidationError: counted_quantity is not an integer or null
    """
    counted = coerce_int(counted_quantity, "counted_quantity", allow_none=True)

    with unit_of_work():
        item = db.session.get(InventoryCountItem, item_id)
        if not item:
            raise NotFoundError("Inventory count item not found")

        if item.inventory_count.status != COUNT_STATUS_IN_PROGRESS:
            raise ConflictError("Cannot update items of a finalized count")

        item.counted_quantity = counted

    return item


def finalize_count(count_id: int, *, user_id: int | None = None) -> dict:
    """
    Apply a count to stock.

    For every item the effective count is counted_quantity, or
    expected_quantity when never entered (zero variance). Stock is set to
    the effective count (absolute, not incremental) and the variance is
    valued at product cost.

    Returns:
        dict with inventory_count_id, total_variance_value (cents) and
        per-item variance lines

    Raises:
        NotFoundError: Unknown count
        ConflictError: Count already COMPLETED
    """
    with unit_of_work():
        count = db.session.get(InventoryCount, count_id)
        if not count:
            raise NotFoundError(f"Inventory count {count_id} not found")

        if count.status != COUNT_STATUS_IN_PROGRESS:
            raise ConflictError(f"Cannot finalize count in {count.status} status")

        total_variance_value = 0
        lines = []
        for item in count.items:
            counted = item.effective_quantity
            variance = counted - item.expected_quantity
            value = variance * item.product.cost_cents
            total_variance_value += value

            set_stock(item.product_id, counted)

            lines.append({
                "item_id": item.id,
                "product_id": item.product_id,
                "expected_quantity": item.expected_quantity,
                "counted_quantity": counted,
                "variance": variance,
                "variance_value": value,
            })

        count.status = COUNT_STATUS_COMPLETED
        count.finalized_at = utcnow()
        count.total_variance_value = total_variance_value

        marker = _active_marker()
        if marker and marker.inventory_count_id == count.id:
            db.session.delete(marker)

    logger.info(
        "Finalized inventory count %s by user %s: %d items, variance value %d",
        count_id, user_id, len(lines), total_variance_value,
    )
    return {
        "inventory_count_id": count_id,
        "total_variance_value": total_variance_value,
        "items": lines,
    }


def get_count_summary(count_id: int) -> dict:
    """
    Count header with its items.

    Raises:
        NotFoundError: If count not found
    """
    count = db.session.get(InventoryCount, count_id)
    if not count:
        raise NotFoundError(f"Inventory count {count_id} not found")

    items = sorted(count.items, key=lambda i: ((i.product.name if i.product else ""), i.id))
    return {
        **count.to_dict(),
        "items": [item.to_dict() for item in items],
    }


def list_counts(status: str | None = None, limit: int = 50) -> list[dict]:
    query = db.session.query(InventoryCount)
    if status:
        status = status.upper()
        if status not in (COUNT_STATUS_IN_PROGRESS, COUNT_STATUS_COMPLETED):
            raise ValidationError(f"Invalid count status: {status}")
        query = query.filter_by(status=status)
    counts = query.order_by(InventoryCount.created_at.desc(), InventoryCount.id.desc()).limit(limit).all()
    return [c.to_dict() for c in counts]
