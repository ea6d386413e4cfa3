from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class InventoryCount(db.Model):
    """
    Physical stock count session.

    LIFECYCLE:
    - IN_PROGRESS: items snapshotted, operator entering counted quantities
    - COMPLETED: stock set to counted values, items frozen

    At most one IN_PROGRESS count exists; see ActiveInventoryCount.
    """
    __tablename__ = "inventory_counts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    count_type = db.Column(db.String(16), nullable=False, default="ALL")  # ALL, CATEGORY, SUPPLIER
    count_scope = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="IN_PROGRESS", index=True)

    # Cents, set on finalize
    total_variance_value = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False)
    finalized_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship("User")
    items = db.relationship(
        "InventoryCountItem", backref="inventory_count", lazy=True,
        cascade="all, delete-orphan", order_by="InventoryCountItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "count_type": self.count_type,
            "count_scope": self.count_scope,
            "status": self.status,
            "total_variance_value": self.total_variance_value,
            "created_at": to_utc_z(self.created_at),
            "finalized_at": to_utc_z(self.finalized_at) if self.finalized_at else None,
        }


class InventoryCountItem(db.Model):
    """
    One product in a count. expected_quantity is the stock at count start
    and never changes; counted_quantity is NULL until entered.
    """
    __tablename__ = "inventory_count_items"
    __table_args__ = (
        db.UniqueConstraint("inventory_count_id", "product_id", name="uq_count_items_count_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_count_id = db.Column(db.Integer, db.ForeignKey("inventory_counts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    expected_quantity = db.Column(db.Integer, nullable=False)
    counted_quantity = db.Column(db.Integer, nullable=True)

    product = db.relationship("Product")

    @property
    def effective_quantity(self) -> int:
        """Counted value, or the expected snapshot when never counted."""
        if self.counted_quantity is None:
            return self.expected_quantity
        return self.counted_quantity

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "inventory_count_id": self.inventory_count_id,
            "product_id": self.product_id,
            "name": product.name if product else None,
            "barcode": product.barcode if product else None,
            "cost_cents": product.cost_cents if product else None,
            "expected_quantity": self.expected_quantity,
            "counted_quantity": self.counted_quantity,
            "variance": self.effective_quantity - self.expected_quantity,
        }


class ActiveInventoryCount(db.Model):
    """
    Single-row marker for the IN_PROGRESS count.

    `slot` is always 1, so a second concurrent start collides on the primary
    key instead of slipping past an existence check. The row is deleted
    when the count is finalized.
    """
    __tablename__ = "active_inventory_count"

    SLOT = 1

    slot = db.Column(db.Integer, primary_key=True, autoincrement=False)
    inventory_count_id = db.Column(
        db.Integer, db.ForeignKey("inventory_counts.id"), nullable=False, unique=True
    )
