from __future__ import annotations

from ..extensions import db


class Transaction(db.Model):
    """
    Sale header.

    `timestamp` is epoch milliseconds. `status` is "closed" for completed
    sales and "pending" for sales held open (e.g. deliveries awaiting
    payment); only closed sales count toward shift totals and reports.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_type_status_ts", "type", "status", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False, default="sale")
    status = db.Column(db.String(16), nullable=False, default="closed", index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    final_total_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    is_delivery = db.Column(db.Boolean, nullable=False, default=False)

    timestamp = db.Column(db.BigInteger, nullable=False, index=True)

    user = db.relationship("User")
    customer = db.relationship("Customer")
    items = db.relationship(
        "TransactionItem", backref="transaction", lazy=True,
        cascade="all, delete-orphan", order_by="TransactionItem.id",
    )
    payment_methods = db.relationship(
        "TransactionPaymentMethod", backref="transaction", lazy=True,
        cascade="all, delete-orphan", order_by="TransactionPaymentMethod.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "total_cents": self.total_cents,
            "discount_cents": self.discount_cents,
            "final_total_cents": self.final_total_cents,
            "notes": self.notes,
            "is_delivery": self.is_delivery,
            "timestamp": self.timestamp,
        }


class TransactionItem(db.Model):
    """
    Sale line. Manual (non-catalog) lines have product_id NULL and carry
    their own item_name / item_price_cents.
    """
    __tablename__ = "transaction_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    item_name = db.Column(db.String(255), nullable=True)
    item_price_cents = db.Column(db.Integer, nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "name": self.product.name if self.product else self.item_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.price_cents * self.quantity,
        }


class TransactionPaymentMethod(db.Model):
    __tablename__ = "transaction_payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    payment_method = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {"method": self.payment_method, "amount_cents": self.amount_cents}


class Return(db.Model):
    """
    Customer return against an earlier sale. `timestamp` is epoch ms.
    """
    __tablename__ = "returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    original_transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.BigInteger, nullable=False, index=True)

    user = db.relationship("User")
    original_transaction = db.relationship("Transaction", backref=db.backref("returns", lazy=True, order_by="Return.id"))
    items = db.relationship(
        "ReturnItem", backref="return_doc", lazy=True,
        cascade="all, delete-orphan", order_by="ReturnItem.id",
    )
    payment_methods = db.relationship(
        "ReturnPaymentMethod", backref="return_doc", lazy=True,
        cascade="all, delete-orphan", order_by="ReturnPaymentMethod.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original_transaction_id": self.original_transaction_id,
            "user_id": self.user_id,
            "return_user": self.user.username if self.user else None,
            "total_amount_cents": self.total_amount_cents,
            "notes": self.notes,
            "timestamp": self.timestamp,
        }


class ReturnItem(db.Model):
    __tablename__ = "return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    # NULL for manual-sale returns
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    item_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    price_at_return_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "product_id": self.product_id,
            "name": self.product.name if self.product else self.item_name,
            "quantity": self.quantity,
            "price_at_return_cents": self.price_at_return_cents,
        }


class ReturnPaymentMethod(db.Model):
    __tablename__ = "return_payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    payment_method = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {"method": self.payment_method, "amount_cents": self.amount_cents}
