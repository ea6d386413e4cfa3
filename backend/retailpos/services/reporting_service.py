# Overview: Service-layer operations for reporting; read-only aggregations over sales, returns, purchases and expenses.

from __future__ import annotations

import math
from collections import OrderedDict

from sqlalchemy import func, or_, select
from sqlalchemy.orm import joinedload

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Expense,
    Product,
    Purchase,
    PurchaseItem,
    Return,
    ReturnItem,
    Supplier,
    Transaction,
    TransactionItem,
)
from ..time_utils import datetime_to_ms, day_bounds_ms, ms_to_datetime, now_ms, to_utc_z
from ..validation import coerce_date

DAY_MS = 24 * 60 * 60 * 1000
VELOCITY_WINDOW_DAYS = 30
RANKING_LIMIT = 5
MAX_PER_PAGE = 500


class ReportError(ValidationError):
    """Bad report parameters (400)."""
    pass


def _closed_sales():
    return (Transaction.type == "sale", Transaction.status == "closed")


def _range_ms(start: str | None, end: str | None, *, required: bool) -> tuple[int, int]:
    if required and (not start or not end):
        raise ReportError("Start date and end date are required.")
    try:
        start_d = coerce_date(start, "start", allow_none=True)
        end_d = coerce_date(end, "end", allow_none=True)
    except ValidationError as exc:
        raise ReportError(exc.message)

    start_ms = day_bounds_ms(start_d)[0] if start_d else 0
    end_ms = day_bounds_ms(end_d)[1] if end_d else now_ms()
    if end_ms < start_ms:
        raise ReportError("end must not precede start")
    return start_ms, end_ms


def sales_summary(*, start: str | None, end: str | None) -> dict:
    """
    Dashboard summary for closed sales between two dates (whole days, UTC).

    COGS uses each product's current cost; manual lines have no cost.
    """
    start_ms, end_ms = _range_ms(start, end, required=True)
    in_range = (*_closed_sales(), Transaction.timestamp.between(start_ms, end_ms))

    header = db.session.query(
        func.count(Transaction.id),
        func.coalesce(func.sum(Transaction.final_total_cents), 0),
    ).filter(*in_range).one()

    items_sold = (
        db.session.query(func.coalesce(func.sum(TransactionItem.quantity), 0))
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .filter(*in_range)
        .scalar()
    )

    total_cogs = (
        db.session.query(func.coalesce(func.sum(TransactionItem.quantity * Product.cost_cents), 0))
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .join(Product, TransactionItem.product_id == Product.id)
        .filter(*in_range)
        .scalar()
    )

    transaction_count = int(header[0] or 0)
    total_revenue = int(header[1] or 0)
    total_cogs = int(total_cogs or 0)

    # Bucket by UTC day in Python; epoch-ms to date conversion is not portable SQL
    daily: OrderedDict[str, int] = OrderedDict()
    for ts, final_total in (
        db.session.query(Transaction.timestamp, Transaction.final_total_cents)
        .filter(*in_range)
        .order_by(Transaction.timestamp.asc())
    ):
        day = ms_to_datetime(ts).date().isoformat()
        daily[day] = daily.get(day, 0) + int(final_total or 0)

    qty = func.sum(TransactionItem.quantity)
    top_products = (
        db.session.query(Product.name, qty.label("total_quantity"))
        .join(TransactionItem, TransactionItem.product_id == Product.id)
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .filter(*in_range)
        .group_by(Product.id, Product.name)
        .order_by(qty.desc(), Product.name.asc())
        .limit(RANKING_LIMIT)
        .all()
    )

    sold = (
        select(TransactionItem.product_id, TransactionItem.quantity)
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .where(*in_range)
        .subquery()
    )
    worst_qty = func.coalesce(func.sum(sold.c.quantity), 0)
    worst_products = (
        db.session.query(Product.name, worst_qty.label("total_quantity"))
        .outerjoin(sold, sold.c.product_id == Product.id)
        .group_by(Product.id, Product.name)
        .order_by(worst_qty.asc(), Product.name.asc())
        .limit(RANKING_LIMIT)
        .all()
    )

    revenue = func.sum(TransactionItem.price_cents * TransactionItem.quantity)
    by_category = (
        db.session.query(Product.category, revenue.label("total_revenue"))
        .join(TransactionItem, TransactionItem.product_id == Product.id)
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .filter(*in_range, Product.category.isnot(None), Product.category != "")
        .group_by(Product.category)
        .order_by(revenue.desc())
        .all()
    )

    return {
        "summary": {
            "transaction_count": transaction_count,
            "total_revenue": total_revenue,
            "total_items_sold": int(items_sold or 0),
            "total_cogs": total_cogs,
            "gross_profit": total_revenue - total_cogs,
        },
        "salesOverTime": [{"date": d, "daily_revenue": v} for d, v in daily.items()],
        "topProducts": [{"name": r.name, "total_quantity": int(r.total_quantity or 0)} for r in top_products],
        "worstProducts": [{"name": r.name, "total_quantity": int(r.total_quantity or 0)} for r in worst_products],
        "salesByCategory": [
            {"category": r.category, "total_revenue": int(r.total_revenue or 0)} for r in by_category
        ],
    }


def reorder_recommendation(stock: int, sales_velocity: int) -> dict:
    """
    Days of cover and reorder quantity from 30-day sales velocity.

    days_of_stock_left is None when nothing sold in the window.
    recommended_reorder_qty = max(0, ceil(velocity - stock)).
    """
    if sales_velocity > 0:
        days_left = round(stock / (sales_velocity / VELOCITY_WINDOW_DAYS), 1)
    else:
        days_left = None
    return {
        "sales_velocity_30d": sales_velocity,
        "days_of_stock_left": days_left,
        "recommended_reorder_qty": max(0, math.ceil(sales_velocity - stock)),
    }


def low_stock_report(*, as_of_ms: int | None = None) -> list[dict]:
    """
    Products below min_stock, most short first, with 30-day velocity and
    the most recent supplier (highest supplier id among its purchases).
    """
    since = (as_of_ms if as_of_ms is not None else now_ms()) - VELOCITY_WINDOW_DAYS * DAY_MS

    sold_30d = (
        select(func.coalesce(func.sum(TransactionItem.quantity), 0))
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .where(
            TransactionItem.product_id == Product.id,
            *_closed_sales(),
            Transaction.timestamp >= since,
        )
        .correlate(Product)
        .scalar_subquery()
    )

    last_supplier = (
        select(Supplier.name)
        .join(Purchase, Purchase.supplier_id == Supplier.id)
        .join(PurchaseItem, PurchaseItem.purchase_id == Purchase.id)
        .where(PurchaseItem.product_id == Product.id)
        .order_by(Supplier.id.desc())
        .limit(1)
        .correlate(Product)
        .scalar_subquery()
    )

    shortage = (Product.min_stock - Product.stock)
    rows = (
        db.session.query(
            Product,
            sold_30d.label("sales_last_30_days"),
            last_supplier.label("supplier_name"),
        )
        .filter(Product.stock < Product.min_stock)
        .order_by(shortage.desc(), Product.name.asc())
        .all()
    )

    report = []
    for product, sales_last_30_days, supplier_name in rows:
        velocity = int(sales_last_30_days or 0)
        report.append({
            "id": product.id,
            "name": product.name,
            "stock": product.stock,
            "min_stock": product.min_stock,
            "shortage": product.min_stock - product.stock,
            "cost_cents": product.cost_cents,
            "supplier_name": supplier_name,
            "sales_last_30_days": velocity,
            **reorder_recommendation(product.stock, velocity),
        })
    return report


def sold_products_report(
    *,
    start: str | None = None,
    end: str | None = None,
    category: str | None = None,
    q: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> dict:
    """
    Per-product sold / returned / net quantities in a date range.

    Only products with at least one closed sale in the range appear.
    Missing start means from the beginning; missing end means now.
    """
    start_ms, end_ms = _range_ms(start, end, required=False)
    page = max(1, int(page or 1))
    per_page = min(MAX_PER_PAGE, max(1, int(per_page or 50)))

    sales_agg = (
        select(
            TransactionItem.product_id.label("product_id"),
            func.sum(TransactionItem.quantity).label("sold_qty"),
            func.sum(TransactionItem.quantity * TransactionItem.price_cents).label("revenue"),
        )
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .where(*_closed_sales(), Transaction.timestamp.between(start_ms, end_ms))
        .group_by(TransactionItem.product_id)
        .subquery()
    )
    returns_agg = (
        select(
            ReturnItem.product_id.label("product_id"),
            func.sum(ReturnItem.quantity).label("returned_qty"),
        )
        .join(Return, ReturnItem.return_id == Return.id)
        .where(Return.timestamp.between(start_ms, end_ms))
        .group_by(ReturnItem.product_id)
        .subquery()
    )

    returned_qty = func.coalesce(returns_agg.c.returned_qty, 0)
    net_qty = (sales_agg.c.sold_qty - returned_qty).label("net_qty")

    query = (
        db.session.query(
            Product.id.label("product_id"),
            Product.name.label("product_name"),
            Product.barcode,
            Product.category,
            Product.stock,
            sales_agg.c.sold_qty,
            sales_agg.c.revenue,
            returned_qty.label("returned_qty"),
            net_qty,
        )
        .join(sales_agg, sales_agg.c.product_id == Product.id)
        .outerjoin(returns_agg, returns_agg.c.product_id == Product.id)
    )

    if category:
        query = query.filter(Product.category == category)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Product.name.like(pattern), Product.barcode.like(pattern)))

    total_count = query.count()
    rows = (
        query.order_by(net_qty.desc(), Product.name.asc())
        .limit(per_page)
        .offset((page - 1) * per_page)
        .all()
    )

    return {
        "data": [
            {
                "product_id": r.product_id,
                "product_name": r.product_name,
                "barcode": r.barcode,
                "category": r.category,
                "stock": r.stock,
                "sold_qty": int(r.sold_qty or 0),
                "revenue": int(r.revenue or 0),
                "returned_qty": int(r.returned_qty or 0),
                "net_qty": int(r.net_qty or 0),
            }
            for r in rows
        ],
        "page": page,
        "perPage": per_page,
        "totalCount": total_count,
    }


def product_history(product_id: int) -> list[dict]:
    """
    Stock movements for one product, newest first: sales (-q), purchases
    (+q) and returns (+q). Count adjustments are not movements and do not
    appear here.
    """
    if not db.session.get(Product, product_id):
        raise NotFoundError("Product not found")

    movements = []

    sales = (
        db.session.query(Transaction.id, Transaction.timestamp, Transaction.customer_id, TransactionItem.quantity)
        .join(TransactionItem, TransactionItem.transaction_id == Transaction.id)
        .filter(TransactionItem.product_id == product_id, *_closed_sales())
    )
    for sale_id, ts, customer_id, quantity in sales:
        movements.append({
            "type": "Sale",
            "related_id": sale_id,
            "timestamp": ts,
            "quantity_change": -quantity,
            "notes": f"Sale to customer #{customer_id}" if customer_id else "Sale",
        })

    purchases = (
        db.session.query(Purchase.id, Purchase.created_at, Purchase.supplier_id, PurchaseItem.quantity)
        .join(PurchaseItem, PurchaseItem.purchase_id == Purchase.id)
        .filter(PurchaseItem.product_id == product_id)
    )
    for purchase_id, created_at, supplier_id, quantity in purchases:
        movements.append({
            "type": "Purchase",
            "related_id": purchase_id,
            "timestamp": datetime_to_ms(created_at),
            "quantity_change": quantity,
            "notes": f"Purchase from supplier #{supplier_id}",
        })

    returns = (
        db.session.query(Return.id, Return.timestamp, Return.original_transaction_id, ReturnItem.quantity)
        .join(ReturnItem, ReturnItem.return_id == Return.id)
        .filter(ReturnItem.product_id == product_id)
    )
    for return_id, ts, original_id, quantity in returns:
        movements.append({
            "type": "Return",
            "related_id": return_id,
            "timestamp": ts,
            "quantity_change": quantity,
            "notes": f"Return on invoice #{original_id}",
        })

    movements.sort(key=lambda m: (m["timestamp"], m["related_id"]), reverse=True)
    return movements


def all_transactions(*, limit: int = 500) -> list[dict]:
    """
    Unified money-movement feed, newest first: closed sales are positive,
    returns, purchases and expenses negative.

    Each source is ordered and limited in SQL, so at most `limit` rows per
    source are loaded before the merge.
    """
    limit = max(1, int(limit))
    feed = []

    sales = (
        db.session.query(Transaction)
        .options(joinedload(Transaction.customer))
        .filter(*_closed_sales())
        .order_by(Transaction.timestamp.desc(), Transaction.id.desc())
        .limit(limit)
    )
    for sale in sales:
        feed.append({
            "type": "sale",
            "id": sale.id,
            "amount_cents": sale.final_total_cents,
            "timestamp": sale.timestamp,
            "description": f"Sale #{sale.id}",
            "party": sale.customer.name if sale.customer else None,
        })

    returns = db.session.query(Return).order_by(Return.timestamp.desc(), Return.id.desc()).limit(limit)
    for ret in returns:
        feed.append({
            "type": "return",
            "id": ret.id,
            "amount_cents": -ret.total_amount_cents,
            "timestamp": ret.timestamp,
            "description": f"Return for sale #{ret.original_transaction_id}",
            "party": None,
        })

    purchases = (
        db.session.query(Purchase)
        .options(joinedload(Purchase.supplier))
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .limit(limit)
    )
    for purchase in purchases:
        supplier_name = purchase.supplier.name if purchase.supplier else None
        feed.append({
            "type": "purchase",
            "id": purchase.id,
            "amount_cents": -purchase.total_amount_cents,
            "timestamp": datetime_to_ms(purchase.created_at),
            "description": f"Purchase from {supplier_name}",
            "party": supplier_name,
        })

    expenses = db.session.query(Expense).order_by(Expense.created_at.desc(), Expense.id.desc()).limit(limit)
    for expense in expenses:
        feed.append({
            "type": "expense",
            "id": expense.id,
            "amount_cents": -expense.amount_cents,
            "timestamp": datetime_to_ms(expense.created_at),
            "description": expense.description,
            "party": expense.category,
        })

    feed.sort(key=lambda row: (row["timestamp"], row["id"]), reverse=True)
    feed = feed[:limit]
    for row in feed:
        row["date"] = to_utc_z(ms_to_datetime(row["timestamp"]))
    return feed
