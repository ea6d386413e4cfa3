"""
Reporting aggregator tests.

Verifies:
- Sales summary totals, COGS at current cost, rankings and category revenue
- Low stock velocity, days of cover, reorder quantity and last supplier
- Sold-products netting of returns, filtering and pagination
- Product movement history and the unified money feed
"""

from datetime import date, datetime, timezone

import pytest

from retailpos.errors import NotFoundError, ValidationError
from retailpos.extensions import db
from retailpos.models import Supplier
from retailpos.services import expense_service, purchase_service, reporting_service, return_service, sales_service
from retailpos.services.reporting_service import ReportError, reorder_recommendation


def _today():
    return datetime.now(timezone.utc).date().isoformat()


def _sell(user_id, lines, method="cash"):
    total = sum(l["quantity"] * l["price_cents"] for l in lines)
    return sales_service.record_sale(
        user_id=user_id,
        items=lines,
        payment_methods=[{"method": method, "amount_cents": total}],
    )


# =============================================================================
# SALES SUMMARY
# =============================================================================


class TestSalesSummary:

    def test_totals_and_rankings(self, db_session, cashier, make_product):
        cola = make_product("Cola", stock=50, cost_cents=300, price_cents=500, category="Beverages")
        bread = make_product("Bread", stock=50, cost_cents=100, price_cents=200, category="Bakery")
        make_product("Unsold", stock=5, cost_cents=1, price_cents=2)

        _sell(cashier.id, [
            {"product_id": cola.id, "quantity": 4, "price_cents": 500},
            {"product_id": bread.id, "quantity": 1, "price_cents": 200},
        ])
        _sell(cashier.id, [
            {"product_id": None, "name": "Bag", "quantity": 1, "price_cents": 50},
        ])

        report = reporting_service.sales_summary(start=_today(), end=_today())
        summary = report["summary"]

        assert summary["transaction_count"] == 2
        assert summary["total_revenue"] == 4 * 500 + 200 + 50
        assert summary["total_items_sold"] == 6
        assert summary["total_cogs"] == 4 * 300 + 100
        assert summary["gross_profit"] == summary["total_revenue"] - summary["total_cogs"]

        assert report["salesOverTime"] == [{"date": _today(), "daily_revenue": 2250}]
        assert report["topProducts"][0] == {"name": "Cola", "total_quantity": 4}
        assert report["worstProducts"][0] == {"name": "Unsold", "total_quantity": 0}
        assert report["salesByCategory"] == [
            {"category": "Beverages", "total_revenue": 2000},
            {"category": "Bakery", "total_revenue": 200},
        ]

    def test_pending_sales_excluded(self, db_session, cashier, make_product):
        p = make_product(stock=10, price_cents=100)
        sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 100}],
            payment_methods=[{"method": "credit", "amount_cents": 100}],
            status="pending",
        )

        report = reporting_service.sales_summary(start=_today(), end=_today())
        assert report["summary"]["transaction_count"] == 0
        assert report["summary"]["total_revenue"] == 0

    def test_dates_required(self, db_session):
        with pytest.raises(ReportError):
            reporting_service.sales_summary(start=None, end=_today())

    def test_bad_date_is_report_error(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.sales_summary(start="2024-13-40", end="2024-01-01")


# =============================================================================
# LOW STOCK
# =============================================================================


class TestLowStock:

    @pytest.mark.parametrize(
        "stock,velocity,days_left,reorder",
        [
            (4, 30, 4.0, 26),
            (10, 45, 6.7, 35),
            (0, 0, None, 0),
            (50, 20, 75.0, 0),
        ],
    )
    def test_reorder_recommendation(self, stock, velocity, days_left, reorder):
        rec = reorder_recommendation(stock, velocity)
        assert rec["days_of_stock_left"] == days_left
        assert rec["recommended_reorder_qty"] == reorder

    def test_report(self, db_session, cashier, make_product):
        fast = make_product("Fast mover", stock=32, min_stock=10)
        idle = make_product("Idle", stock=0, min_stock=5)
        make_product("Healthy", stock=20, min_stock=5)

        s1 = Supplier(name="First Supplier")
        s2 = Supplier(name="Second Supplier")
        db.session.add_all([s1, s2])
        db.session.commit()

        _sell(cashier.id, [{"product_id": fast.id, "quantity": 30, "price_cents": 100}])
        for s in (s1, s2):
            purchase_service.record_purchase(
                supplier_id=s.id,
                user_id=cashier.id,
                items=[{"product_id": fast.id, "quantity": 1, "cost_price_cents": 50}],
            )

        report = reporting_service.low_stock_report()

        assert [r["name"] for r in report] == ["Fast mover", "Idle"]
        fast_row, idle_row = report
        assert fast_row["stock"] == 4
        assert fast_row["shortage"] == 6
        assert fast_row["sales_last_30_days"] == 30
        assert fast_row["days_of_stock_left"] == 4.0
        assert fast_row["recommended_reorder_qty"] == 26
        assert fast_row["supplier_name"] == "Second Supplier"

        assert idle_row["days_of_stock_left"] is None
        assert idle_row["recommended_reorder_qty"] == 0
        assert idle_row["supplier_name"] is None

    def test_pending_sales_not_counted_as_demand(self, db_session, cashier, make_product):
        p = make_product("On credit", stock=12, min_stock=10)
        sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 8, "price_cents": 100}],
            payment_methods=[{"method": "credit", "amount_cents": 800}],
            status="pending",
        )

        (row,) = reporting_service.low_stock_report()

        assert row["stock"] == 4
        assert row["sales_last_30_days"] == 0
        assert row["days_of_stock_left"] is None
        assert row["recommended_reorder_qty"] == 0


# =============================================================================
# SOLD PRODUCTS
# =============================================================================


class TestSoldProducts:

    def test_net_quantities_and_paging(self, db_session, cashier, make_product):
        a = make_product("Apple", stock=50, category="Fruit", barcode="1111")
        b = make_product("Banana", stock=50, category="Fruit", barcode="2222")
        make_product("Never sold", stock=50, category="Fruit")

        sale = _sell(cashier.id, [
            {"product_id": a.id, "quantity": 5, "price_cents": 100},
            {"product_id": b.id, "quantity": 1, "price_cents": 80},
        ])
        return_service.record_return(
            original_transaction_id=sale.id,
            user_id=cashier.id,
            items=[{"product_id": a.id, "quantity": 2, "price_cents": 100}],
            payment_methods=[{"method": "cash", "amount_cents": 200}],
        )

        report = reporting_service.sold_products_report(start=_today(), end=_today())

        assert report["totalCount"] == 2
        apple = report["data"][0]
        assert apple["product_name"] == "Apple"
        assert (apple["sold_qty"], apple["returned_qty"], apple["net_qty"], apple["revenue"]) == (5, 2, 3, 500)
        assert report["data"][1]["product_name"] == "Banana"

        page2 = reporting_service.sold_products_report(page=2, per_page=1)
        assert page2["page"] == 2
        assert page2["perPage"] == 1
        assert [r["product_name"] for r in page2["data"]] == ["Banana"]

        by_barcode = reporting_service.sold_products_report(q="2222")
        assert [r["product_name"] for r in by_barcode["data"]] == ["Banana"]

        other_category = reporting_service.sold_products_report(category="Dairy")
        assert other_category["totalCount"] == 0


# =============================================================================
# HISTORY AND FEED
# =============================================================================


class TestHistoryAndFeed:

    def test_product_history(self, db_session, cashier, supplier, make_product):
        p = make_product("Tea", stock=0)
        purchase_service.record_purchase(
            supplier_id=supplier.id,
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 10, "cost_price_cents": 100}],
        )
        sale = _sell(cashier.id, [{"product_id": p.id, "quantity": 4, "price_cents": 150}])
        return_service.record_return(
            original_transaction_id=sale.id,
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 150}],
            payment_methods=[{"method": "cash", "amount_cents": 150}],
        )

        history = reporting_service.product_history(p.id)

        assert sorted((m["type"], m["quantity_change"]) for m in history) == [
            ("Purchase", 10), ("Return", 1), ("Sale", -4),
        ]
        timestamps = [m["timestamp"] for m in history]
        assert timestamps == sorted(timestamps, reverse=True)
        assert sum(m["quantity_change"] for m in history) == 7

    def test_product_history_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            reporting_service.product_history(31337)

    def test_all_transactions_signs(self, db_session, cashier, supplier, make_product):
        p = make_product("Tea", stock=10)
        sale = _sell(cashier.id, [{"product_id": p.id, "quantity": 2, "price_cents": 300}])
        return_service.record_return(
            original_transaction_id=sale.id,
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 300}],
            payment_methods=[{"method": "cash", "amount_cents": 300}],
        )
        purchase_service.record_purchase(
            supplier_id=supplier.id,
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 5, "cost_price_cents": 200}],
        )
        expense_service.create_expense(
            {"description": "Rent", "amount_cents": 5000, "expense_date": date.today().isoformat()},
            user_id=cashier.id,
        )

        feed = reporting_service.all_transactions()

        by_type = {row["type"]: row["amount_cents"] for row in feed}
        assert by_type == {"sale": 600, "return": -300, "purchase": -1000, "expense": -5000}
        assert all(row["date"].endswith("Z") for row in feed)

        assert len(reporting_service.all_transactions(limit=2)) == 2

    def test_limited_feed_is_newest_slice(self, db_session, cashier, supplier, make_product):
        p = make_product("Tea", stock=100)
        for i in range(4):
            _sell(cashier.id, [{"product_id": p.id, "quantity": 1, "price_cents": 100 + i}])
            purchase_service.record_purchase(
                supplier_id=supplier.id,
                user_id=cashier.id,
                items=[{"product_id": p.id, "quantity": 1, "cost_price_cents": 50 + i}],
            )
            expense_service.create_expense(
                {"description": f"Tip {i}", "amount_cents": 10 + i, "expense_date": date.today().isoformat()},
                user_id=cashier.id,
            )

        full = reporting_service.all_transactions()
        limited = reporting_service.all_transactions(limit=3)

        assert len(full) == 12
        assert [(r["type"], r["id"]) for r in limited] == [(r["type"], r["id"]) for r in full[:3]]
