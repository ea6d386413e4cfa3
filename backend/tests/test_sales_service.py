"""
Sale, return and purchase recorder tests.

Verifies:
- Catalog lines move stock by exactly the line quantity
- Manual lines are stored but never touch stock
- A failure anywhere in the write leaves no header, lines or stock change
- Pending sales can be listed and closed
"""

import pytest

from retailpos.errors import NotFoundError, ValidationError
from retailpos.extensions import db
from retailpos.models import (
    Product,
    Purchase,
    Return,
    ReturnItem,
    Transaction,
    TransactionItem,
    TransactionPaymentMethod,
)
from retailpos.services import purchase_service, return_service, sales_service


def _stock(product_id):
    return db.session.get(Product, product_id).stock


# =============================================================================
# SALES
# =============================================================================


class TestRecordSale:

    def test_catalog_line_decrements_stock(self, db_session, cashier, make_product):
        p = make_product("Cola", stock=10, price_cents=500)

        sale = sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 3, "price_cents": 500}],
            payment_methods=[{"method": "cash", "amount_cents": 1500}],
        )

        assert _stock(p.id) == 7
        assert sale.total_cents == 1500
        assert sale.final_total_cents == 1500
        assert sale.status == "closed"
        assert sale.timestamp > 0

    def test_manual_lines_do_not_touch_stock(self, db_session, cashier, make_product):
        p = make_product("Chips", stock=10)

        sale = sales_service.record_sale(
            user_id=cashier.id,
            items=[
                {"product_id": None, "name": "Gift wrap", "quantity": 1, "price_cents": 200},
                {"id": 0, "name": "Bag", "quantity": 2, "price_cents": 50},
                {"product_id": p.id, "quantity": 3, "price_cents": 150},
            ],
            payment_methods=[{"method": "cash", "amount_cents": 750}],
        )

        assert _stock(p.id) == 7
        items = db.session.query(TransactionItem).filter_by(transaction_id=sale.id).all()
        assert len(items) == 3
        manual = [i for i in items if i.product_id is None]
        assert sorted(i.item_name for i in manual) == ["Bag", "Gift wrap"]
        assert all(i.item_price_cents == i.price_cents for i in manual)

    def test_manual_line_without_name_gets_default(self, db_session, cashier):
        sale = sales_service.record_sale(
            user_id=cashier.id,
            items=[{"quantity": 1, "price_cents": 100}],
            payment_methods=[{"method": "card", "amount_cents": 100}],
        )
        item = db.session.query(TransactionItem).filter_by(transaction_id=sale.id).one()
        assert item.item_name == "Manual item"

    def test_split_tender_rows(self, db_session, cashier, make_product):
        p = make_product(stock=5, price_cents=1000)

        sale = sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 1000}],
            payment_methods=[
                {"method": "cash", "amount_cents": 400},
                {"method": "Card", "amount_cents": 600},
            ],
        )

        rows = db.session.query(TransactionPaymentMethod).filter_by(transaction_id=sale.id).all()
        assert sorted((r.payment_method, r.amount_cents) for r in rows) == [("card", 600), ("cash", 400)]

    def test_discount_sets_final_total(self, db_session, cashier, make_product):
        p = make_product(stock=5, price_cents=1000)

        sale = sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 2, "price_cents": 1000}],
            payment_methods=[{"method": "cash", "amount_cents": 1800}],
            discount_cents=200,
        )

        assert sale.total_cents == 2000
        assert sale.final_total_cents == 1800

    def test_empty_cart_rejected(self, db_session, cashier):
        with pytest.raises(ValidationError):
            sales_service.record_sale(
                user_id=cashier.id,
                items=[],
                payment_methods=[{"method": "cash", "amount_cents": 0}],
            )
        assert db.session.query(Transaction).count() == 0

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2.0", "1e3", True])
    def test_bad_quantity_rejected(self, db_session, cashier, make_product, quantity):
        p = make_product(stock=5)
        with pytest.raises(ValidationError):
            sales_service.record_sale(
                user_id=cashier.id,
                items=[{"product_id": p.id, "quantity": quantity, "price_cents": 100}],
                payment_methods=[{"method": "cash", "amount_cents": 100}],
            )
        assert _stock(p.id) == 5

    def test_unknown_payment_method_rejected(self, db_session, cashier, make_product):
        p = make_product(stock=5)
        with pytest.raises(ValidationError):
            sales_service.record_sale(
                user_id=cashier.id,
                items=[{"product_id": p.id, "quantity": 1, "price_cents": 100}],
                payment_methods=[{"method": "bitcoin", "amount_cents": 100}],
            )

    def test_unknown_product_rolls_back_everything(self, db_session, cashier, make_product):
        p = make_product(stock=10)

        with pytest.raises(NotFoundError):
            sales_service.record_sale(
                user_id=cashier.id,
                items=[
                    {"product_id": p.id, "quantity": 2, "price_cents": 100},
                    {"product_id": 99999, "quantity": 1, "price_cents": 100},
                ],
                payment_methods=[{"method": "cash", "amount_cents": 300}],
            )

        assert _stock(p.id) == 10
        assert db.session.query(Transaction).count() == 0
        assert db.session.query(TransactionItem).count() == 0
        assert db.session.query(TransactionPaymentMethod).count() == 0

    def test_unknown_customer_rejected(self, db_session, cashier, make_product):
        p = make_product(stock=10)
        with pytest.raises(NotFoundError):
            sales_service.record_sale(
                user_id=cashier.id,
                items=[{"product_id": p.id, "quantity": 1, "price_cents": 100}],
                payment_methods=[{"method": "cash", "amount_cents": 100}],
                customer_id=4242,
            )
        assert _stock(p.id) == 10


class TestPendingSales:

    def test_pending_sales_listed_and_closed(self, db_session, cashier, customer, make_product):
        p = make_product(stock=10)
        pending = sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 150}],
            payment_methods=[{"method": "credit", "amount_cents": 150}],
            customer_id=customer.id,
            status="pending",
        )

        listed = sales_service.list_pending_sales()
        assert [s["id"] for s in listed] == [pending.id]
        assert listed[0]["customer"] == "Mona"
        assert listed[0]["seller"] == "cashier1"

        assert sales_service.close_pending_sales([pending.id]) == 1
        assert db.session.get(Transaction, pending.id).status == "closed"
        assert sales_service.list_pending_sales() == []

    def test_close_without_pending_match_is_not_found(self, db_session, cashier, make_product):
        p = make_product(stock=10)
        closed = sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 150}],
            payment_methods=[{"method": "cash", "amount_cents": 150}],
        )
        with pytest.raises(NotFoundError):
            sales_service.close_pending_sales([closed.id, 777])

    def test_close_requires_ids(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.close_pending_sales([])

    def test_invalid_status_rejected(self, db_session, cashier):
        with pytest.raises(ValidationError):
            sales_service.record_sale(
                user_id=cashier.id,
                items=[{"quantity": 1, "price_cents": 100}],
                payment_methods=[{"method": "cash", "amount_cents": 100}],
                status="void",
            )


class TestTransactionLookup:

    def test_detail_includes_returns(self, db_session, cashier, make_product):
        p = make_product("Soap", stock=10, price_cents=300)
        sale = sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 2, "price_cents": 300}],
            payment_methods=[{"method": "cash", "amount_cents": 600}],
        )
        return_service.record_return(
            original_transaction_id=sale.id,
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 300}],
            payment_methods=[{"method": "cash", "amount_cents": 300}],
        )

        detail = sales_service.get_transaction_detail(sale.id)

        assert detail["id"] == sale.id
        assert len(detail["items"]) == 1
        assert detail["payment_methods"] == [{"method": "cash", "amount_cents": 600}]
        assert len(detail["returns"]) == 1
        assert detail["returns"][0]["total_amount_cents"] == 300
        assert detail["returns"][0]["payment_methods"] == [{"method": "cash", "amount_cents": 300}]

    def test_detail_unknown_id(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.get_transaction_detail(12345)

    def test_search_by_id(self, db_session, cashier, make_product):
        p = make_product(stock=10)
        first = sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 100}],
            payment_methods=[{"method": "cash", "amount_cents": 100}],
        )
        sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 100}],
            payment_methods=[{"method": "cash", "amount_cents": 100}],
        )

        results = sales_service.search_transactions(transaction_id=first.id)
        assert [r["id"] for r in results] == [first.id]

    def test_search_bad_date_is_validation_error(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.search_transactions(start_date="yesterday", end_date="2024-01-01")


# =============================================================================
# RETURNS
# =============================================================================


class TestRecordReturn:

    def _sale(self, cashier, product, quantity=3):
        return sales_service.record_sale(
            user_id=cashier.id,
            items=[{"product_id": product.id, "quantity": quantity, "price_cents": 200}],
            payment_methods=[{"method": "cash", "amount_cents": quantity * 200}],
        )

    def test_return_restocks_catalog_line(self, db_session, cashier, make_product):
        p = make_product(stock=10)
        sale = self._sale(cashier, p)
        assert _stock(p.id) == 7

        ret = return_service.record_return(
            original_transaction_id=sale.id,
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 2, "price_cents": 200}],
            payment_methods=[{"method": "cash", "amount_cents": 400}],
        )

        assert _stock(p.id) == 9
        assert ret.total_amount_cents == 400
        assert ret.notes == "Returned from POS"

    def test_return_total_is_sum_of_lines(self, db_session, cashier, make_product):
        p = make_product(stock=10)
        sale = self._sale(cashier, p)

        ret = return_service.record_return(
            original_transaction_id=sale.id,
            user_id=cashier.id,
            items=[
                {"product_id": p.id, "quantity": 1, "price_cents": 200},
                {"product_id": None, "name": "Gift wrap", "quantity": 2, "price_cents": 75},
            ],
            payment_methods=[{"method": "wallet", "amount_cents": 350}],
        )

        assert ret.total_amount_cents == 350
        assert _stock(p.id) == 8
        names = {i.item_name for i in db.session.query(ReturnItem).filter_by(return_id=ret.id)}
        assert "Gift wrap" in names

    @pytest.mark.parametrize("stale_id", [99999, 0])
    def test_return_line_for_missing_product_is_kept_without_stock(
        self, db_session, cashier, make_product, stale_id,
    ):
        p = make_product(stock=10)
        sale = self._sale(cashier, p, quantity=1)

        ret = return_service.record_return(
            original_transaction_id=sale.id,
            user_id=cashier.id,
            items=[{"product_id": stale_id, "name": "old manual", "quantity": 1, "price_cents": 100}],
            payment_methods=[{"method": "cash", "amount_cents": 100}],
        )

        assert ret.total_amount_cents == 100
        assert _stock(p.id) == 9
        (item,) = db.session.query(ReturnItem).filter_by(return_id=ret.id).all()
        assert item.product_id is None
        assert item.item_name == "old manual"
        assert item.price_at_return_cents == 100

    def test_return_requires_payment(self, db_session, cashier, make_product):
        p = make_product(stock=10)
        sale = self._sale(cashier, p)
        with pytest.raises(ValidationError):
            return_service.record_return(
                original_transaction_id=sale.id,
                user_id=cashier.id,
                items=[{"product_id": p.id, "quantity": 1, "price_cents": 200}],
                payment_methods=[],
            )
        assert _stock(p.id) == 7

    def test_return_requires_original_id(self, db_session, cashier, make_product):
        p = make_product(stock=10)
        with pytest.raises(ValidationError):
            return_service.record_return(
                original_transaction_id=None,
                user_id=cashier.id,
                items=[{"product_id": p.id, "quantity": 1, "price_cents": 200}],
                payment_methods=[{"method": "cash", "amount_cents": 200}],
            )

    def test_return_against_unknown_sale(self, db_session, cashier, make_product):
        p = make_product(stock=10)
        with pytest.raises(NotFoundError):
            return_service.record_return(
                original_transaction_id=999,
                user_id=cashier.id,
                items=[{"product_id": p.id, "quantity": 1, "price_cents": 200}],
                payment_methods=[{"method": "cash", "amount_cents": 200}],
            )
        assert _stock(p.id) == 10
        assert db.session.query(Return).count() == 0

    def test_return_summary(self, db_session, cashier, make_product):
        p = make_product(stock=10)
        sale = self._sale(cashier, p)
        ret = return_service.record_return(
            original_transaction_id=sale.id,
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 1, "price_cents": 200}],
            payment_methods=[{"method": "card", "amount_cents": 200}],
        )

        summary = return_service.get_return_summary(ret.id)
        assert summary["original_transaction_id"] == sale.id
        assert len(summary["items"]) == 1


# =============================================================================
# PURCHASES
# =============================================================================


class TestRecordPurchase:

    def test_purchase_increments_stock(self, db_session, cashier, supplier, make_product):
        a = make_product("Rice", stock=2)
        b = make_product("Sugar", stock=0)

        purchase = purchase_service.record_purchase(
            supplier_id=supplier.id,
            user_id=cashier.id,
            items=[
                {"product_id": a.id, "quantity": 10, "cost_price_cents": 900},
                {"product_id": b.id, "quantity": 5, "cost_price_cents": 1200},
            ],
        )

        assert _stock(a.id) == 12
        assert _stock(b.id) == 5
        assert purchase.total_amount_cents == 10 * 900 + 5 * 1200

        items = purchase_service.get_purchase_items(purchase.id)
        assert [(i["product_name"], i["quantity"]) for i in items] == [("Rice", 10), ("Sugar", 5)]

    def test_purchase_requires_supplier(self, db_session, cashier, make_product):
        p = make_product(stock=1)
        with pytest.raises(ValidationError):
            purchase_service.record_purchase(
                supplier_id=None,
                user_id=cashier.id,
                items=[{"product_id": p.id, "quantity": 1, "cost_price_cents": 1}],
            )

    def test_purchase_unknown_product_rolls_back(self, db_session, cashier, supplier, make_product):
        p = make_product(stock=1)
        with pytest.raises(NotFoundError):
            purchase_service.record_purchase(
                supplier_id=supplier.id,
                user_id=cashier.id,
                items=[
                    {"product_id": p.id, "quantity": 4, "cost_price_cents": 1},
                    {"product_id": 5555, "quantity": 1, "cost_price_cents": 1},
                ],
            )
        assert _stock(p.id) == 1
        assert db.session.query(Purchase).count() == 0

    def test_search_by_supplier_and_product(self, db_session, cashier, supplier, make_product):
        p = make_product("Olive Oil", stock=0, barcode="8801")
        purchase = purchase_service.record_purchase(
            supplier_id=supplier.id,
            user_id=cashier.id,
            items=[{"product_id": p.id, "quantity": 3, "cost_price_cents": 5000}],
        )

        assert [r["id"] for r in purchase_service.search_purchases("Acme", "supplierName")] == [purchase.id]
        assert [r["id"] for r in purchase_service.search_purchases("Olive", "productName")] == [purchase.id]
        assert [r["id"] for r in purchase_service.search_purchases("8801", "productBarcode")] == [purchase.id]
        assert [r["id"] for r in purchase_service.search_purchases(str(purchase.id), "invoiceId")] == [purchase.id]
        assert purchase_service.search_purchases("Nobody", "supplierName") == []

    def test_search_rejects_unknown_type(self, db_session):
        with pytest.raises(ValidationError):
            purchase_service.search_purchases("x", "color")
