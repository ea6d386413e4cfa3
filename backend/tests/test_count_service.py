"""
Physical inventory count tests.

Verifies:
- Start snapshots stock for exactly the products in scope
- Only one count can be in progress (marker row enforced)
- Item updates are idempotent and never touch expected_quantity
- Finalize sets stock to the counted values and values the variance at cost
"""

import pytest

from retailpos.errors import ConflictError, NotFoundError, ValidationError
from retailpos.extensions import db
from retailpos.models import ActiveInventoryCount, InventoryCount, InventoryCountItem, Product
from retailpos.services import count_service, purchase_service


def _items_by_product(count_id):
    items = db.session.query(InventoryCountItem).filter_by(inventory_count_id=count_id).all()
    return {i.product_id: i for i in items}


# =============================================================================
# START
# =============================================================================


class TestStartCount:

    def test_category_scope_snapshots_stock(self, db_session, cashier, make_product):
        cola = make_product("Cola", stock=10, category="Beverages")
        juice = make_product("Juice", stock=5, category="Beverages")
        make_product("Bread", stock=7, category="Bakery")

        count = count_service.start_count(user_id=cashier.id, count_type="CATEGORY", count_scope="Beverages")

        items = _items_by_product(count.id)
        assert set(items) == {cola.id, juice.id}
        assert items[cola.id].expected_quantity == 10
        assert items[juice.id].expected_quantity == 5
        assert all(i.counted_quantity is None for i in items.values())
        assert count.status == "IN_PROGRESS"

    def test_all_scope(self, db_session, cashier, make_product):
        for i in range(3):
            make_product(f"P{i}", stock=i)

        count = count_service.start_count(user_id=cashier.id)
        assert count.count_type == "ALL"
        assert len(_items_by_product(count.id)) == 3

    def test_supplier_scope_uses_purchase_history(self, db_session, cashier, supplier, make_product):
        bought = make_product("Flour", stock=0)
        make_product("Never bought", stock=4)
        purchase_service.record_purchase(
            supplier_id=supplier.id,
            user_id=cashier.id,
            items=[{"product_id": bought.id, "quantity": 6, "cost_price_cents": 100}],
        )

        count = count_service.start_count(
            user_id=cashier.id, count_type="SUPPLIER", count_scope=str(supplier.id),
        )

        items = _items_by_product(count.id)
        assert list(items) == [bought.id]
        assert items[bought.id].expected_quantity == 6

    def test_empty_scope_persists_nothing(self, db_session, cashier, make_product):
        make_product("Cola", category="Beverages")

        with pytest.raises(NotFoundError):
            count_service.start_count(user_id=cashier.id, count_type="CATEGORY", count_scope="Frozen")

        assert db.session.query(InventoryCount).count() == 0
        assert db.session.get(ActiveInventoryCount, ActiveInventoryCount.SLOT) is None

    def test_second_start_conflicts_and_leaves_items(self, db_session, cashier, make_product):
        make_product("A", stock=1)
        make_product("B", stock=2)
        first = count_service.start_count(user_id=cashier.id)
        before = sorted((i.id, i.expected_quantity) for i in _items_by_product(first.id).values())

        with pytest.raises(ConflictError):
            count_service.start_count(user_id=cashier.id)

        after = sorted((i.id, i.expected_quantity) for i in _items_by_product(first.id).values())
        assert after == before
        assert db.session.query(InventoryCount).count() == 1

    def test_marker_collision_is_conflict(self, db_session, cashier, make_product, monkeypatch):
        make_product("A", stock=1)
        user_id = cashier.id
        first = count_service.start_count(user_id=user_id)
        first_id = first.id
        db.session.expunge_all()

        # A racing start that passed the existence check collides on the marker key
        monkeypatch.setattr(count_service, "_active_marker", lambda: None)
        with pytest.raises(ConflictError):
            count_service.start_count(user_id=user_id)

        assert db.session.query(InventoryCount).count() == 1
        marker = db.session.get(ActiveInventoryCount, ActiveInventoryCount.SLOT)
        assert marker.inventory_count_id == first_id

    def test_unknown_count_type(self, db_session, cashier, make_product):
        make_product("A")
        with pytest.raises(ValidationError):
            count_service.start_count(user_id=cashier.id, count_type="SHELF")

    def test_supplier_scope_must_be_numeric(self, db_session, cashier, make_product):
        make_product("A")
        with pytest.raises(ValidationError):
            count_service.start_count(user_id=cashier.id, count_type="SUPPLIER", count_scope="Acme")

    def test_category_without_scope_falls_back_to_all(self, db_session, cashier, make_product):
        make_product("A", category="X")
        make_product("B", category="Y")

        count = count_service.start_count(user_id=cashier.id, count_type="CATEGORY", count_scope="")
        assert count.count_type == "ALL"
        assert len(_items_by_product(count.id)) == 2


# =============================================================================
# UPDATE ITEM
# =============================================================================


class TestUpdateItemCount:

    def test_update_is_idempotent(self, db_session, cashier, make_product):
        p = make_product("A", stock=10)
        count = count_service.start_count(user_id=cashier.id)
        item = _items_by_product(count.id)[p.id]

        count_service.update_item_count(item.id, 7)
        count_service.update_item_count(item.id, 7)

        refreshed = db.session.get(InventoryCountItem, item.id)
        assert refreshed.counted_quantity == 7
        assert refreshed.expected_quantity == 10

    def test_update_accepts_null_and_digit_strings(self, db_session, cashier, make_product):
        p = make_product("A", stock=10)
        count = count_service.start_count(user_id=cashier.id)
        item = _items_by_product(count.id)[p.id]

        assert count_service.update_item_count(item.id, "4").counted_quantity == 4
        assert count_service.update_item_count(item.id, None).counted_quantity is None

    @pytest.mark.parametrize("value", [2.5, "abc", "1e2", True])
    def test_update_rejects_non_integers(self, db_session, cashier, make_product, value):
        p = make_product("A", stock=10)
        count = count_service.start_count(user_id=cashier.id)
        item = _items_by_product(count.id)[p.id]

        with pytest.raises(ValidationError):
            count_service.update_item_count(item.id, value)

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            count_service.update_item_count(424242, 1)

    def test_completed_count_is_read_only(self, db_session, cashier, make_product):
        p = make_product("A", stock=10)
        count = count_service.start_count(user_id=cashier.id)
        item = _items_by_product(count.id)[p.id]
        count_service.finalize_count(count.id)

        with pytest.raises(ConflictError):
            count_service.update_item_count(item.id, 3)
        assert db.session.get(InventoryCountItem, item.id).counted_quantity is None


# =============================================================================
# FINALIZE
# =============================================================================


class TestFinalizeCount:

    def test_beverages_scenario(self, db_session, cashier, make_product):
        p1 = make_product("Cola", stock=10, cost_cents=250, category="Beverages")
        p2 = make_product("Juice", stock=5, cost_cents=400, category="Beverages")
        p3 = make_product("Water", stock=0, cost_cents=100, category="Beverages")

        count = count_service.start_count(user_id=cashier.id, count_type="CATEGORY", count_scope="Beverages")
        items = _items_by_product(count.id)
        count_service.update_item_count(items[p1.id].id, 8)
        count_service.update_item_count(items[p2.id].id, 5)

        result = count_service.finalize_count(count.id, user_id=cashier.id)

        assert [db.session.get(Product, p.id).stock for p in (p1, p2, p3)] == [8, 5, 0]
        assert result["total_variance_value"] == (8 - 10) * 250
        assert result["inventory_count_id"] == count.id

        finalized = db.session.get(InventoryCount, count.id)
        assert finalized.status == "COMPLETED"
        assert finalized.finalized_at is not None
        assert finalized.total_variance_value == -500
        assert db.session.get(ActiveInventoryCount, ActiveInventoryCount.SLOT) is None

    def test_stock_conservation(self, db_session, cashier, make_product):
        costs = [120, 75, 300, 10]
        stocks = [4, 9, 0, 20]
        counted = [6, None, 2, 15]
        products = [make_product(f"P{i}", stock=s, cost_cents=c) for i, (s, c) in enumerate(zip(stocks, costs))]

        count = count_service.start_count(user_id=cashier.id)
        items = _items_by_product(count.id)
        for product, value in zip(products, counted):
            if value is not None:
                count_service.update_item_count(items[product.id].id, value)

        result = count_service.finalize_count(count.id)

        expected_value = 0
        for product, stock, cost, value in zip(products, stocks, costs, counted):
            effective = stock if value is None else value
            assert db.session.get(Product, product.id).stock == effective
            expected_value += (effective - stock) * cost
        assert result["total_variance_value"] == expected_value

    def test_stock_is_absolute_not_incremental(self, db_session, cashier, make_product):
        p = make_product("A", stock=10, cost_cents=100)
        count = count_service.start_count(user_id=cashier.id)
        item = _items_by_product(count.id)[p.id]
        count_service.update_item_count(item.id, 6)

        # A sale while the count is open does not change the snapshot
        p_row = db.session.get(Product, p.id)
        p_row.stock = 9
        db.session.commit()

        result = count_service.finalize_count(count.id)

        assert db.session.get(Product, p.id).stock == 6
        assert result["total_variance_value"] == (6 - 10) * 100

    def test_finalize_twice_conflicts(self, db_session, cashier, make_product):
        make_product("A", stock=1)
        count = count_service.start_count(user_id=cashier.id)
        count_service.finalize_count(count.id)

        with pytest.raises(ConflictError):
            count_service.finalize_count(count.id)

    def test_finalize_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            count_service.finalize_count(999)

    def test_new_count_allowed_after_finalize(self, db_session, cashier, make_product):
        make_product("A", stock=1)
        first = count_service.start_count(user_id=cashier.id)
        count_service.finalize_count(first.id)

        second = count_service.start_count(user_id=cashier.id)
        assert second.id != first.id
        assert count_service.get_active_count()["id"] == second.id


# =============================================================================
# READ MODELS
# =============================================================================


class TestCountViews:

    def test_active_count_none(self, db_session):
        assert count_service.get_active_count() is None

    def test_active_count_items(self, db_session, cashier, make_product):
        make_product("Zeta", stock=1, cost_cents=10)
        make_product("Alpha", stock=2, cost_cents=20)
        count_service.start_count(user_id=cashier.id)

        active = count_service.get_active_count()

        assert active["status"] == "IN_PROGRESS"
        assert [i["name"] for i in active["items"]] == ["Alpha", "Zeta"]
        assert active["items"][0]["cost_cents"] == 20
        assert active["items"][0]["barcode"]

    def test_worksheet_starts_nothing(self, db_session, make_product):
        make_product("Cola", stock=3, price_cents=500, category="Beverages")
        make_product("Bread", stock=1, category="Bakery")

        rows = count_service.get_worksheet("CATEGORY", "Beverages")

        assert [(r["name"], r["stock"], r["price_cents"]) for r in rows] == [("Cola", 3, 500)]
        assert db.session.query(InventoryCount).count() == 0

    def test_summary_reports_item_variance(self, db_session, cashier, make_product):
        p = make_product("A", stock=10)
        count = count_service.start_count(user_id=cashier.id)
        count_service.update_item_count(_items_by_product(count.id)[p.id].id, 12)

        summary = count_service.get_count_summary(count.id)
        assert summary["items"][0]["variance"] == 2

    def test_list_counts_by_status(self, db_session, cashier, make_product):
        make_product("A", stock=1)
        first = count_service.start_count(user_id=cashier.id)
        count_service.finalize_count(first.id)
        second = count_service.start_count(user_id=cashier.id)

        assert [c["id"] for c in count_service.list_counts(status="completed")] == [first.id]
        assert [c["id"] for c in count_service.list_counts(status="IN_PROGRESS")] == [second.id]
        with pytest.raises(ValidationError):
            count_service.list_counts(status="CANCELLED")
