"""
Tests for InventoryService.

Tests verify:
- Recipe-based stock deduction per order
- Retail products (no recipe) are left alone
- Stock may go negative
- Stock snapshot ordering and restock
"""

from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from pos_sync.models import InventoryItem, Order, OrderItem
from pos_sync.services.domain import InventoryService
from conftest import new_id


def stock(session_factory, item_id: str) -> Decimal:
    with session_factory() as db:
        return Decimal(str(db.get(InventoryItem, item_id).current_stock))


@pytest.fixture
def make_order(db_session, seed_cashier):
    """Create an order with (product, quantity) lines and return its id."""

    def _make(*lines) -> str:
        order = Order(
            id=new_id(), branch_id=1, receipt_number="R-1", user_id=seed_cashier.id,
        )
        db_session.add(order)
        db_session.flush()
        for product, quantity in lines:
            db_session.add(OrderItem(
                id=new_id(), branch_id=1, order_id=order.id, product_id=product.id,
                quantity=Decimal(quantity), price_at_time_of_order=product.price,
            ))
        db_session.commit()
        return order.id

    return _make


class TestDeductStockForOrder:

    def test_three_coffees(self, db_session, session_factory, seed_menu, make_order):
        order_id = make_order((seed_menu["coffee"], "3"))

        ok = InventoryService(db_session).deduct_stock_for_order(order_id)
        db_session.commit()

        assert ok is True
        assert stock(session_factory, seed_menu["beans"].id) == Decimal("946")
        assert stock(session_factory, seed_menu["milk"].id) == Decimal("1.4")

    def test_lines_of_same_product_add_up(self, db_session, session_factory, seed_menu, make_order):
        order_id = make_order((seed_menu["coffee"], "1"), (seed_menu["coffee"], "2"))

        InventoryService(db_session).deduct_stock_for_order(order_id)
        db_session.commit()

        assert stock(session_factory, seed_menu["beans"].id) == Decimal("946")

    def test_retail_product_touches_nothing(self, db_session, session_factory, seed_menu, make_order):
        order_id = make_order((seed_menu["soda"], "5"))

        assert InventoryService(db_session).deduct_stock_for_order(order_id) is True
        db_session.commit()

        assert stock(session_factory, seed_menu["beans"].id) == Decimal("1000")
        assert stock(session_factory, seed_menu["milk"].id) == Decimal("2")

    def test_stock_can_go_negative(self, db_session, session_factory, seed_menu, make_order):
        order_id = make_order((seed_menu["coffee"], "20"))

        assert InventoryService(db_session).deduct_stock_for_order(order_id) is True
        db_session.commit()

        assert stock(session_factory, seed_menu["milk"].id) == Decimal("-2")
        assert stock(session_factory, seed_menu["beans"].id) == Decimal("640")

    def test_missing_order_reports_false(self, db_session, session_factory, seed_menu):
        assert InventoryService(db_session).deduct_stock_for_order(new_id()) is False
        db_session.commit()

        assert stock(session_factory, seed_menu["beans"].id) == Decimal("1000")

    def test_soft_deleted_lines_are_skipped(self, db_session, session_factory, seed_menu, make_order):
        order_id = make_order((seed_menu["coffee"], "1"), (seed_menu["coffee"], "4"))
        line = db_session.scalars(select(OrderItem).where(OrderItem.quantity == Decimal("4"))).one()
        line.soft_delete()
        db_session.commit()

        InventoryService(db_session).deduct_stock_for_order(order_id)
        db_session.commit()

        assert stock(session_factory, seed_menu["beans"].id) == Decimal("982")


class TestInventoryStatus:

    def test_lowest_stock_first_with_low_flag(self, db_session, seed_menu):
        items = InventoryService(db_session).get_inventory_status(1)

        assert [i.name for i in items] == ["Milk", "Coffee beans"]
        assert items[0].low_stock is False
        assert items[0].model_dump(by_alias=True)["unitOfMeasure"] == "L"

    def test_low_stock_at_minimum(self, db_session, seed_menu):
        seed_menu["milk"].current_stock = Decimal("1")
        db_session.commit()

        milk = InventoryService(db_session).get_inventory_status(1)[0]

        assert milk.low_stock is True

    def test_other_branch_is_empty(self, db_session, seed_menu, seed_other_branch):
        assert InventoryService(db_session).get_inventory_status(2) == []


class TestRestock:

    def test_restock_adds_amount(self, db_session, session_factory, seed_menu):
        result = InventoryService(db_session).restock_item(seed_menu["milk"].id, 1, Decimal("3.5"))

        assert result.current_stock == Decimal("5.5")
        assert stock(session_factory, seed_menu["milk"].id) == Decimal("5.5")

    def test_unknown_item(self, db_session, seed_menu):
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).restock_item(new_id(), 1, Decimal("1"))

        assert exc_info.value.status_code == 404

    def test_item_of_other_branch_is_not_found(self, db_session, seed_menu, seed_other_branch):
        with pytest.raises(HTTPException) as exc_info:
            InventoryService(db_session).restock_item(seed_menu["beans"].id, 2, Decimal("1"))

        assert exc_info.value.status_code == 404
