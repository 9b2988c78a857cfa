"""
Inventory Domain Service.

Stock deduction for synced orders, the branch stock snapshot and restock.
"""

from collections import defaultdict
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pos_sync.models import InventoryItem, Order, OrderItem, RecipeIngredient, utcnow
from pos_sync.repositories import EntityStore
from shared.config.logging import inventory_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import NotFoundError
from shared.utils.schemas import InventoryItemOutput


def to_inventory_output(item: InventoryItem) -> InventoryItemOutput:
    return InventoryItemOutput(
        id=item.id,
        name=item.name,
        unit_of_measure=item.unit_of_measure,
        current_stock=item.current_stock,
        minimum_stock=item.minimum_stock,
        low_stock=item.current_stock <= item.minimum_stock,
    )


class InventoryService:
    """
    Domain service for inventory operations.

    Works on the caller's session: deductions run inside a savepoint and
    leave the commit to the caller, so the outbox worker can mark its event
    done in the same transaction as the decrements.
    """

    def __init__(self, db: Session):
        self._db = db

    def _consumption_for_order(self, order_id: str) -> dict[str, Decimal]:
        """Total amount of each inventory item consumed by an order."""
        rows = self._db.execute(
            select(
                RecipeIngredient.inventory_item_id,
                OrderItem.quantity,
                RecipeIngredient.amount,
            )
            .join(OrderItem, OrderItem.product_id == RecipeIngredient.product_id)
            .where(
                OrderItem.order_id == order_id,
                OrderItem.is_active.is_(True),
                RecipeIngredient.is_active.is_(True),
            )
        ).all()

        consumption: dict[str, Decimal] = defaultdict(Decimal)
        for item_id, quantity, amount in rows:
            consumption[item_id] += Decimal(str(quantity)) * Decimal(str(amount))
        return consumption

    def deduct_stock_for_order(self, order_id: str) -> bool:
        """
        Decrement stock for every recipe ingredient of the order's items.

        Products without a recipe are skipped. Stock is never clamped and
        may go negative. All decrements of the order apply together or not
        at all; any failure is logged and reported as False, never raised.
        """
        try:
            with self._db.begin_nested():
                order = self._db.get(Order, order_id)
                if order is None:
                    raise LookupError(f"Order {order_id} not found")

                consumption = self._consumption_for_order(order_id)
                now = utcnow()
                for item_id, delta in consumption.items():
                    self._db.execute(
                        update(InventoryItem)
                        .where(
                            InventoryItem.id == item_id,
                            InventoryItem.branch_id == order.branch_id,
                        )
                        .values(
                            current_stock=InventoryItem.current_stock - delta,
                            updated_at=now,
                        )
                        .execution_options(synchronize_session=False)
                    )

            logger.info(
                "Stock deducted for order",
                order_id=order_id,
                branch_id=order.branch_id,
                items=len(consumption),
            )
            return True
        except Exception as e:
            logger.error(
                "Stock deduction failed",
                order_id=order_id,
                error=str(e),
                exc_info=True,
            )
            return False

    def get_inventory_status(self, branch_id: int) -> list[InventoryItemOutput]:
        """Active inventory items of the branch, lowest stock first."""
        store = EntityStore(self._db, InventoryItem, branch_id)
        items = store.find_many(order_by=InventoryItem.current_stock.asc())
        return [to_inventory_output(item) for item in items]

    def restock_item(self, item_id: str, branch_id: int, amount: Decimal) -> InventoryItemOutput:
        """
        Add ``amount`` to an item's stock.

        Raises:
            NotFoundError: unknown item, soft-deleted, or owned by another branch.
        """
        store = EntityStore(self._db, InventoryItem, branch_id)
        item = store.find_one(item_id)
        if item is None:
            raise NotFoundError("Inventory item", item_id, branch_id=branch_id)

        self._db.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item_id)
            .values(
                current_stock=InventoryItem.current_stock + amount,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        safe_commit(self._db)
        self._db.refresh(item)

        logger.info("Inventory restocked", item_id=item_id, branch_id=branch_id, amount=str(amount))
        return to_inventory_output(item)
