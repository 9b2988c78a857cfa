"""
Inventory Models: InventoryItem, RecipeIngredient.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, ClientIdMixin

if TYPE_CHECKING:
    from .catalog import Product


class InventoryItem(ClientIdMixin, AuditMixin, Base):
    """
    A raw ingredient or supply tracked in stock.

    ``current_stock`` is never clamped: negative stock means the branch sold
    more than its recorded inventory.
    """

    __tablename__ = "inventory_item"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)
    current_stock: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=Decimal("0"))
    minimum_stock: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=Decimal("0"))
    cost_per_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4))

    __table_args__ = (
        Index("ix_inventory_item_branch_stock", "branch_id", "current_stock"),
    )

    def __repr__(self) -> str:
        return f"<InventoryItem(id={self.id}, name='{self.name}', stock={self.current_stock})>"


class RecipeIngredient(ClientIdMixin, AuditMixin, Base):
    """Amount of one inventory item consumed per unit of a product sold."""

    __tablename__ = "recipe_ingredient"

    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"), nullable=False, index=True)
    inventory_item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("inventory_item.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)

    product: Mapped["Product"] = relationship(back_populates="recipe_ingredients")
    inventory_item: Mapped["InventoryItem"] = relationship()

    __table_args__ = (
        UniqueConstraint("product_id", "inventory_item_id", name="uq_recipe_ingredient_product_item"),
        CheckConstraint("amount > 0", name="ck_recipe_ingredient_amount_positive"),
    )
