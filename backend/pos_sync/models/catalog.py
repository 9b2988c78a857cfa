"""
Catalog Models: Category, Product.

Managed from the back office; terminals only receive them through pull.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, ClientIdMixin

if TYPE_CHECKING:
    from .inventory import RecipeIngredient


class Category(ClientIdMixin, AuditMixin, Base):
    __tablename__ = "category"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    color_hex: Mapped[Optional[str]] = mapped_column(String(9))
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    products: Mapped[list["Product"]] = relationship(back_populates="category")

    __table_args__ = (
        Index("ix_category_branch_updated", "branch_id", "updated_at"),
    )


class Product(ClientIdMixin, AuditMixin, Base):
    """
    A sellable item. Products with recipe ingredients are manufactured and
    consume stock when sold; products without a recipe are retail goods.
    """

    __tablename__ = "product"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    category_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("category.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")
    recipe_ingredients: Mapped[list["RecipeIngredient"]] = relationship(back_populates="product")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
        Index("ix_product_branch_updated", "branch_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"
