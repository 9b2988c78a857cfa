"""
Order Models: Order, OrderItem.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderStatus
from .base import AuditMixin, Base, ClientIdMixin

if TYPE_CHECKING:
    from .catalog import Product
    from .payment import Payment

_STATUS_VALUES = ", ".join(f"'{s}'" for s in OrderStatus.ALL)


class Order(ClientIdMixin, AuditMixin, Base):
    """
    An order rung up on a terminal.

    Created offline and pushed later; the same id may arrive again with a
    new status or total, which is an update. ``branch_id`` always comes from
    the pushing caller, never from the payload.
    """

    __tablename__ = "pos_order"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    receipt_number: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("app_user.id"), nullable=False, index=True)
    table_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("seating_table.id"))
    shift_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("shift.id"), index=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.OPEN, nullable=False)

    items: Mapped[list["OrderItem"]] = relationship(back_populates="order")
    payments: Mapped[list["Payment"]] = relationship(back_populates="order")

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_pos_order_status"),
        CheckConstraint("total_amount >= 0", name="ck_pos_order_total_non_negative"),
        Index("ix_pos_order_branch_updated", "branch_id", "updated_at"),
        Index("ix_pos_order_branch_status", "branch_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, receipt='{self.receipt_number}', status='{self.status}')>"


class OrderItem(ClientIdMixin, AuditMixin, Base):
    """One line of an order. Quantity and notes may be amended on resync."""

    __tablename__ = "order_item"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("pos_order.id"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"), nullable=False, index=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    price_at_time_of_order: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
        CheckConstraint("price_at_time_of_order >= 0", name="ck_order_item_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, qty={self.quantity})>"
