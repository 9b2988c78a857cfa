"""
Payment recorded against an order.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import PaymentMethod
from .base import AuditMixin, Base, ClientIdMixin

if TYPE_CHECKING:
    from .order import Order

_METHOD_VALUES = ", ".join(f"'{m}'" for m in PaymentMethod.ALL)


class Payment(ClientIdMixin, AuditMixin, Base):
    """
    Immutable once created: a re-pushed payment id is already applied.
    Every payment belongs to a shift so cash can be reconciled per register.
    """

    __tablename__ = "payment"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("pos_order.id"), nullable=False, index=True)
    shift_id: Mapped[str] = mapped_column(String(36), ForeignKey("shift.id"), nullable=False, index=True)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(String(120))

    order: Mapped["Order"] = relationship(back_populates="payments")

    __table_args__ = (
        CheckConstraint(f"method IN ({_METHOD_VALUES})", name="ck_payment_method"),
        CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, order_id={self.order_id}, amount={self.amount})>"
