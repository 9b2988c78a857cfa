"""
Cash-register shift.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, ClientIdMixin


class Shift(ClientIdMixin, AuditMixin, Base):
    """
    A work session on one register. Opened offline, closed later: the
    closing time and cash counts arrive on a subsequent push of the same id.
    """

    __tablename__ = "shift"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("app_user.id"), nullable=False, index=True)
    opening_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closing_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    starting_cash: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    expected_cash: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    actual_cash: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_shift_branch_updated", "branch_id", "updated_at"),
    )

    def __repr__(self) -> str:
        state = "closed" if self.closing_time else "open"
        return f"<Shift(id={self.id}, user_id={self.user_id}, {state})>"
