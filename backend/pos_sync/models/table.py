"""
Seating table (floor plan position and occupancy).
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import TableStatus
from .base import AuditMixin, Base, ClientIdMixin

_STATUS_VALUES = ", ".join(f"'{s}'" for s in TableStatus.ALL)


class SeatingTable(ClientIdMixin, AuditMixin, Base):
    __tablename__ = "seating_table"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    floor: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TableStatus.FREE, nullable=False)
    x: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    y: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_seating_table_status"),
        Index("ix_seating_table_branch_updated", "branch_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<SeatingTable(id={self.id}, name='{self.name}', status='{self.status}')>"
