"""
Sync ledger entry: one row per pull or push attempt.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import SyncDirection, SyncStatus
from .base import Base, ServerBigInt

_DIRECTION_VALUES = ", ".join(f"'{d}'" for d in SyncDirection.ALL)
_STATUS_VALUES = ", ".join(f"'{s}'" for s in SyncStatus.ALL)


class SyncLog(Base):
    """
    Append-only: written once at the end of a sync call, in its own
    session, never updated.
    """

    __tablename__ = "sync_log"

    id: Mapped[int] = mapped_column(ServerBigInt, primary_key=True, autoincrement=True)
    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    direction: Mapped[str] = mapped_column(String(4), nullable=False)
    status: Mapped[str] = mapped_column(String(7), nullable=False)
    records_pulled: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_pushed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(f"direction IN ({_DIRECTION_VALUES})", name="ck_sync_log_direction"),
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_sync_log_status"),
        Index("ix_sync_log_branch_started", "branch_id", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<SyncLog(id={self.id}, {self.direction}/{self.status}, branch_id={self.branch_id})>"
