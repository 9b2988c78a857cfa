"""
Outbox model for transactional side effects.

Rows are inserted in the same transaction as the pushed batch, so a
committed order always has its inventory deduction and dashboard
notification queued, even if the process dies right after the commit.
A background worker drains them.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, ServerBigInt, utcnow


class OutboxStatus(str, Enum):
    """Status of an outbox event."""
    PENDING = "PENDING"        # Ready to be processed
    PROCESSING = "PROCESSING"  # Claimed by a worker until claimed_at + lease
    PUBLISHED = "PUBLISHED"    # Handled successfully
    FAILED = "FAILED"          # Gave up after max retries


class OutboxEvent(Base):
    """
    Durable work item written with a push.

    - ORDER_INVENTORY_DEDUCTION: one per newly created order
    - NEW_ORDERS: one per push batch that created orders
    """
    __tablename__ = "outbox_event"

    id: Mapped[int] = mapped_column(ServerBigInt, primary_key=True, autoincrement=True)

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    aggregate_type: Mapped[str] = mapped_column(String(50), nullable=False)  # "order", "branch"
    aggregate_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # JSON serialized
    payload: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[OutboxStatus] = mapped_column(
        SQLEnum(OutboxStatus, name="outbox_status"),
        default=OutboxStatus.PENDING,
        nullable=False,
        index=True,
    )

    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Set while a worker holds the row in PROCESSING
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        # Polling order for the worker
        Index("ix_outbox_event_status_created", "status", "created_at"),
        Index("ix_outbox_event_branch_status", "branch_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<OutboxEvent(id={self.id}, type={self.event_type}, status={self.status.value})>"
