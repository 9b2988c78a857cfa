"""
Terminal audit log (append-only events recorded on the terminal).
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, ClientIdMixin


class AuditLog(ClientIdMixin, AuditMixin, Base):
    """
    Something a user did on a terminal (void, discount, drawer open...).

    ``created_at`` is the terminal's timestamp. The free-form metadata is
    stored as JSON text in the ``metadata`` column.
    """

    __tablename__ = "pos_audit_log"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("app_user.id"), index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("pos_order.id"))
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[Optional[str]] = mapped_column("metadata", Text)

    __table_args__ = (
        Index("ix_pos_audit_log_branch_created", "branch_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action='{self.action}')>"
