"""
Branch: the physical location every synced row is scoped to.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, ServerBigInt


class Branch(AuditMixin, Base):
    """
    A restaurant location. Created by back-office tooling (or the seed),
    never by terminals; the JWT ``branch_id`` claim references it.
    """

    __tablename__ = "branch"

    id: Mapped[int] = mapped_column(ServerBigInt, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, name='{self.name}')>"
