"""
Terminal user (staff member identified by PIN).
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import Roles
from .base import AuditMixin, Base, ClientIdMixin

_ROLE_VALUES = ", ".join(f"'{r}'" for r in Roles.ALL)


class User(ClientIdMixin, AuditMixin, Base):
    """
    Staff member who can sign in on a terminal.

    ``pin_hash`` is bcrypt and never leaves the server: pull responses use a
    schema without it.
    """

    __tablename__ = "app_user"

    branch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("branch.id"), nullable=False, index=True
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    pin_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Roles.CASHIER)

    __table_args__ = (
        CheckConstraint(f"role IN ({_ROLE_VALUES})", name="ck_app_user_role"),
        Index("ix_app_user_branch_updated", "branch_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role='{self.role}', branch_id={self.branch_id})>"
