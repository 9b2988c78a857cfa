"""
Base class and AuditMixin for all SQLAlchemy ORM models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Client-generated UUIDs identify every synced row
CLIENT_ID_LENGTH = 36

# Server-generated surrogate keys. SQLite only autoincrements INTEGER PRIMARY KEY.
ServerBigInt = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite returns them naive)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ClientIdMixin:
    """Primary key supplied by the terminal (stable across retries)."""

    id: Mapped[str] = mapped_column(String(CLIENT_ID_LENGTH), primary_key=True)


class AuditMixin:
    """
    Soft delete flag and audit timestamps for every synced entity.

    ``updated_at`` is the last-modified timestamp pull compares against the
    terminal's watermark. It is set on insert and on every ORM update, and
    soft deletes bump it so tombstones reach terminals too.
    """

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False, index=True
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def soft_delete(self) -> None:
        now = utcnow()
        self.is_active = False
        self.deleted_at = now
        self.updated_at = now

    def restore(self) -> None:
        self.is_active = True
        self.deleted_at = None
        self.updated_at = utcnow()

    def touch(self) -> None:
        """Mark as modified so the next pull picks the row up."""
        self.updated_at = utcnow()

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        id_val = getattr(self, "id", None)
        active = "active" if self.is_active else "deleted"
        return f"<{class_name}(id={id_val}, {active})>"
