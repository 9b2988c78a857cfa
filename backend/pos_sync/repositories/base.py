"""
Branch-scoped repository with explicit soft delete.

Every query built here carries the branch predicate and, unless asked
otherwise, the "not deleted" predicate; ``delete`` never issues a SQL
DELETE. Call sites see the filtering instead of relying on a hidden
session-wide interceptor.
"""

from datetime import datetime
from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from pos_sync.models import AuditMixin


ModelT = TypeVar("ModelT", bound=AuditMixin)


class EntityStore(Generic[ModelT]):
    """
    Data access for one model within one branch.

    Usage:
        orders = EntityStore(db, Order, branch_id)
        order = orders.find_one(order_id)
        changed = orders.find_changed_since(watermark)
        orders.delete(order)

    Models without a ``branch_id`` column (recipe rows) are only filtered
    by the soft delete flag.
    """

    def __init__(self, db: Session, model: type[ModelT], branch_id: int | None):
        self._db = db
        self.model = model
        self.branch_id = branch_id

    @property
    def db(self) -> Session:
        return self._db

    @property
    def _is_branch_scoped(self) -> bool:
        return self.branch_id is not None and hasattr(self.model, "branch_id")

    def _base_query(self, include_deleted: bool = False) -> Select:
        query = select(self.model)
        if self._is_branch_scoped:
            query = query.where(self.model.branch_id == self.branch_id)
        if not include_deleted:
            query = query.where(self.model.is_active.is_(True))
        return query

    # =========================================================================
    # Reads
    # =========================================================================

    def find_one(self, entity_id: Any, include_deleted: bool = False) -> ModelT | None:
        """Entity by id within the branch, or None."""
        query = self._base_query(include_deleted).where(self.model.id == entity_id)
        return self._db.scalar(query)

    def find_many(
        self,
        *criteria: Any,
        include_deleted: bool = False,
        order_by: Any = None,
        limit: int | None = None,
    ) -> Sequence[ModelT]:
        """Entities matching extra WHERE criteria within the branch."""
        query = self._base_query(include_deleted)
        if criteria:
            query = query.where(*criteria)
        if order_by is not None:
            query = query.order_by(order_by)
        if limit is not None:
            query = query.limit(limit)
        return self._db.execute(query).scalars().all()

    def find_changed_since(self, since: datetime, include_deleted: bool = True) -> Sequence[ModelT]:
        """
        Rows modified strictly after ``since``, oldest change first.

        Soft-deleted rows are included by default so terminals receive
        tombstones.
        """
        return self.find_many(
            self.model.updated_at > since,
            include_deleted=include_deleted,
            order_by=self.model.updated_at.asc(),
        )

    def get_unscoped(self, entity_id: Any) -> ModelT | None:
        """
        Row by primary key ignoring branch and soft delete.

        Only for ownership checks: a client id already taken by another
        branch must be rejected, not overwritten.
        """
        return self._db.get(self.model, entity_id)

    def count(self, include_deleted: bool = False) -> int:
        query = select(func.count()).select_from(self._base_query(include_deleted).subquery())
        return self._db.scalar(query) or 0

    def exists(self, entity_id: Any) -> bool:
        return self.find_one(entity_id) is not None

    # =========================================================================
    # Writes
    # =========================================================================

    def add(self, entity: ModelT) -> ModelT:
        """Add a new entity, stamping the store's branch on it."""
        if self._is_branch_scoped:
            entity.branch_id = self.branch_id
        self._db.add(entity)
        return entity

    def delete(self, entity: ModelT) -> ModelT:
        """Soft delete: flag, stamp deleted_at and bump updated_at."""
        entity.soft_delete()
        return entity

    def restore(self, entity: ModelT) -> ModelT:
        entity.restore()
        return entity
