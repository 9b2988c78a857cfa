"""
Sync Domain Service.

Reconciles offline terminals with the branch datastore:
- pull_changes: everything of the branch modified after a watermark
- push_changes: merges a batch of offline records, one savepoint per record

A record that cannot be applied is reported back and skipped; the rest of
the batch still commits. Only a failure of the store itself (lost
connection, failed commit) aborts the whole push.
"""

import itertools
import json
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Callable, Iterator

from pydantic import BaseModel
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pos_sync.models import (
    AuditLog,
    Category,
    Order,
    OrderItem,
    Payment,
    Product,
    SeatingTable,
    Shift,
    User,
    as_utc,
    utcnow,
)
from pos_sync.repositories import EntityStore
from pos_sync.services.domain.sync_ledger import SyncLedger
from pos_sync.services.events.outbox_service import (
    write_new_orders_event,
    write_order_deduction_event,
)
from shared.config.constants import SyncDirection, SyncStatus
from shared.config.logging import sync_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import InvalidTimestampError, SyncFailedError
from shared.utils.schemas import (
    AuditLogInput,
    CategoryOutput,
    OrderInput,
    OrderItemInput,
    OrderOutput,
    PaymentInput,
    ProductOutput,
    SeatingTableOutput,
    ShiftInput,
    ShiftOutput,
    SyncChanges,
    SyncPullResponse,
    SyncPushRequest,
    SyncPushResponse,
    SyncRecordErrorOutput,
    UserOutput,
)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Marks a record that was reported as an error and skipped
_SKIPPED = object()

# Response key, model, output schema
PULL_ENTITIES: tuple[tuple[str, type, type[BaseModel]], ...] = (
    ("categories", Category, CategoryOutput),
    ("products", Product, ProductOutput),
    ("users", User, UserOutput),
    ("seating_tables", SeatingTable, SeatingTableOutput),
    ("orders", Order, OrderOutput),
    ("shifts", Shift, ShiftOutput),
)


class SyncRecordError(Exception):
    """A single pushed record cannot be applied."""
    pass


def parse_since(raw: str | None) -> datetime:
    """
    Parse a pull watermark.

    Empty means a full resync from the epoch. Naive values are taken as UTC.

    Raises:
        InvalidTimestampError: If the value is not an ISO-8601 date-time.
    """
    if raw is None or not raw.strip():
        return EPOCH
    try:
        # Year 1 with a positive offset has no UTC equivalent
        return as_utc(datetime.fromisoformat(raw.strip()))
    except (ValueError, OverflowError):
        raise InvalidTimestampError(raw) from None


def _describe_db_error(error: SQLAlchemyError) -> str:
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error)


@dataclass
class _PushState:
    processed_orders: int = 0
    processed_shifts: int = 0
    processed_audit_logs: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    new_order_ids: list[str] = field(default_factory=list)
    # order id -> shift id as pushed in this batch
    order_shifts: dict[str, str | None] = field(default_factory=dict)

    def add_error(self, record_id: str, label: str, message: str) -> None:
        self.errors.append({"id": record_id, "error": f"{label} error: {message}"})

    @property
    def records_pushed(self) -> int:
        return self.processed_orders + self.processed_shifts + self.processed_audit_logs


class InflightPushes:
    """
    Start times of the pushes whose transaction is still open.

    Rows written by an open push carry ``updated_at`` values later than the
    push start but become visible only at commit. A pull must not hand out
    a watermark past the start of any such push, or those rows are never
    delivered. This covers pushes of the same process; pushes of other
    worker processes are covered by ``sync_pull_overlap_seconds``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._tokens = itertools.count()
        self._started: dict[int, datetime] = {}

    @contextmanager
    def track(self, started_at: datetime) -> Iterator[None]:
        with self._lock:
            token = next(self._tokens)
            self._started[token] = started_at
        try:
            yield
        finally:
            with self._lock:
                self._started.pop(token, None)

    def oldest(self) -> datetime | None:
        with self._lock:
            return min(self._started.values(), default=None)


inflight_pushes = InflightPushes()


def pull_watermark(started_at: datetime) -> datetime:
    """Watermark for a pull started at ``started_at``."""
    horizon = started_at
    oldest_push = inflight_pushes.oldest()
    if oldest_push is not None and oldest_push < horizon:
        horizon = oldest_push
    return horizon - timedelta(seconds=settings.sync_pull_overlap_seconds)


class SyncService:
    """
    Domain service for terminal synchronization.

    ``db`` is the request session used by push. Pull queries and ledger
    writes open their own sessions from ``session_factory``.
    """

    def __init__(
        self,
        db: Session,
        session_factory: sessionmaker[Session],
        ledger: SyncLedger | None = None,
    ):
        self._db = db
        self._session_factory = session_factory
        self._ledger = ledger or SyncLedger(session_factory)

    # =========================================================================
    # Pull
    # =========================================================================

    def _query_changes(
        self,
        model: type,
        schema: type[BaseModel],
        branch_id: int,
        since: datetime,
    ) -> list[BaseModel]:
        db = self._session_factory()
        try:
            rows = EntityStore(db, model, branch_id).find_changed_since(since)
            return [schema.model_validate(row) for row in rows]
        finally:
            db.close()

    def pull_changes(self, since: str | None, branch_id: int) -> SyncPullResponse:
        """
        Everything of the branch modified strictly after ``since``,
        tombstones included.

        The returned timestamp is taken before the queries run and never
        passes the start of a push still in flight, so a row committed
        during the pull is sent again next time rather than lost.
        """
        started_at = utcnow()
        try:
            since_dt = parse_since(since)
        except InvalidTimestampError as e:
            self._ledger.record(
                branch_id, SyncDirection.PULL, SyncStatus.FAILED, started_at,
                error_message=e.detail,
            )
            raise

        watermark = pull_watermark(started_at)

        try:
            with ThreadPoolExecutor(max_workers=settings.sync_pull_max_workers) as pool:
                futures = {
                    key: pool.submit(self._query_changes, model, schema, branch_id, since_dt)
                    for key, model, schema in PULL_ENTITIES
                }
                changes = SyncChanges(**{key: future.result() for key, future in futures.items()})
        except SQLAlchemyError as e:
            self._ledger.record(
                branch_id, SyncDirection.PULL, SyncStatus.FAILED, started_at,
                error_message=_describe_db_error(e),
            )
            raise SyncFailedError("pull", _describe_db_error(e), branch_id=branch_id) from e
        except Exception as e:
            self._ledger.record(
                branch_id, SyncDirection.PULL, SyncStatus.FAILED, started_at,
                error_message=str(e),
            )
            raise

        total = changes.total()
        self._ledger.record(
            branch_id, SyncDirection.PULL, SyncStatus.SUCCESS, started_at,
            records_pulled=total,
        )
        logger.info(
            "Pull served",
            branch_id=branch_id,
            since=since_dt.isoformat(),
            records=total,
        )
        return SyncPullResponse(timestamp=watermark, changes=changes)

    # =========================================================================
    # Push
    # =========================================================================

    def _owned(self, store: EntityStore, record_id: str) -> Any:
        """
        Existing row for a pushed id, or None.

        Raises:
            SyncRecordError: If the id is taken by another branch.
        """
        existing = store.get_unscoped(record_id)
        if existing is not None and existing.branch_id != store.branch_id:
            raise SyncRecordError(f"id {record_id} belongs to another branch")
        return existing

    def _branch_order(self, order_id: str, branch_id: int) -> Order | None:
        order = self._db.get(Order, order_id)
        if order is not None and order.branch_id != branch_id:
            raise SyncRecordError(f"order {order_id} belongs to another branch")
        return order

    def _apply(
        self,
        state: _PushState,
        record_id: str,
        label: str,
        apply_fn: Callable[[], Any],
        existing_model: type | None = None,
    ) -> Any:
        """
        Run one record inside its own savepoint.

        Returns what ``apply_fn`` returned, or ``_SKIPPED`` after recording
        the error. With ``existing_model``, an insert conflict on an id that
        turns out to exist already counts as applied.
        """
        try:
            with self._db.begin_nested():
                result = apply_fn()
                self._db.flush()
            return result
        except SyncRecordError as e:
            state.add_error(record_id, label, str(e))
        except (IntegrityError, DataError) as e:
            if existing_model is not None and self._db.get(existing_model, record_id) is not None:
                logger.debug("Duplicate record ignored", record_id=record_id, kind=label)
                return None
            state.add_error(record_id, label, _describe_db_error(e))
        return _SKIPPED

    def _apply_shift(self, shift: ShiftInput, store: EntityStore) -> None:
        existing = self._owned(store, shift.id)
        if existing is not None:
            existing.closing_time = shift.closing_time
            existing.expected_cash = shift.expected_cash
            existing.actual_cash = shift.actual_cash
            existing.notes = shift.notes
            existing.touch()
            return

        store.add(
            Shift(
                id=shift.id,
                user_id=shift.user_id,
                opening_time=shift.opening_time,
                closing_time=shift.closing_time,
                starting_cash=shift.starting_cash,
                expected_cash=shift.expected_cash,
                actual_cash=shift.actual_cash,
                notes=shift.notes,
            )
        )

    def _apply_order(self, order: OrderInput, store: EntityStore) -> bool:
        """Returns True if the order was created."""
        existing = self._owned(store, order.id)
        if existing is not None:
            existing.status = order.status
            existing.total_amount = order.total_amount
            existing.touch()
            return False

        store.add(
            Order(
                id=order.id,
                receipt_number=order.receipt_number,
                user_id=order.user_id,
                table_id=order.table_id,
                shift_id=order.shift_id,
                total_amount=order.total_amount,
                status=order.status,
                created_at=order.created_at or utcnow(),
            )
        )
        return True

    def _apply_order_item(self, item: OrderItemInput, store: EntityStore) -> None:
        if self._branch_order(item.order_id, store.branch_id) is None:
            raise SyncRecordError(f"order {item.order_id} not found")

        existing = self._owned(store, item.id)
        if existing is not None:
            existing.quantity = item.quantity
            existing.notes = item.notes
            existing.touch()
            return

        store.add(
            OrderItem(
                id=item.id,
                order_id=item.order_id,
                product_id=item.product_id,
                quantity=item.quantity,
                price_at_time_of_order=item.price_at_time_of_order,
                notes=item.notes,
            )
        )

    def _apply_payment(self, payment: PaymentInput, store: EntityStore, state: _PushState) -> None:
        # Payments are immutable: a known id was applied by an earlier push
        if self._owned(store, payment.id) is not None:
            return

        persisted_order = self._branch_order(payment.order_id, store.branch_id)
        shift_id = (
            payment.shift_id
            or state.order_shifts.get(payment.order_id)
            or (persisted_order.shift_id if persisted_order is not None else None)
        )
        if not shift_id:
            raise SyncRecordError("no shift could be resolved for payment")

        store.add(
            Payment(
                id=payment.id,
                order_id=payment.order_id,
                shift_id=shift_id,
                method=payment.method,
                amount=payment.amount,
                reference=payment.reference,
                created_at=payment.created_at or utcnow(),
            )
        )

    def _apply_audit_log(self, log: AuditLogInput, store: EntityStore) -> None:
        # Append-only: a known id is a re-push
        if self._owned(store, log.id) is not None:
            return

        store.add(
            AuditLog(
                id=log.id,
                user_id=log.user_id,
                action=log.action,
                order_id=log.order_id,
                event_metadata=json.dumps(log.metadata) if log.metadata is not None else None,
                created_at=log.created_at or utcnow(),
            )
        )

    def _apply_batch(self, batch: SyncPushRequest, branch_id: int, state: _PushState) -> None:
        shifts = EntityStore(self._db, Shift, branch_id)
        for shift in batch.shifts:
            if self._apply(state, shift.id, "Shift", partial(self._apply_shift, shift, shifts)) is not _SKIPPED:
                state.processed_shifts += 1

        orders = EntityStore(self._db, Order, branch_id)
        for order in batch.orders:
            created = self._apply(state, order.id, "Order", partial(self._apply_order, order, orders))
            if created is _SKIPPED:
                continue
            state.processed_orders += 1
            state.order_shifts[order.id] = order.shift_id
            if created:
                state.new_order_ids.append(order.id)

        items = EntityStore(self._db, OrderItem, branch_id)
        for item in batch.order_items:
            self._apply(state, item.id, "Item", partial(self._apply_order_item, item, items))

        payments = EntityStore(self._db, Payment, branch_id)
        for payment in batch.payments:
            self._apply(
                state, payment.id, "Payment",
                partial(self._apply_payment, payment, payments, state),
                existing_model=Payment,
            )

        audit_logs = EntityStore(self._db, AuditLog, branch_id)
        for log in batch.audit_logs:
            applied = self._apply(
                state, log.id, "Audit log",
                partial(self._apply_audit_log, log, audit_logs),
                existing_model=AuditLog,
            )
            if applied is not _SKIPPED:
                state.processed_audit_logs += 1

    def push_changes(
        self,
        batch: SyncPushRequest,
        branch_id: int,
        user_id: str | None = None,
    ) -> SyncPushResponse:
        """
        Merge a batch of offline records into the branch.

        Applies shifts, orders, order items, payments and audit logs in that
        order. Side effects for new orders are queued in the outbox within
        the same transaction.

        Raises:
            SyncFailedError: If the store failed; nothing of the batch was kept.
        """
        started_at = utcnow()
        state = _PushState()

        try:
            with inflight_pushes.track(started_at):
                self._apply_batch(batch, branch_id, state)

                if state.new_order_ids:
                    for order_id in state.new_order_ids:
                        write_order_deduction_event(self._db, branch_id=branch_id, order_id=order_id)
                    write_new_orders_event(
                        self._db,
                        branch_id=branch_id,
                        order_ids=state.new_order_ids,
                        actor_user_id=user_id,
                    )

                safe_commit(self._db)
        except SQLAlchemyError as e:
            self._db.rollback()
            reason = _describe_db_error(e)
            self._ledger.record(
                branch_id, SyncDirection.PUSH, SyncStatus.FAILED, started_at,
                error_message=reason,
            )
            raise SyncFailedError("push", reason, branch_id=branch_id) from e

        self._ledger.record(
            branch_id,
            SyncDirection.PUSH,
            SyncStatus.FAILED if state.errors else SyncStatus.SUCCESS,
            started_at,
            records_pushed=state.records_pushed,
            error_message=json.dumps(state.errors) if state.errors else None,
        )

        logger.info(
            "Push applied",
            branch_id=branch_id,
            processed_orders=state.processed_orders,
            processed_shifts=state.processed_shifts,
            processed_audit_logs=state.processed_audit_logs,
            new_orders=len(state.new_order_ids),
            errors=len(state.errors),
        )

        return SyncPushResponse(
            success=not state.errors,
            processed_orders=state.processed_orders,
            processed_shifts=state.processed_shifts,
            processed_audit_logs=state.processed_audit_logs,
            errors=[SyncRecordErrorOutput(**error) for error in state.errors] or None,
        )
