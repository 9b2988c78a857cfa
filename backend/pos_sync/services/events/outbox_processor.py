"""
Outbox processor for side effects of pushed orders.

Reads PENDING rows from the outbox table and handles them:
- ORDER_INVENTORY_DEDUCTION: deducts stock, then broadcasts the branch
  stock snapshot
- NEW_ORDERS: broadcasts one newOrder event for the batch

Status transitions are PENDING -> PROCESSING -> PUBLISHED, or back to
PENDING on failure until the retry limit, then FAILED. A PROCESSING claim
expires after outbox_claim_timeout_seconds; the next poll takes the event
over, so a worker dying mid-batch never strands it.

The processor runs as a FastAPI lifespan task, is nudged after each push
through BackgroundTasks, and can be drained once from the CLI.
"""

import asyncio
import json
from datetime import timedelta
from typing import Any

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session, sessionmaker

from pos_sync.models import OutboxEvent, OutboxStatus, utcnow
from pos_sync.services.domain.inventory_service import InventoryService
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.events import (
    NEW_ORDERS,
    ORDER_INVENTORY_DEDUCTION,
    get_redis_client,
    publish_inventory_event,
    publish_new_order_event,
)

logger = get_logger(__name__)


class OutboxProcessor:
    """
    Processes outbox events in batches.

    Each event is committed on its own, so one failing event never holds
    back the others of its batch.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory or SessionLocal
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the processor loop."""
        if self._running:
            logger.warning("Outbox processor already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Outbox processor started")

    async def stop(self) -> None:
        """Stop the processor gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Outbox processor stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                processed = await self._process_batch()
                if processed == 0:
                    await asyncio.sleep(settings.outbox_poll_interval_seconds)
            except Exception as e:
                logger.error("Outbox processor error", error=str(e))
                await asyncio.sleep(settings.outbox_poll_interval_seconds)

    def _claim(self, db: Session) -> list[OutboxEvent]:
        """
        Claim PENDING events, plus PROCESSING ones whose claim expired.

        An expired claim counts as a failed attempt, so an event that keeps
        killing its worker still ends FAILED.
        """
        now = utcnow()
        stale_before = now - timedelta(seconds=settings.outbox_claim_timeout_seconds)
        candidates = db.execute(
            select(OutboxEvent)
            .where(
                or_(
                    OutboxEvent.status == OutboxStatus.PENDING,
                    and_(
                        OutboxEvent.status == OutboxStatus.PROCESSING,
                        or_(OutboxEvent.claimed_at.is_(None), OutboxEvent.claimed_at < stale_before),
                    ),
                )
            )
            .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
            .limit(settings.outbox_batch_size)
            .with_for_update(skip_locked=True)  # Parallel workers skip claimed rows
        ).scalars().all()

        claimed = []
        for event in candidates:
            if event.status == OutboxStatus.PROCESSING:
                self._record_failure(event, "Claim expired before the event was handled")
                if event.status == OutboxStatus.FAILED:
                    continue
            event.status = OutboxStatus.PROCESSING
            event.claimed_at = now
            claimed.append(event)
        db.commit()
        return claimed

    def _release(self, db: Session, event_ids: list[int]) -> None:
        """Put claimed events that were never handled back to PENDING."""
        if not event_ids:
            return
        try:
            db.execute(
                update(OutboxEvent)
                .where(
                    OutboxEvent.id.in_(event_ids),
                    OutboxEvent.status == OutboxStatus.PROCESSING,
                )
                .values(status=OutboxStatus.PENDING, claimed_at=None)
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(
                "Could not release outbox claims, they are retaken when the claim expires",
                event_ids=event_ids,
                error=str(e),
            )

    async def _process_batch(self) -> int:
        """
        Claim and handle a batch of events.

        Returns:
            Number of events that reached PUBLISHED
        """
        db = self._session_factory()
        claimed_ids: list[int] = []
        handled_ids: set[int] = set()
        try:
            events = self._claim(db)
            if not events:
                return 0
            claimed_ids = [event.id for event in events]

            published = 0
            for event_id, event in zip(claimed_ids, events):
                if await self._handle_event(db, event):
                    published += 1
                handled_ids.add(event_id)

            logger.info("Outbox batch processed", total=len(events), published=published)
            return published

        except Exception as e:
            db.rollback()
            logger.error("Outbox batch processing failed", error=str(e))
            self._release(db, [i for i in claimed_ids if i not in handled_ids])
            return 0
        finally:
            db.close()

    async def _handle_event(self, db: Session, event: OutboxEvent) -> bool:
        try:
            payload = json.loads(event.payload)
            if event.event_type == ORDER_INVENTORY_DEDUCTION:
                return await self._handle_deduction(db, event, payload)
            if event.event_type == NEW_ORDERS:
                await self._publish_new_orders(event, payload)
                self._mark_published(db, event)
                return True
            raise ValueError(f"Unknown outbox event type: {event.event_type}")
        except Exception as e:
            db.rollback()
            self._mark_attempt_failed(db, event, str(e))
            return False

    async def _handle_deduction(self, db: Session, event: OutboxEvent, payload: dict[str, Any]) -> bool:
        order_id = payload["order_id"]
        inventory = InventoryService(db)

        if not inventory.deduct_stock_for_order(order_id):
            db.rollback()
            self._mark_attempt_failed(db, event, f"Stock deduction failed for order {order_id}")
            return False

        # Decrements and the PUBLISHED mark commit together: a retry never
        # deducts twice.
        self._mark_published(db, event)

        try:
            snapshot = inventory.get_inventory_status(event.branch_id)
            redis_client = await get_redis_client()
            await publish_inventory_event(
                redis_client,
                event.branch_id,
                [item.model_dump(mode="json", by_alias=True) for item in snapshot],
                order_id=order_id,
            )
        except Exception as e:
            logger.warning(
                "Inventory update broadcast failed",
                branch_id=event.branch_id,
                order_id=order_id,
                error=str(e),
            )
        return True

    async def _publish_new_orders(self, event: OutboxEvent, payload: dict[str, Any]) -> None:
        redis_client = await get_redis_client()
        await publish_new_order_event(
            redis_client,
            event.branch_id,
            payload.get("order_ids", []),
            actor_user_id=payload.get("actor_user_id"),
        )

    def _mark_published(self, db: Session, event: OutboxEvent) -> None:
        event.status = OutboxStatus.PUBLISHED
        event.processed_at = utcnow()
        event.claimed_at = None
        event.last_error = None
        db.commit()

    def _mark_attempt_failed(self, db: Session, event: OutboxEvent, error: str) -> None:
        self._record_failure(event, error)
        db.commit()

    def _record_failure(self, event: OutboxEvent, error: str) -> None:
        event.retry_count += 1
        event.last_error = error
        event.claimed_at = None
        if event.retry_count >= settings.outbox_max_retries:
            event.status = OutboxStatus.FAILED
            event.processed_at = utcnow()
            logger.error(
                "Outbox event failed after max retries",
                event_id=event.id,
                event_type=event.event_type,
                aggregate_id=event.aggregate_id,
                branch_id=event.branch_id,
                error=error,
            )
        else:
            event.status = OutboxStatus.PENDING
            logger.warning(
                "Outbox event attempt failed",
                event_id=event.id,
                event_type=event.event_type,
                retry_count=event.retry_count,
                error=error,
            )


# Singleton instance
_processor: OutboxProcessor | None = None


def get_outbox_processor() -> OutboxProcessor:
    """Get the singleton outbox processor instance."""
    global _processor
    if _processor is None:
        _processor = OutboxProcessor()
    return _processor


async def start_outbox_processor() -> None:
    """Start the outbox processor (call in FastAPI lifespan startup)."""
    await get_outbox_processor().start()


async def stop_outbox_processor() -> None:
    """Stop the outbox processor (call in FastAPI lifespan shutdown)."""
    await get_outbox_processor().stop()


async def process_pending_events_once(session_factory: sessionmaker[Session] | None = None) -> int:
    """
    Handle one batch of pending events.

    Used as the post-push nudge, by the CLI drain command and in tests.

    Returns:
        Number of events published
    """
    if session_factory is None:
        return await get_outbox_processor()._process_batch()
    return await OutboxProcessor(session_factory)._process_batch()
