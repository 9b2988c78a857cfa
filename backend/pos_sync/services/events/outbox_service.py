"""
Outbox service for transactional side effects.

Outbox rows are written with the same session as the pushed batch, so they
commit (or roll back) together with it. The outbox processor then runs the
inventory deduction and publishes the dashboard events.

Usage in the sync service:
    order = Order(...)
    db.add(order)
    write_order_deduction_event(db, branch_id=branch_id, order_id=order.id)
    write_new_orders_event(db, branch_id=branch_id, order_ids=[order.id])
    db.commit()  # Orders and outbox rows are saved together
"""

import json
from typing import Any

from sqlalchemy.orm import Session

from pos_sync.models import OutboxEvent, OutboxStatus
from shared.config.logging import get_logger
from shared.infrastructure.events import (
    AGGREGATE_BRANCH,
    AGGREGATE_ORDER,
    NEW_ORDERS,
    ORDER_INVENTORY_DEDUCTION,
)

logger = get_logger(__name__)


def write_outbox_event(
    db: Session,
    branch_id: int,
    event_type: str,
    aggregate_type: str,
    aggregate_id: str | int,
    payload: dict[str, Any],
) -> OutboxEvent:
    """
    Queue an outbox event on the caller's session.

    MUST be called within the transaction of the business operation. The
    row is neither flushed nor committed here.
    """
    outbox_event = OutboxEvent(
        branch_id=branch_id,
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=str(aggregate_id),
        payload=json.dumps(payload),
        status=OutboxStatus.PENDING,
        retry_count=0,
    )
    db.add(outbox_event)
    logger.debug(
        "Outbox event queued",
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
    )
    return outbox_event


def write_order_deduction_event(db: Session, branch_id: int, order_id: str) -> OutboxEvent:
    """One per newly created order."""
    return write_outbox_event(
        db=db,
        branch_id=branch_id,
        event_type=ORDER_INVENTORY_DEDUCTION,
        aggregate_type=AGGREGATE_ORDER,
        aggregate_id=order_id,
        payload={"order_id": order_id, "branch_id": branch_id},
    )


def write_new_orders_event(
    db: Session,
    branch_id: int,
    order_ids: list[str],
    actor_user_id: str | None = None,
) -> OutboxEvent:
    """One per push batch that created at least one order."""
    return write_outbox_event(
        db=db,
        branch_id=branch_id,
        event_type=NEW_ORDERS,
        aggregate_type=AGGREGATE_BRANCH,
        aggregate_id=branch_id,
        payload={
            "branch_id": branch_id,
            "order_ids": list(order_ids),
            "actor_user_id": actor_user_id,
        },
    )
