"""
Domain event publishers for branch dashboards.

Both are advisory: callers log failures and never let them affect the
committed data.
"""

from __future__ import annotations

from typing import Any

import redis.asyncio as redis

from .channels import channel_branch_dashboard
from .event_schema import Event
from .event_types import INVENTORY_UPDATE, NEW_ORDER
from .publisher import publish_event

SYSTEM_ACTOR = {"user_id": None, "role": "SYSTEM"}


async def publish_new_order_event(
    redis_client: redis.Redis,
    branch_id: int,
    order_ids: list[str],
    actor_user_id: str | None = None,
) -> int:
    """
    Announce that a push created new orders.

    Sent once per push batch, carrying every new order id of the batch.
    """
    event = Event(
        type=NEW_ORDER,
        branch_id=branch_id,
        entity={"order_ids": list(order_ids), "count": len(order_ids)},
        actor={"user_id": actor_user_id, "role": "TERMINAL"} if actor_user_id else SYSTEM_ACTOR,
    )
    return await publish_event(redis_client, channel_branch_dashboard(branch_id), event)


async def publish_inventory_event(
    redis_client: redis.Redis,
    branch_id: int,
    items: list[dict[str, Any]],
    order_id: str | None = None,
) -> int:
    """
    Broadcast the branch's current stock snapshot.

    ``items`` is the serialized inventory status (lowest stock first);
    ``order_id`` names the order whose deduction triggered the snapshot.
    """
    event = Event(
        type=INVENTORY_UPDATE,
        branch_id=branch_id,
        entity={"items": items, "order_id": order_id},
        actor=SYSTEM_ACTOR,
    )
    return await publish_event(redis_client, channel_branch_dashboard(branch_id), event)
