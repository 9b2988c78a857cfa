"""
Core Event Publishing with retry, size validation and circuit breaker.
"""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

from shared.config.settings import settings
from shared.config.logging import get_logger
from .circuit_breaker import calculate_retry_delay_with_jitter, get_event_circuit_breaker
from .event_schema import Event
from .event_types import MAX_EVENT_SIZE

logger = get_logger(__name__)


def _validate_event_size(event_json: str, event_type: str) -> None:
    size = len(event_json.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(
            f"Event {event_type} exceeds max size: {size} > {MAX_EVENT_SIZE} bytes"
        )


async def publish_event(
    redis_client: redis.Redis,
    channel: str,
    event: Event,
) -> int:
    """
    Publish an event to a Redis channel.

    Retries with exponential backoff and jitter, up to
    ``settings.redis_publish_max_retries`` attempts.

    Returns:
        Number of subscribers that received the message, 0 when the
        circuit breaker is open.

    Raises:
        ValueError: If the serialized event is larger than MAX_EVENT_SIZE.
        Exception: The last Redis error once every retry has failed.
    """
    event_json = event.to_json()
    _validate_event_size(event_json, event.type)

    circuit_breaker = get_event_circuit_breaker()
    if not circuit_breaker.can_execute():
        logger.warning(
            "Event publish skipped - circuit breaker open",
            channel=channel,
            event_type=event.type,
        )
        return 0

    max_retries = max(1, settings.redis_publish_max_retries)
    last_error: Exception | None = None
    for attempt in range(max_retries):
        try:
            result = await redis_client.publish(channel, event_json)
            circuit_breaker.record_success()
            return result
        except Exception as e:
            last_error = e
            if attempt < max_retries - 1:
                delay = calculate_retry_delay_with_jitter(
                    attempt, settings.redis_publish_retry_delay
                )
                logger.warning(
                    "Redis publish failed, retrying",
                    channel=channel,
                    event_type=event.type,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay_seconds=round(delay, 2),
                    error=str(e),
                )
                await asyncio.sleep(delay)

    logger.error(
        "Redis publish failed after all retries",
        channel=channel,
        event_type=event.type,
        error=str(last_error),
    )
    circuit_breaker.record_failure()
    raise last_error  # type: ignore[misc]
