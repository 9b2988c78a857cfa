"""
Tests for dashboard event publishing.

Tests verify:
- Event envelope validation and serialization
- Channel naming
- publish_event retries, size limit and circuit breaker
- Domain publishers build the expected payloads
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shared.infrastructure.events import (
    CircuitState,
    Event,
    EventCircuitBreaker,
    INVENTORY_UPDATE,
    NEW_ORDER,
    calculate_retry_delay_with_jitter,
    channel_branch_dashboard,
    get_event_circuit_breaker,
    publish_event,
    publish_inventory_event,
    publish_new_order_event,
)


def fake_redis(side_effect=None) -> MagicMock:
    redis = MagicMock()
    redis.publish = AsyncMock(return_value=2, side_effect=side_effect)
    return redis


class TestEventSchema:

    def test_to_json_fills_defaults(self):
        event = Event(type=NEW_ORDER, branch_id=1, entity={"order_ids": ["a"]})

        data = json.loads(event.to_json())

        assert data["type"] == "newOrder"
        assert data["branch_id"] == 1
        assert data["actor"] == {}
        assert data["ts"] is not None
        assert data["v"] == 1

    def test_roundtrip(self):
        event = Event(type=INVENTORY_UPDATE, branch_id=4, entity={"items": []}, ts="2024-01-01T00:00:00+00:00")

        assert Event.from_json(event.to_json()) == event

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"type": "", "branch_id": 1},
            {"type": "newOrder", "branch_id": 0},
            {"type": "newOrder", "branch_id": True},
            {"type": "newOrder", "branch_id": 1, "entity": ["not", "a", "dict"]},
        ],
    )
    def test_invalid_events_are_rejected(self, kwargs):
        with pytest.raises(ValueError):
            Event(**kwargs)


class TestChannels:

    def test_branch_dashboard(self):
        assert channel_branch_dashboard(7) == "branch:7:dashboard"

    @pytest.mark.parametrize("bad", [0, -1, "1", None])
    def test_rejects_invalid_branch(self, bad):
        with pytest.raises(ValueError):
            channel_branch_dashboard(bad)


class TestPublishEvent:

    @pytest.mark.asyncio
    async def test_publishes_json(self):
        redis = fake_redis()
        event = Event(type=NEW_ORDER, branch_id=1)

        assert await publish_event(redis, "branch:1:dashboard", event) == 2

        channel, message = redis.publish.call_args.args
        assert channel == "branch:1:dashboard"
        assert json.loads(message)["type"] == NEW_ORDER

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        redis = fake_redis(side_effect=[ConnectionError("blip"), 1])

        assert await publish_event(redis, "c", Event(type=NEW_ORDER, branch_id=1)) == 1
        assert redis.publish.await_count == 2

    @pytest.mark.asyncio
    async def test_raises_after_all_retries(self):
        redis = fake_redis(side_effect=ConnectionError("down"))

        with pytest.raises(ConnectionError):
            await publish_event(redis, "c", Event(type=NEW_ORDER, branch_id=1))

        assert get_event_circuit_breaker().get_stats()["failure_count"] == 1

    @pytest.mark.asyncio
    async def test_oversized_event_is_rejected(self):
        redis = fake_redis()
        event = Event(type=INVENTORY_UPDATE, branch_id=1, entity={"blob": "x" * 300_000})

        with patch("shared.infrastructure.events.publisher.MAX_EVENT_SIZE", 1024):
            with pytest.raises(ValueError, match="exceeds max size"):
                await publish_event(redis, "c", event)

        redis.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_open_breaker_skips_publish(self):
        breaker = get_event_circuit_breaker()
        for _ in range(breaker.failure_threshold):
            breaker.record_failure()
        redis = fake_redis()

        assert await publish_event(redis, "c", Event(type=NEW_ORDER, branch_id=1)) == 0
        redis.publish.assert_not_called()


class TestDomainPublishers:

    @pytest.mark.asyncio
    async def test_new_order_event(self):
        redis = fake_redis()

        await publish_new_order_event(redis, 3, ["o-1", "o-2"], actor_user_id="u-9")

        channel, message = redis.publish.call_args.args
        data = json.loads(message)
        assert channel == "branch:3:dashboard"
        assert data["entity"] == {"order_ids": ["o-1", "o-2"], "count": 2}
        assert data["actor"] == {"user_id": "u-9", "role": "TERMINAL"}

    @pytest.mark.asyncio
    async def test_inventory_event_from_system(self):
        redis = fake_redis()
        items = [{"id": "i-1", "name": "Milk", "currentStock": "1.4"}]

        await publish_inventory_event(redis, 3, items, order_id="o-1")

        data = json.loads(redis.publish.call_args.args[1])
        assert data["type"] == INVENTORY_UPDATE
        assert data["entity"] == {"items": items, "order_id": "o-1"}
        assert data["actor"]["role"] == "SYSTEM"


class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        breaker = EventCircuitBreaker(failure_threshold=2, recovery_timeout=60)

        breaker.record_failure()
        assert breaker.can_execute() is True
        breaker.record_failure()

        assert breaker.state is CircuitState.OPEN
        assert breaker.can_execute() is False
        assert breaker.get_stats()["rejected_count"] == 1

    def test_half_open_probe_closes_on_success(self):
        breaker = EventCircuitBreaker(failure_threshold=1, recovery_timeout=0, half_open_max_calls=1)
        breaker.record_failure()

        assert breaker.can_execute() is True
        assert breaker.state is CircuitState.HALF_OPEN
        assert breaker.can_execute() is False

        breaker.record_success()
        assert breaker.state is CircuitState.CLOSED

    def test_half_open_failure_reopens(self):
        breaker = EventCircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        breaker.can_execute()

        breaker.record_failure()

        assert breaker.state is CircuitState.OPEN

    def test_success_resets_failures(self):
        breaker = EventCircuitBreaker(failure_threshold=3)
        breaker.record_failure()
        breaker.record_failure()

        breaker.record_success()

        assert breaker.get_stats() == {"state": "closed", "failure_count": 0, "rejected_count": 0}


class TestRetryDelay:

    def test_within_bounds(self):
        for attempt in range(6):
            delay = calculate_retry_delay_with_jitter(attempt, 0.5)
            assert 0.5 <= delay <= min(0.5 * 2 ** attempt, 10.0)

    def test_zero_base(self):
        assert calculate_retry_delay_with_jitter(3, 0) == 0
