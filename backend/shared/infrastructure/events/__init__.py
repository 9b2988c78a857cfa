"""
Live dashboard events via Redis pub/sub.

- circuit_breaker.py: publish breaker and retry jitter
- event_types.py: live event names and outbox event types
- event_schema.py: Event envelope with validation
- channels.py: channel naming
- redis_pool.py: async client lifecycle
- publisher.py: publish_event with retry
- domain_publishers.py: newOrder / inventoryUpdate publishers
- health_checks.py: Redis health check
"""

from .circuit_breaker import (
    CircuitState,
    EventCircuitBreaker,
    get_event_circuit_breaker,
    calculate_retry_delay_with_jitter,
)
from .event_types import (
    NEW_ORDER,
    INVENTORY_UPDATE,
    ORDER_INVENTORY_DEDUCTION,
    NEW_ORDERS,
    AGGREGATE_ORDER,
    AGGREGATE_BRANCH,
    MAX_EVENT_SIZE,
)
from .event_schema import Event
from .channels import channel_branch_dashboard
from .redis_pool import get_redis_pool, get_redis_client, close_redis_pool
from .publisher import publish_event
from .domain_publishers import publish_new_order_event, publish_inventory_event
from .health_checks import check_redis_async_health

__all__ = [
    # circuit breaker
    "CircuitState",
    "EventCircuitBreaker",
    "get_event_circuit_breaker",
    "calculate_retry_delay_with_jitter",
    # event types
    "NEW_ORDER",
    "INVENTORY_UPDATE",
    "ORDER_INVENTORY_DEDUCTION",
    "NEW_ORDERS",
    "AGGREGATE_ORDER",
    "AGGREGATE_BRANCH",
    "MAX_EVENT_SIZE",
    # schema / channels
    "Event",
    "channel_branch_dashboard",
    # redis
    "get_redis_pool",
    "get_redis_client",
    "close_redis_pool",
    # publishing
    "publish_event",
    "publish_new_order_event",
    "publish_inventory_event",
    # health
    "check_redis_async_health",
]
