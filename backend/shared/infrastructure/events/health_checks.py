"""
Redis health check.
"""

from __future__ import annotations

from typing import Any

from shared.config.settings import settings
from shared.utils.health import health_check_with_timeout
from .circuit_breaker import get_event_circuit_breaker
from .redis_pool import get_redis_pool


@health_check_with_timeout(timeout=3.0, component="redis")
async def check_redis_async_health() -> dict[str, Any]:
    """Ping Redis through the shared pool; details include breaker state."""
    pool = await get_redis_pool()
    await pool.ping()
    return {
        "max_connections": settings.redis_pool_max_connections,
        "circuit_breaker": get_event_circuit_breaker().get_stats(),
    }
