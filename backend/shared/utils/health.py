"""
Health check utilities.

Decorated checks always return a HealthCheckResult: they never raise and
never hang longer than their timeout.

Usage:
    @health_check_with_timeout(timeout=3.0, component="redis")
    async def check_redis():
        await redis.ping()
        return {"pool_size": 10}
"""

from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Coroutine

from shared.config.logging import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class HealthCheckResult:
    """Result of one component check."""

    status: HealthStatus
    component: str
    latency_ms: float | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status.value, "component": self.component}
        if self.latency_ms is not None:
            result["latency_ms"] = round(self.latency_ms, 2)
        if self.error:
            result["error"] = self.error
        if self.details:
            result["details"] = self.details
        return result


def health_check_with_timeout(timeout: float = 5.0, component: str | None = None):
    """
    Wrap an async check with a timeout and uniform result formatting.

    The wrapped coroutine may return a dict of details; any exception or
    timeout becomes an UNHEALTHY result.
    """

    def decorator(
        func: Callable[..., Coroutine[Any, Any, dict[str, Any] | None]],
    ) -> Callable[..., Coroutine[Any, Any, HealthCheckResult]]:
        comp_name = component or func.__name__.replace("check_", "").replace("_health", "")

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> HealthCheckResult:
            start_time = time.perf_counter()
            try:
                result = await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            except asyncio.TimeoutError:
                error = f"timeout after {timeout}s"
            except Exception as e:
                error = str(e) or e.__class__.__name__
            else:
                return HealthCheckResult(
                    status=HealthStatus.HEALTHY,
                    component=comp_name,
                    latency_ms=(time.perf_counter() - start_time) * 1000,
                    details=result if isinstance(result, dict) else {},
                )

            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.warning("Health check failed", component=comp_name, error=error)
            return HealthCheckResult(
                status=HealthStatus.UNHEALTHY,
                component=comp_name,
                latency_ms=latency_ms,
                error=error,
            )

        return wrapper

    return decorator


async def aggregate_health_checks(
    checks: list[Coroutine[Any, Any, HealthCheckResult]],
) -> dict[str, Any]:
    """
    Run checks concurrently.

    Returns ``{"status": "healthy" | "degraded", "components": {...}}``.
    """
    results = await asyncio.gather(*checks, return_exceptions=True)

    components: dict[str, dict] = {}
    all_healthy = True
    for result in results:
        if isinstance(result, HealthCheckResult):
            components[result.component] = result.to_dict()
            if result.status != HealthStatus.HEALTHY:
                all_healthy = False
        elif isinstance(result, BaseException):
            components["unknown"] = {
                "status": HealthStatus.UNHEALTHY.value,
                "error": str(result),
            }
            all_healthy = False

    return {
        "status": HealthStatus.HEALTHY.value if all_healthy else HealthStatus.DEGRADED.value,
        "components": components,
    }
