"""
Circuit breaker and retry backoff for Redis publishing.

When Redis is down, publishing fails fast instead of making every outbox
event wait for socket timeouts. Events that are skipped this way are
advisory only; stock and orders are already committed.
"""

from __future__ import annotations

import random
import threading
import time
from enum import Enum

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)

MAX_RETRY_DELAY_SECONDS = 10.0


class CircuitState(Enum):
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Publishing rejected
    HALF_OPEN = "half_open"  # Probing recovery


class EventCircuitBreaker:
    """
    Thread-safe breaker around Redis publish calls.

    Opens after ``failure_threshold`` consecutive failures, stays open for
    ``recovery_timeout`` seconds, then lets ``half_open_max_calls`` probes
    through. One successful probe closes it again.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_max_calls: int = 3,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_max_calls = half_open_max_calls

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._probes = 0
        self._rejected = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def can_execute(self) -> bool:
        with self._lock:
            if self._state is CircuitState.OPEN:
                if time.monotonic() - self._opened_at < self.recovery_timeout:
                    self._rejected += 1
                    return False
                self._state = CircuitState.HALF_OPEN
                self._probes = 0
                logger.info("Publish circuit breaker half-open")

            if self._state is CircuitState.HALF_OPEN:
                if self._probes >= self.half_open_max_calls:
                    self._rejected += 1
                    return False
                self._probes += 1

            return True

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._state is CircuitState.HALF_OPEN or (
                self._state is CircuitState.CLOSED and self._failures >= self.failure_threshold
            ):
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                logger.error(
                    "Publish circuit breaker open",
                    failures=self._failures,
                    threshold=self.failure_threshold,
                )

    def record_success(self) -> None:
        with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                logger.info("Publish circuit breaker closed")
            self._state = CircuitState.CLOSED
            self._failures = 0

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._probes = 0
            self._rejected = 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "state": self._state.value,
                "failure_count": self._failures,
                "rejected_count": self._rejected,
            }


_event_circuit_breaker: EventCircuitBreaker | None = None
_circuit_breaker_lock = threading.Lock()


def get_event_circuit_breaker() -> EventCircuitBreaker:
    """Get or create the process-wide publish breaker."""
    global _event_circuit_breaker
    if _event_circuit_breaker is None:
        with _circuit_breaker_lock:
            if _event_circuit_breaker is None:
                _event_circuit_breaker = EventCircuitBreaker(
                    failure_threshold=settings.redis_publish_max_retries + 2,
                )
    return _event_circuit_breaker


def calculate_retry_delay_with_jitter(attempt: int, base_delay: float = 0.5) -> float:
    """
    Exponential backoff (``base_delay * 2**attempt``, capped) with random jitter
    between ``base_delay`` and the backoff value.
    """
    exp_delay = min(base_delay * (2 ** attempt), MAX_RETRY_DELAY_SECONDS)
    return random.uniform(base_delay, max(base_delay, exp_delay))
