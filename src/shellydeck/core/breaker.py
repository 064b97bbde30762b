"""Per-device circuit breakers.

A breaker opens after a run of consecutive connectivity failures and rejects
requests until ``open_duration`` has elapsed. It then lets requests through in
the half-open state and closes again after ``success_threshold`` successes.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable

from shellydeck.config import BreakerConfig

from .transport import TransportError, is_connectivity_failure

logger = logging.getLogger(__name__)


class CircuitOpenError(TransportError):
    """The device's breaker is open; no request was sent."""


class BreakerState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = 3,
        success_threshold: int = 1,
        open_duration: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.open_duration = open_duration
        self._clock = clock
        self._state = BreakerState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at = 0.0

    @property
    def state(self) -> BreakerState:
        if (
            self._state is BreakerState.OPEN
            and self._clock() - self._opened_at >= self.open_duration
        ):
            self._state = BreakerState.HALF_OPEN
            self._successes = 0
        return self._state

    def allow(self) -> bool:
        return self.state is not BreakerState.OPEN

    def record_success(self) -> None:
        state = self.state
        self._failures = 0
        if state is BreakerState.HALF_OPEN:
            self._successes += 1
            if self._successes >= self.success_threshold:
                self._state = BreakerState.CLOSED

    def record_failure(self) -> None:
        state = self.state
        if state is BreakerState.HALF_OPEN:
            self._trip()
            return
        self._failures += 1
        if self._failures >= self.failure_threshold:
            self._trip()

    def reset(self) -> None:
        self._state = BreakerState.CLOSED
        self._failures = 0
        self._successes = 0

    def _trip(self) -> None:
        self._state = BreakerState.OPEN
        self._opened_at = self._clock()
        self._failures = 0
        self._successes = 0


class BreakerRegistry:
    """Lazily created breakers keyed by device name."""

    def __init__(
        self,
        config: BreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or BreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(
                    failure_threshold=self._config.failure_threshold,
                    success_threshold=self._config.success_threshold,
                    open_duration=self._config.open_duration,
                    clock=self._clock,
                )
                self._breakers[name] = breaker
            return breaker

    def check(self, name: str) -> None:
        """Raise :class:`CircuitOpenError` when requests to ``name`` are blocked."""
        if not self.get(name).allow():
            raise CircuitOpenError(f"Circuit open for {name}: device unresponsive")

    def record(self, name: str, error: BaseException | None) -> None:
        breaker = self.get(name)
        if error is None:
            breaker.record_success()
        elif is_connectivity_failure(error):
            was_open = breaker.state is BreakerState.OPEN
            breaker.record_failure()
            if not was_open and breaker.state is BreakerState.OPEN:
                logger.info("Circuit opened for %s after repeated failures", name)

    def is_open(self, name: str) -> bool:
        return self.get(name).state is BreakerState.OPEN

    def reset(self, name: str) -> None:
        self.get(name).reset()

    def forget(self, name: str) -> None:
        with self._lock:
            self._breakers.pop(name, None)
