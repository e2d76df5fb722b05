"""Failure containment for outbound calls that must never stall ingestion.

- ReconnectPolicy: delay schedule for re-opening a dropped stream partition
- CircuitBreaker: short-circuits the alert transport while it keeps failing
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from .constants import RECONNECT_DELAY_S

logger = logging.getLogger(__name__)


@dataclass
class ReconnectPolicy:
    """Delay schedule for reconnecting one partition.

    The default is a fixed delay with unlimited retries: disconnects are
    routine and every partition keeps retrying until the monitor stops.
    Exponential backoff is opt-in via ``backoff_factor > 1``.

    Attributes:
        initial_delay_s: Delay before the first retry
        backoff_factor: Multiplier per consecutive failure (1.0 = fixed)
        max_delay_s: Ceiling for the backed-off delay
        jitter_factor: Random jitter range (0.5 = +/-50% of delay, 0 = none)
        max_retries: Give up after this many consecutive failures (0 = never)

    Notes:
        With jitter the actual delay is
        ``delay * (1 - jitter_factor + random() * 2 * jitter_factor)``.
    """

    initial_delay_s: float = RECONNECT_DELAY_S
    backoff_factor: float = 1.0
    max_delay_s: float = 60.0
    jitter_factor: float = 0.0
    max_retries: int = 0

    def next_delay(self, attempt: int) -> float:
        """Return the delay before retry number ``attempt`` (1-based)."""
        delay = self.initial_delay_s
        if self.backoff_factor > 1.0 and attempt > 1:
            delay = min(
                self.initial_delay_s * self.backoff_factor ** (attempt - 1),
                max(self.max_delay_s, self.initial_delay_s),
            )
        if self.jitter_factor > 0:
            delay *= 1.0 - self.jitter_factor + random.random() * 2 * self.jitter_factor  # noqa: S311
        return delay

    def exhausted(self, attempt: int) -> bool:
        return self.max_retries > 0 and attempt > self.max_retries


class CircuitState(Enum):
    """Circuit breaker state."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when a call is attempted on an open circuit."""


class CircuitBreaker:
    """Circuit breaker around a blocking transport call.

    After ``failure_threshold`` consecutive failures the circuit opens and
    calls fail fast with ``CircuitOpenError`` until ``recovery_timeout``
    seconds have passed; the next call is then a trial (HALF_OPEN) that
    closes the circuit on success.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        expected_exception: type[BaseException] = Exception,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: datetime | None = None
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[CircuitState], None]] = []

    def add_callback(self, callback: Callable[[CircuitState], None]) -> None:
        """Register a state-change callback."""
        self._callbacks.append(callback)

    def call(
        self, func: Callable[..., object],
        *args: object, **kwargs: object,
    ) -> object:
        """Execute func through the circuit breaker."""
        with self._lock:
            if self.state == CircuitState.OPEN:
                if self._should_attempt_reset():
                    self.state = CircuitState.HALF_OPEN
                else:
                    msg = f"Circuit {self.name} is OPEN"
                    raise CircuitOpenError(msg)

        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._on_failure()
            raise
        else:
            self._on_success()
            return result

    def reset(self) -> None:
        with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.last_failure_time = None

    def _should_attempt_reset(self) -> bool:
        if self.last_failure_time is None:
            return True
        elapsed = datetime.now(tz=UTC) - self.last_failure_time
        return elapsed >= timedelta(seconds=self.recovery_timeout)

    def _transition(self, state: CircuitState) -> None:
        self.state = state
        logger.info("circuit %s -> %s", self.name, state.value)
        for cb in self._callbacks:
            cb(state)

    def _on_success(self) -> None:
        with self._lock:
            self.failure_count = 0
            if self.state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.CLOSED)

    def _on_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = datetime.now(tz=UTC)
            if self.state == CircuitState.HALF_OPEN or (
                self.state == CircuitState.CLOSED
                and self.failure_count >= self.failure_threshold
            ):
                self._transition(CircuitState.OPEN)


__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "ReconnectPolicy",
]
