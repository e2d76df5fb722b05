"""Tests for reconnect policy and the alert-transport circuit breaker."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from perpmovers.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    ReconnectPolicy,
)


class TestReconnectPolicy:
    def test_default_is_fixed_five_seconds_forever(self) -> None:
        policy = ReconnectPolicy()
        assert [policy.next_delay(n) for n in (1, 2, 10, 1000)] == [5.0] * 4
        assert not policy.exhausted(10_000)

    def test_opt_in_exponential_backoff_is_capped(self) -> None:
        policy = ReconnectPolicy(initial_delay_s=1.0, backoff_factor=2.0, max_delay_s=5.0)
        assert [policy.next_delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_jitter_stays_in_range(self) -> None:
        policy = ReconnectPolicy(initial_delay_s=10.0, jitter_factor=0.5)
        for n in range(1, 50):
            assert 5.0 <= policy.next_delay(n) <= 15.0

    def test_max_retries(self) -> None:
        policy = ReconnectPolicy(max_retries=3)
        assert not policy.exhausted(3)
        assert policy.exhausted(4)


class TestCircuitBreaker:
    def test_opens_after_threshold_failures(self) -> None:
        cb = CircuitBreaker("telegram", failure_threshold=3, expected_exception=ValueError)

        def failing():
            msg = "send failed"
            raise ValueError(msg)

        for _ in range(3):
            with pytest.raises(ValueError):
                cb.call(failing)
        assert cb.state is CircuitState.OPEN

        with pytest.raises(CircuitOpenError, match="telegram"):
            cb.call(failing)

    def test_half_open_success_closes(self) -> None:
        cb = CircuitBreaker("telegram", failure_threshold=1, recovery_timeout=1)

        def failing():
            msg = "boom"
            raise RuntimeError(msg)

        with pytest.raises(RuntimeError):
            cb.call(failing)
        assert cb.state is CircuitState.OPEN

        cb.last_failure_time = datetime.now(tz=UTC) - timedelta(seconds=2)
        assert cb.call(lambda: "ok") == "ok"
        assert cb.state is CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_half_open_failure_reopens(self) -> None:
        cb = CircuitBreaker("telegram", failure_threshold=2, recovery_timeout=1)
        states: list[CircuitState] = []
        cb.add_callback(states.append)

        def failing():
            msg = "down"
            raise OSError(msg)

        for _ in range(2):
            with pytest.raises(OSError):
                cb.call(failing)
        cb.last_failure_time = datetime.now(tz=UTC) - timedelta(seconds=2)
        with pytest.raises(OSError):
            cb.call(failing)

        assert cb.state is CircuitState.OPEN
        assert states == [CircuitState.OPEN, CircuitState.OPEN]

    def test_unexpected_exception_not_counted(self) -> None:
        cb = CircuitBreaker("telegram", failure_threshold=1, expected_exception=ValueError)
        with pytest.raises(KeyError):
            cb.call(lambda: {}["missing"])
        assert cb.state is CircuitState.CLOSED

    def test_reset(self) -> None:
        cb = CircuitBreaker("telegram", failure_threshold=1)
        with pytest.raises(ZeroDivisionError):
            cb.call(lambda: 1 / 0)
        cb.reset()
        assert cb.state is CircuitState.CLOSED
        assert cb.call(lambda: 1) == 1
