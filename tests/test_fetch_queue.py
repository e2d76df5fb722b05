"""Tests for the rate-limited fetch queue."""

from __future__ import annotations

import asyncio

import pytest
from perpmovers.fetch_queue import RateLimitedFetchQueue


def _recording_task(log: list[float], value: int):
    async def _task() -> int:
        log.append(asyncio.get_running_loop().time())
        return value

    return _task


@pytest.mark.asyncio
async def test_150_tasks_drain_in_two_throttled_batches() -> None:
    queue = RateLimitedFetchQueue(batch_size=100, batch_interval_s=0.1)
    started: list[float] = []

    futures = [queue.enqueue(_recording_task(started, i)) for i in range(150)]
    results = await asyncio.gather(*futures)

    assert results == list(range(150))
    assert queue.metrics.last_batch_size == 50
    assert queue.metrics.batches_dispatched == 2
    # Second batch cannot start before the interval has elapsed
    first_batch_start = min(started[:100])
    second_batch_start = min(started[100:])
    assert second_batch_start - first_batch_start >= 0.1 - 0.01


@pytest.mark.asyncio
async def test_batch_never_exceeds_size_in_flight() -> None:
    queue = RateLimitedFetchQueue(batch_size=5, batch_interval_s=0.0)
    in_flight = 0
    peak = 0

    async def task() -> None:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001)
        in_flight -= 1

    await asyncio.gather(*(queue.enqueue(task) for _ in range(23)))
    assert peak <= 5
    assert queue.metrics.batches_dispatched == 5
    assert queue.metrics.last_batch_size == 3


@pytest.mark.asyncio
async def test_failing_task_resolves_none_and_batch_continues() -> None:
    queue = RateLimitedFetchQueue(batch_size=10, batch_interval_s=0.0)

    async def boom() -> int:
        msg = "exchange said no"
        raise RuntimeError(msg)

    async def ok() -> int:
        return 7

    results = await asyncio.gather(queue.enqueue(ok), queue.enqueue(boom), queue.enqueue(ok))
    assert results == [7, None, 7]
    assert queue.metrics.tasks_failed == 1
    assert queue.metrics.tasks_run == 3


@pytest.mark.asyncio
async def test_no_sleep_after_last_batch() -> None:
    queue = RateLimitedFetchQueue(batch_size=2, batch_interval_s=5.0)

    async def ok() -> int:
        return 1

    await asyncio.wait_for(asyncio.gather(queue.enqueue(ok), queue.enqueue(ok)), 1.0)
    await asyncio.wait_for(queue.join(), 1.0)
    assert not queue.is_running


@pytest.mark.asyncio
async def test_start_is_idempotent() -> None:
    queue = RateLimitedFetchQueue(batch_size=1, batch_interval_s=0.01)

    async def ok() -> int:
        return 1

    futures = [queue.enqueue(ok) for _ in range(3)]
    dispatcher = queue._dispatcher
    queue.start()
    queue.start()
    assert queue._dispatcher is dispatcher
    await asyncio.gather(*futures)
    assert queue.metrics.batches_dispatched == 3


@pytest.mark.asyncio
async def test_close_cancels_pending_and_rejects_new_work() -> None:
    queue = RateLimitedFetchQueue(batch_size=1, batch_interval_s=10.0)

    async def ok() -> int:
        return 1

    first = queue.enqueue(ok)
    pending = queue.enqueue(ok)
    assert await first == 1
    await queue.close()

    assert pending.cancelled()
    assert queue.pending() == 0
    with pytest.raises(RuntimeError, match="closed"):
        queue.enqueue(ok)


def test_invalid_batch_size() -> None:
    with pytest.raises(ValueError, match="batch_size"):
        RateLimitedFetchQueue(batch_size=0)


@pytest.mark.asyncio
async def test_stats() -> None:
    queue = RateLimitedFetchQueue(batch_size=3, batch_interval_s=0.0)

    async def ok() -> int:
        return 1

    await asyncio.gather(*(queue.enqueue(ok) for _ in range(4)))
    stats = queue.stats()
    assert stats["tasks_run"] == 4
    assert stats["batches_dispatched"] == 2
    assert stats["last_batch_size"] == 1
    assert stats["pending"] == 0


@pytest.mark.asyncio
async def test_metrics_do_not_grow_with_batch_count() -> None:
    queue = RateLimitedFetchQueue(batch_size=1, batch_interval_s=0.0)

    async def ok() -> int:
        return 1

    for _ in range(500):
        await queue.enqueue(ok)

    assert queue.metrics.batches_dispatched == 500
    assert queue.metrics.last_batch_size == 1
    assert all(not isinstance(v, list) for v in vars(queue.metrics).values())
