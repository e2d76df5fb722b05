"""Rate-limited fetch queue for REST seed requests.

Callers enqueue any number of zero-argument async tasks. A single dispatcher
drains up to ``batch_size`` tasks, runs that batch fully in parallel and,
only if more tasks are waiting, sleeps ``batch_interval_s`` before the next
batch. Peak outbound rate is therefore bounded by ``batch_size`` requests per
``batch_interval_s`` no matter how many callers enqueue concurrently.

Typical usage:
    queue = RateLimitedFetchQueue()
    futures = [queue.enqueue(lambda s=s: client.klines(s, "5m")) for s in symbols]
    results = await asyncio.gather(*futures)   # None for tasks that failed
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .constants import FETCH_BATCH_INTERVAL_S, FETCH_BATCH_SIZE

logger = logging.getLogger(__name__)

FetchTask = Callable[[], Awaitable[Any]]


@dataclass
class FetchQueueMetrics:
    """Counters for dispatched work."""

    tasks_run: int = 0
    tasks_failed: int = 0
    batches_dispatched: int = 0
    last_batch_size: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dictionary."""
        return {
            "tasks_run": self.tasks_run,
            "tasks_failed": self.tasks_failed,
            "batches_dispatched": self.batches_dispatched,
            "last_batch_size": self.last_batch_size,
        }


class RateLimitedFetchQueue:
    """Batching, throttled executor for async fetch tasks.

    Parameters
    ----------
    batch_size : int
        Maximum tasks run in parallel per batch (default: 100).
    batch_interval_s : float
        Pause between consecutive batches (default: 0.1).
    """

    def __init__(
        self,
        batch_size: int = FETCH_BATCH_SIZE,
        batch_interval_s: float = FETCH_BATCH_INTERVAL_S,
    ) -> None:
        if batch_size < 1:
            msg = f"batch_size must be >= 1, got {batch_size}"
            raise ValueError(msg)
        self.batch_size = batch_size
        self.batch_interval_s = batch_interval_s
        self.metrics = FetchQueueMetrics()
        self._pending: deque[tuple[FetchTask, asyncio.Future]] = deque()
        self._dispatcher: asyncio.Task | None = None
        self._closed = False

    @property
    def is_running(self) -> bool:
        return self._dispatcher is not None and not self._dispatcher.done()

    def pending(self) -> int:
        return len(self._pending)

    def enqueue(self, task: FetchTask) -> asyncio.Future:
        """Queue ``task`` and return a future resolved once it has run.

        The future's result is the task's return value, or None if the task
        raised. Must be called from within the running event loop.
        """
        if self._closed:
            msg = "fetch queue is closed"
            raise RuntimeError(msg)
        future = asyncio.get_running_loop().create_future()
        self._pending.append((task, future))
        self.start()
        return future

    def start(self) -> None:
        """Start the dispatcher; a no-op while one is already running."""
        if self.is_running or not self._pending:
            return
        self._dispatcher = asyncio.create_task(self._drain(), name="fetch-queue")

    async def _drain(self) -> None:
        while self._pending:
            batch = [
                self._pending.popleft()
                for _ in range(min(self.batch_size, len(self._pending)))
            ]
            self.metrics.batches_dispatched += 1
            self.metrics.last_batch_size = len(batch)
            logger.debug(
                "dispatching batch #%d (%d task(s), %d waiting)",
                self.metrics.batches_dispatched, len(batch), len(self._pending),
            )
            await asyncio.gather(*(self._run(task, fut) for task, fut in batch))
            if self._pending:
                await asyncio.sleep(self.batch_interval_s)

    async def _run(self, task: FetchTask, future: asyncio.Future) -> None:
        self.metrics.tasks_run += 1
        try:
            result = await task()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as e:
            self.metrics.tasks_failed += 1
            logger.warning("fetch task failed: %s", e)
            result = None
        if not future.done():
            future.set_result(result)

    async def join(self) -> None:
        """Wait until every queued task has run."""
        while self.is_running:
            await asyncio.shield(self._dispatcher)

    async def close(self) -> None:
        """Stop dispatching and cancel everything still waiting."""
        self._closed = True
        while self._pending:
            _, future = self._pending.popleft()
            future.cancel()
        if self._dispatcher is not None and not self._dispatcher.done():
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
        self._dispatcher = None

    def stats(self) -> dict:
        return {
            "pending": len(self._pending),
            "running": self.is_running,
            "batch_size": self.batch_size,
            "batch_interval_s": self.batch_interval_s,
            **self.metrics.to_dict(),
        }


__all__ = ["FetchQueueMetrics", "FetchTask", "RateLimitedFetchQueue"]
