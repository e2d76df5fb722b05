"""REST polling ingestion, the alternative to streaming.

For every tracked interval one loop runs a pass immediately and then once per
interval duration. A pass enqueues one rate-limited ``klines(limit=2)``
fetch per symbol and measures the move from the previous candle's open to
the latest close, feeding the same ``on_candle`` path the stream uses.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable

from .constants import POLL_LIMIT
from .exceptions import FetchError
from .fetch_queue import RateLimitedFetchQueue
from .models import CandleSnapshot, Interval
from .rest import ExchangeClient
from .seeding import CandleHandler

logger = logging.getLogger(__name__)


async def fetch_poll_candle(
    client: ExchangeClient,
    symbol: str,
    interval: Interval,
) -> CandleSnapshot | None:
    """Return the merged span of the last two candles, or None if fewer exist."""
    rows = await client.klines(symbol, interval.value, limit=POLL_LIMIT)
    if len(rows) < POLL_LIMIT:
        return None
    return CandleSnapshot.from_rest_pair(symbol, interval.value, rows[-2], rows[-1])


class RestPoller:
    """Periodic per-interval polling through the shared fetch queue.

    Parameters
    ----------
    client : ExchangeClient
        REST client used for kline requests.
    queue : RateLimitedFetchQueue
        Shared rate limiter; every request goes through it.
    on_candle : Callable[[CandleSnapshot], None]
        Receives every polled span.
    symbols : Iterable[str]
        Universe to poll; extended with ``add_symbols``.
    intervals : Iterable[Interval]
        Intervals polled from ``start()``; extended with ``add_intervals``.
    """

    def __init__(
        self,
        client: ExchangeClient,
        queue: RateLimitedFetchQueue,
        on_candle: CandleHandler,
        symbols: Iterable[str],
        intervals: Iterable[Interval],
    ) -> None:
        self._client = client
        self._queue = queue
        self._on_candle = on_candle
        self.symbols: list[str] = list(dict.fromkeys(symbols))
        self.intervals: list[Interval] = list(dict.fromkeys(intervals))
        self._tasks: dict[Interval, asyncio.Task] = {}
        self._stopping = False
        self.passes = 0
        self.fetch_errors = 0

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks.values())

    def start(self) -> None:
        """Start one polling loop per interval; already running loops are kept."""
        if self._stopping:
            return
        for interval in self.intervals:
            task = self._tasks.get(interval)
            if task is None or task.done():
                self._tasks[interval] = asyncio.create_task(
                    self._poll_loop(interval), name=f"poller-{interval.value}",
                )

    def add_symbols(self, symbols: Iterable[str]) -> None:
        for symbol in symbols:
            if symbol not in self.symbols:
                self.symbols.append(symbol)

    def add_intervals(self, intervals: Iterable[Interval]) -> None:
        """Track more intervals; loops start immediately if the poller runs."""
        for interval in intervals:
            if interval not in self.intervals:
                self.intervals.append(interval)
        if self._tasks:
            self.start()

    async def poll_once(self, interval: Interval) -> int:
        """Run one pass for ``interval``; returns the number of spans delivered."""
        symbols = list(self.symbols)
        futures = [
            self._queue.enqueue(lambda s=symbol: self._poll_symbol(s, interval))
            for symbol in symbols
        ]
        results = await asyncio.gather(*futures)
        self.passes += 1
        return sum(1 for r in results if r)

    async def _poll_symbol(self, symbol: str, interval: Interval) -> bool:
        try:
            candle = await fetch_poll_candle(self._client, symbol, interval)
        except FetchError as e:
            self.fetch_errors += 1
            logger.warning("poll fetch failed for %s %s: %s", symbol, interval.value, e)
            return False
        if candle is None:
            return False
        self._on_candle(candle)
        return True

    async def _poll_loop(self, interval: Interval) -> None:
        period = interval.seconds
        while not self._stopping:
            t0 = time.monotonic()
            delivered = await self.poll_once(interval)
            elapsed = time.monotonic() - t0
            logger.info(
                "polled %s: %d/%d symbol(s) in %.1fs",
                interval.value, delivered, len(self.symbols), elapsed,
            )
            await asyncio.sleep(max(0.0, period - elapsed))

    async def close(self) -> None:
        self._stopping = True
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def stats(self) -> dict:
        return {
            "running": self.is_running,
            "intervals": [iv.value for iv in self.intervals],
            "symbols": len(self.symbols),
            "passes": self.passes,
            "fetch_errors": self.fetch_errors,
        }


__all__ = ["RestPoller", "fetch_poll_candle"]
