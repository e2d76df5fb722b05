"""Seed the market state from REST before streaming data arrives.

One rate-limited task per (symbol, interval) fetches the latest candle and
hands it to the same ``on_candle`` path the stream uses. A failed fetch is
logged and leaves that cell empty; callers may seed again later.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from .constants import SEED_LIMIT
from .exceptions import FetchError
from .models import CandleSnapshot, Interval, interval_label

if TYPE_CHECKING:
    from .fetch_queue import RateLimitedFetchQueue
    from .rest import ExchangeClient

logger = logging.getLogger(__name__)

CandleHandler = Callable[[CandleSnapshot], None]


async def fetch_seed_candle(
    client: ExchangeClient,
    symbol: str,
    interval: Interval | str,
    limit: int = SEED_LIMIT,
) -> CandleSnapshot | None:
    """Return the most recent candle for (symbol, interval), or None if empty.

    Raises
    ------
    FetchError
        On network failure or a malformed row.
    """
    label = interval_label(interval)
    rows = await client.klines(symbol, label, limit=limit)
    if not rows:
        return None
    return CandleSnapshot.from_rest_row(symbol, label, rows[-1])


async def seed_universe(
    queue: RateLimitedFetchQueue,
    client: ExchangeClient,
    symbols: Iterable[str],
    intervals: Iterable[Interval | str],
    on_candle: CandleHandler,
    *,
    limit: int = SEED_LIMIT,
) -> int:
    """Seed every (symbol, interval) through the rate-limited queue.

    Returns
    -------
    int
        Number of candles fetched and handed to ``on_candle``.
    """
    labels = [interval_label(iv) for iv in intervals]

    def _make_task(symbol: str, interval: str):  # noqa: ANN202
        async def _task() -> bool:
            try:
                candle = await fetch_seed_candle(client, symbol, interval, limit)
            except FetchError as e:
                logger.warning("seed fetch failed for %s %s: %s", symbol, interval, e)
                return False
            if candle is None:
                return False
            on_candle(candle)
            return True

        return _task

    t0 = time.monotonic()
    futures = [
        queue.enqueue(_make_task(symbol, interval))
        for symbol in symbols
        for interval in labels
    ]
    if not futures:
        return 0

    results = await asyncio.gather(*futures)
    seeded = sum(1 for r in results if r)
    logger.info(
        "seeded %d/%d candle(s) in %.1fs",
        seeded, len(futures), time.monotonic() - t0,
    )
    return seeded


__all__ = ["CandleHandler", "fetch_seed_candle", "seed_universe"]
