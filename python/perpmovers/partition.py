"""Stream partitioning.

The exchange caps the number of subscriptions one combined-stream connection
may carry, so the full list of ``<symbol>@kline_<interval>`` names is split
into contiguous, order-preserving chunks, one per connection.

>>> names = build_stream_names(["BTCUSDT", "ETHUSDT"], ["5m", "1h"])
>>> names
['btcusdt@kline_5m', 'btcusdt@kline_1h', 'ethusdt@kline_5m', 'ethusdt@kline_1h']
>>> [len(p) for p in partition(names, 3)]
[3, 1]
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .constants import STREAMS_PER_CONNECTION
from .models import Interval, Partition, interval_label


def stream_name(symbol: str, interval: Interval | str) -> str:
    """Return the subscription name for one (symbol, interval)."""
    return f"{symbol.lower()}@kline_{interval_label(interval)}"


def build_stream_names(
    symbols: Iterable[str],
    intervals: Iterable[Interval | str],
) -> list[str]:
    """Return subscription names, symbol-major, in input order."""
    intervals = list(intervals)
    return [stream_name(s, iv) for s in symbols for iv in intervals]


def partition(
    names: Sequence[str],
    size: int = STREAMS_PER_CONNECTION,
    *,
    start_index: int = 0,
) -> list[Partition]:
    """Split ``names`` into contiguous groups of at most ``size``.

    Parameters
    ----------
    names : Sequence[str]
        Subscription names, in the order they should be assigned.
    size : int
        Maximum names per partition (the per-connection limit).
    start_index : int
        Index given to the first partition. Used when partitions are added
        to an already running set so indices stay unique.

    Returns
    -------
    list[Partition]
        ``ceil(len(names) / size)`` partitions whose names concatenate back
        to ``names``.

    Raises
    ------
    ValueError
        If ``size`` is less than 1.
    """
    if size < 1:
        msg = f"partition size must be >= 1, got {size}"
        raise ValueError(msg)
    return [
        Partition(index=start_index + n, names=tuple(names[i : i + size]))
        for n, i in enumerate(range(0, len(names), size))
    ]


def combined_stream_url(base_url: str, part: Partition) -> str:
    """Return the combined-stream URL subscribing to every name in ``part``."""
    return f"{base_url}?streams={'/'.join(part.names)}"


__all__ = [
    "build_stream_names",
    "combined_stream_url",
    "partition",
    "stream_name",
]
