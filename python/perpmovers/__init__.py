"""perpmovers: percent-move tracking and crossing alerts for USDT perpetuals.

Every USDT-quoted perpetual in TRADING status is tracked across several kline
intervals. Subscriptions are split across as many combined-stream connections
as the exchange's per-connection limit requires, each partition reconnecting
on its own; REST seeding goes through a rate-limited batch queue. A
percent change leaving the +/-5% band raises one alert until it re-enters.

Examples
--------
Run the monitor with default settings:

>>> import asyncio
>>> from perpmovers import MarketMonitor
>>> asyncio.run(MarketMonitor().run_forever())

Read the table from another thread while it runs:

>>> for symbol, row in monitor.store.sorted_rows("5m-desc")[:10]:
...     print(symbol, row.changes[Interval.M5], row.last_price)
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .alerts import AlertSink, LogTransport
from .config import MonitorConfig, NotifyConfig, Settings
from .crossing import CrossingDetector
from .directory import SymbolDirectory, filter_universe
from .exceptions import (
    AlertDispatchError,
    FetchError,
    MessageParseError,
    PerpMoversError,
    StreamError,
)
from .fetch_queue import RateLimitedFetchQueue
from .models import (
    LONG_INTERVALS,
    SHORT_INTERVALS,
    AlertEvent,
    CandleSnapshot,
    CrossingDirection,
    Interval,
    MarketRow,
    Partition,
)
from .monitor import MarketMonitor
from .partition import build_stream_names, partition
from .polling import RestPoller
from .rest import ExchangeClient
from .seeding import seed_universe
from .store import MarketStateStore
from .supervisor import ConnectionSupervisor, SupervisorState

try:
    __version__ = version("perpmovers")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "LONG_INTERVALS",
    "SHORT_INTERVALS",
    "AlertDispatchError",
    "AlertEvent",
    "AlertSink",
    "CandleSnapshot",
    "ConnectionSupervisor",
    "CrossingDetector",
    "CrossingDirection",
    "ExchangeClient",
    "FetchError",
    "Interval",
    "LogTransport",
    "MarketMonitor",
    "MarketRow",
    "MarketStateStore",
    "MessageParseError",
    "MonitorConfig",
    "NotifyConfig",
    "Partition",
    "PerpMoversError",
    "RateLimitedFetchQueue",
    "RestPoller",
    "Settings",
    "StreamError",
    "SupervisorState",
    "SymbolDirectory",
    "__version__",
    "build_stream_names",
    "filter_universe",
    "partition",
    "seed_universe",
]
