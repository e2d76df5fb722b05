"""Data models shared across the ingestion pipeline.

- Interval: the closed, ordered set of timeframe labels
- CandleSnapshot: one kline, from a REST seed or a stream update
- MarketRow: per-symbol row of the market snapshot table
- Partition: a fixed group of stream names owned by one connection
- AlertEvent: a discrete threshold crossing
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .constants import (
    INTERVAL_SECONDS,
    LONG_INTERVAL_LABELS,
    PERCENT_DECIMALS,
    SHORT_INTERVAL_LABELS,
)
from .exceptions import FetchError, MessageParseError


class Interval(str, Enum):
    """Kline timeframe labels, in display order."""

    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H2 = "2h"
    H4 = "4h"
    H8 = "8h"
    H12 = "12h"
    D1 = "1d"
    W1 = "1w"
    MO1 = "1M"

    @classmethod
    def parse(cls, label: str) -> Interval | None:
        """Return the member for ``label``, or None if it is not recognized."""
        try:
            return cls(label)
        except ValueError:
            return None

    @property
    def seconds(self) -> int:
        return INTERVAL_SECONDS[self.value]

    @property
    def is_short(self) -> bool:
        return self.value in SHORT_INTERVAL_LABELS


SHORT_INTERVALS: tuple[Interval, ...] = tuple(Interval(v) for v in SHORT_INTERVAL_LABELS)
LONG_INTERVALS: tuple[Interval, ...] = tuple(Interval(v) for v in LONG_INTERVAL_LABELS)


def interval_label(interval: Interval | str) -> str:
    """Return the raw label for an Interval member or a plain string."""
    return interval.value if isinstance(interval, Interval) else interval


def format_percent(value: float) -> str:
    """Format a percent change the way the snapshot table stores it."""
    return f"{value:.{PERCENT_DECIMALS}f}"


@dataclass(frozen=True)
class CandleSnapshot:
    """Latest state of one kline for a (symbol, interval).

    ``interval`` keeps the raw label as received so that consumers can
    reject labels outside the enumerated set instead of failing to build
    the snapshot.
    """

    open_time: int
    close_time: int
    symbol: str
    interval: str
    open: float
    close: float
    high: float
    low: float
    volume: float
    trade_count: int = 0
    is_closed: bool = False
    quote_volume: float = 0.0
    taker_buy_base_volume: float = 0.0
    taker_buy_quote_volume: float = 0.0
    first_trade_id: int = 0
    last_trade_id: int = 0

    def percent_change(self) -> float | None:
        """Return ``(close - open) / open * 100``; None when open is zero."""
        if self.open == 0:
            return None
        return (self.close - self.open) / self.open * 100

    @classmethod
    def from_stream(cls, k: dict[str, Any]) -> CandleSnapshot:
        """Build from a stream kline payload ``{t,T,s,i,f,L,o,c,h,l,v,n,x,q,V,Q}``.

        Raises
        ------
        MessageParseError
            If a field is missing or not numeric.
        """
        try:
            return cls(
                open_time=int(k["t"]),
                close_time=int(k["T"]),
                symbol=str(k["s"]),
                interval=str(k["i"]),
                open=float(k["o"]),
                close=float(k["c"]),
                high=float(k["h"]),
                low=float(k["l"]),
                volume=float(k["v"]),
                trade_count=int(k.get("n", 0)),
                is_closed=bool(k.get("x", False)),
                quote_volume=float(k.get("q", 0)),
                taker_buy_base_volume=float(k.get("V", 0)),
                taker_buy_quote_volume=float(k.get("Q", 0)),
                first_trade_id=int(k.get("f", 0)),
                last_trade_id=int(k.get("L", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            msg = f"malformed kline payload: {e!r}"
            raise MessageParseError(msg, raw=repr(k)) from e

    @classmethod
    def from_rest_row(
        cls, symbol: str, interval: str, row: list[Any],
    ) -> CandleSnapshot:
        """Build from a REST kline row ``[openTime, open, high, low, close, volume, closeTime, ...]``.

        Derived fields (trade count, quote and taker volumes) are zeroed.

        Raises
        ------
        FetchError
            If the row is too short or not numeric.
        """
        try:
            open_time, open_, high, low, close, volume, close_time = row[:7]
            return cls(
                open_time=int(open_time),
                close_time=int(close_time),
                symbol=symbol,
                interval=interval,
                open=float(open_),
                close=float(close),
                high=float(high),
                low=float(low),
                volume=float(volume),
                is_closed=True,
            )
        except (KeyError, TypeError, ValueError) as e:
            msg = f"malformed kline row for {symbol} {interval}: {e}"
            raise FetchError(msg, symbol=symbol, interval=interval) from e

    @classmethod
    def from_rest_pair(
        cls,
        symbol: str,
        interval: str,
        previous: list[Any],
        current: list[Any],
    ) -> CandleSnapshot:
        """Merge two consecutive REST rows into one span.

        Open and open time come from ``previous``, close and close time from
        ``current``; high, low and volume cover both rows.

        Used by the polling variant, which measures the move from the open of
        the previous candle to the latest close.
        """
        prev = cls.from_rest_row(symbol, interval, previous)
        cur = cls.from_rest_row(symbol, interval, current)
        return cls(
            open_time=prev.open_time,
            close_time=cur.close_time,
            symbol=symbol,
            interval=interval,
            open=prev.open,
            close=cur.close,
            high=max(prev.high, cur.high),
            low=min(prev.low, cur.low),
            volume=prev.volume + cur.volume,
            is_closed=False,
        )


@dataclass
class MarketRow:
    """One row of the market snapshot table."""

    changes: dict[Interval, str | None] = field(
        default_factory=lambda: dict.fromkeys(Interval),
    )
    last_price: float | None = None

    def copy(self) -> MarketRow:
        return MarketRow(changes=dict(self.changes), last_price=self.last_price)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {iv.value: v for iv, v in self.changes.items()}
        d["lastPrice"] = self.last_price
        return d


@dataclass(frozen=True)
class Partition:
    """Ordered batch of stream names bound to one connection.

    Identity is the index plus the member list; both are fixed at creation
    and reused verbatim on every reconnect.
    """

    index: int
    names: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.names)


class CrossingDirection(str, Enum):
    """Which side of the hysteresis band a value left through."""

    ABOVE = "above"
    BELOW = "below"


@dataclass(frozen=True)
class AlertEvent:
    """A threshold crossing for one (symbol, interval)."""

    symbol: str
    interval: str
    value: float
    previous: float
    direction: CrossingDirection
    threshold: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def message(self) -> str:
        """Human-readable alert text with a directional glyph."""
        if self.direction is CrossingDirection.ABOVE:
            return (
                f"\U0001f7e2 {self.symbol} crossed above {self.threshold:g}% "
                f"on {self.interval} timeframe ({self.value:.2f}%)"
            )
        return (
            f"\U0001f534 {self.symbol} crossed below -{self.threshold:g}% "
            f"on {self.interval} timeframe ({self.value:.2f}%)"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "interval": self.interval,
            "value": round(self.value, 4),
            "previous": round(self.previous, 4),
            "direction": self.direction.value,
            "threshold": self.threshold,
            "timestamp": self.timestamp.isoformat(),
        }


__all__ = [
    "LONG_INTERVALS",
    "SHORT_INTERVALS",
    "AlertEvent",
    "CandleSnapshot",
    "CrossingDirection",
    "Interval",
    "MarketRow",
    "Partition",
    "format_percent",
    "interval_label",
]
