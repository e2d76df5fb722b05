"""Market state store: symbol -> per-interval percent change and last price.

The store is the single source of truth read by presentation and status
consumers. Rows are created once for the known universe and never removed;
updates for unknown symbols or unknown interval labels are dropped.

Every read-modify-write and every snapshot runs under one
``threading.Lock``, so readers on other threads always see a consistent
(possibly stale) copy. No timestamp ordering is applied: the latest write
for a (symbol, interval) wins even if its candle is older.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from .models import CandleSnapshot, Interval, MarketRow, format_percent

logger = logging.getLogger(__name__)

_DESC_SUFFIX = "-desc"


class MarketStateStore:
    """Lock-guarded snapshot table keyed by symbol."""

    def __init__(self, symbols: Iterable[str] = ()) -> None:
        self._rows: dict[str, MarketRow] = {}
        self._lock = threading.Lock()
        self.updates_applied = 0
        self.updates_dropped = 0
        self.seed_universe(symbols)

    def seed_universe(self, symbols: Iterable[str]) -> int:
        """Create an empty row for every symbol not yet present.

        Returns the number of rows added. Existing rows are left untouched.
        """
        added = 0
        with self._lock:
            for symbol in symbols:
                if symbol not in self._rows:
                    self._rows[symbol] = MarketRow()
                    added += 1
        if added:
            logger.debug("store seeded with %d new symbol(s)", added)
        return added

    def apply_update(self, symbol: str, candle: CandleSnapshot) -> str | None:
        """Write the candle's percent change and close into ``symbol``'s row.

        Returns
        -------
        str | None
            The stored value (2-decimal string), or None when the update was
            dropped: unknown symbol, unrecognized interval, or zero open.
        """
        interval = Interval.parse(candle.interval)
        if interval is None:
            logger.debug("dropping %s update for unknown interval %r", symbol, candle.interval)
            self._count_drop()
            return None

        change = candle.percent_change()
        if change is None:
            logger.debug("dropping %s %s update with zero open", symbol, interval.value)
            self._count_drop()
            return None
        value = format_percent(change)

        with self._lock:
            row = self._rows.get(symbol)
            if row is None:
                self.updates_dropped += 1
                return None
            row.changes[interval] = value
            row.last_price = candle.close
            self.updates_applied += 1
        return value

    def _count_drop(self) -> None:
        with self._lock:
            self.updates_dropped += 1

    def get(self, symbol: str) -> MarketRow | None:
        """Return a copy of ``symbol``'s row, or None if it is not tracked."""
        with self._lock:
            row = self._rows.get(symbol)
            return row.copy() if row is not None else None

    def snapshot(self) -> dict[str, MarketRow]:
        """Return a consistent copy of the whole table."""
        with self._lock:
            return {symbol: row.copy() for symbol, row in self._rows.items()}

    def symbols(self) -> list[str]:
        with self._lock:
            return list(self._rows)

    def sorted_rows(self, sort_by: str = "symbol") -> list[tuple[str, MarketRow]]:
        """Return snapshot rows ordered for display.

        Parameters
        ----------
        sort_by : str
            ``"symbol"``, ``"symbol-desc"``, ``"<interval>"`` or
            ``"<interval>-desc"``. Missing values sort as 0.

        Raises
        ------
        ValueError
            If ``sort_by`` names an unknown interval.
        """
        rows = list(self.snapshot().items())
        descending = sort_by.endswith(_DESC_SUFFIX)
        key = sort_by.removesuffix(_DESC_SUFFIX)

        if key == "symbol":
            return sorted(rows, key=lambda r: r[0], reverse=descending)

        interval = Interval.parse(key)
        if interval is None:
            msg = f"unknown sort key: {sort_by!r}"
            raise ValueError(msg)

        def _value(item: tuple[str, MarketRow]) -> float:
            raw = item[1].changes.get(interval)
            return float(raw) if raw else 0.0

        return sorted(rows, key=_value, reverse=descending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def __contains__(self, symbol: object) -> bool:
        with self._lock:
            return symbol in self._rows


__all__ = ["MarketStateStore"]
