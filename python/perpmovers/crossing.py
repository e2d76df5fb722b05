"""Hysteresis crossing detector.

Turns a stream of percent-change values into discrete "crossed above" /
"crossed below" events. The band ``[-threshold, +threshold]`` is the only
re-armed state: a value that leaves the band fires once, then nothing fires
for that (symbol, interval) until a value back inside the band is observed.
Re-arming is symmetric around zero, whichever side the value left from.

>>> detector = CrossingDetector(threshold=5.0)
>>> detector.observe("BTCUSDT", "5m", 6.0).direction.value
'above'
>>> detector.observe("BTCUSDT", "5m", 7.0) is None
True
"""

from __future__ import annotations

import logging
import threading

from .constants import CROSSING_THRESHOLD_PCT
from .models import AlertEvent, CrossingDirection, Interval, interval_label

logger = logging.getLogger(__name__)


class CrossingDetector:
    """Per-(symbol, interval) last-value memory with a symmetric band.

    The key set grows with every newly observed pair and is never pruned;
    for an exchange universe that is a few thousand symbols times a handful
    of intervals.
    """

    def __init__(self, threshold: float = CROSSING_THRESHOLD_PCT) -> None:
        if threshold < 0:
            msg = f"threshold must be >= 0, got {threshold}"
            raise ValueError(msg)
        self.threshold = threshold
        self._previous: dict[tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def observe(
        self,
        symbol: str,
        interval: Interval | str,
        value: float,
    ) -> AlertEvent | None:
        """Record ``value`` and return the crossing it causes, if any."""
        label = interval_label(interval)
        key = (symbol, label)

        with self._lock:
            previous = self._previous.get(key, 0.0)
            self._previous[key] = value

        if abs(previous) > self.threshold:
            return None

        if value > self.threshold:
            direction = CrossingDirection.ABOVE
        elif value < -self.threshold:
            direction = CrossingDirection.BELOW
        else:
            return None

        logger.debug(
            "%s %s crossed %s (%.2f -> %.2f)",
            symbol, label, direction.value, previous, value,
        )
        return AlertEvent(
            symbol=symbol,
            interval=label,
            value=value,
            previous=previous,
            direction=direction,
            threshold=self.threshold,
        )

    def previous(self, symbol: str, interval: Interval | str) -> float | None:
        """Return the last observed value for the pair, or None if never seen."""
        with self._lock:
            return self._previous.get((symbol, interval_label(interval)))

    def clear(self) -> None:
        with self._lock:
            self._previous.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._previous)


__all__ = ["CrossingDetector"]
