"""Event hook system for monitor lifecycle and crossing events.

Presentation layers and notifiers subscribe here instead of polling the
monitor.

Usage
-----
>>> from perpmovers.hooks import register_hook, HookEvent
>>>
>>> def on_cross(payload):
...     print(payload.symbol, payload.details["direction"])
...
>>> register_hook(HookEvent.CROSSING_DETECTED, on_cross)

Events
------
- UNIVERSE_RESOLVED: Tradable universe fetched and filtered
- UNIVERSE_FAILED: Universe resolution failed (will be retried)
- SEED_COMPLETE: REST seeding pass finished
- STREAM_OPENED: A partition's connection opened
- STREAM_CLOSED: A partition's connection closed (will be reopened)
- CROSSING_DETECTED: A percent change left the hysteresis band
- ALERT_DROPPED: An alert could not be queued or delivered
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# Symbol placeholder for events not tied to one instrument
ALL_SYMBOLS = "*"


class HookEvent(Enum):
    """Events that can trigger hook callbacks."""

    UNIVERSE_RESOLVED = "universe_resolved"
    UNIVERSE_FAILED = "universe_failed"
    SEED_COMPLETE = "seed_complete"
    STREAM_OPENED = "stream_opened"
    STREAM_CLOSED = "stream_closed"
    CROSSING_DETECTED = "crossing_detected"
    ALERT_DROPPED = "alert_dropped"


_FAILURE_EVENTS = frozenset({
    HookEvent.UNIVERSE_FAILED,
    HookEvent.STREAM_CLOSED,
    HookEvent.ALERT_DROPPED,
})


@dataclass
class HookPayload:
    """Payload delivered to hook callbacks.

    Attributes
    ----------
    event : HookEvent
        The event type that triggered this callback.
    symbol : str
        Symbol involved, or ``"*"`` for universe-wide events.
    timestamp : datetime
        When the event occurred (UTC).
    details : dict
        Additional event-specific information.
    is_failure : bool
        True if this event represents a failure.
    """

    event: HookEvent
    symbol: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    details: dict[str, Any] = field(default_factory=dict)
    is_failure: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert payload to dictionary for serialization."""
        d = asdict(self)
        d["event"] = self.event.value
        d["timestamp"] = self.timestamp.isoformat()
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


_hooks: dict[HookEvent, list[Callable[[HookPayload], None]]] = defaultdict(list)


def register_hook(
    event: HookEvent,
    callback: Callable[[HookPayload], None],
) -> None:
    """Register a callback for a specific event."""
    _hooks[event].append(callback)
    logger.debug("Registered hook for %s: %s", event.value, _name(callback))


def unregister_hook(
    event: HookEvent,
    callback: Callable[[HookPayload], None],
) -> bool:
    """Unregister a callback; returns True if it was registered."""
    if callback in _hooks[event]:
        _hooks[event].remove(callback)
        logger.debug("Unregistered hook for %s: %s", event.value, _name(callback))
        return True
    return False


def clear_hooks(event: HookEvent | None = None) -> None:
    """Clear all hooks for a specific event, or for all events if None."""
    if event is None:
        _hooks.clear()
    else:
        _hooks[event].clear()


def emit_hook(
    event: HookEvent,
    symbol: str = ALL_SYMBOLS,
    **details: Any,
) -> None:
    """Emit an event to all registered callbacks.

    Notes
    -----
    Callback exceptions are caught and logged but do not propagate, so one
    failing subscriber never interrupts ingestion.
    """
    callbacks = list(_hooks.get(event, ()))
    if not callbacks:
        return

    payload = HookPayload(
        event=event,
        symbol=symbol,
        details=details,
        is_failure=event in _FAILURE_EVENTS,
    )
    for callback in callbacks:
        try:
            callback(payload)
        except Exception as e:
            logger.warning(
                "Hook callback %s failed for %s: %s",
                _name(callback), event.value, e,
            )


def register_for_failures(callback: Callable[[HookPayload], None]) -> None:
    """Register a callback for every failure event."""
    for event in _FAILURE_EVENTS:
        register_hook(event, callback)


def register_for_all(callback: Callable[[HookPayload], None]) -> None:
    for event in HookEvent:
        register_hook(event, callback)


def _name(callback: Callable[..., Any]) -> str:
    return getattr(callback, "__name__", repr(callback))


__all__ = [
    "ALL_SYMBOLS",
    "HookEvent",
    "HookPayload",
    "clear_hooks",
    "emit_hook",
    "register_for_all",
    "register_for_failures",
    "register_hook",
    "unregister_hook",
]
