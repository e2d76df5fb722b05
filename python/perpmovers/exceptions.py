"""Exception hierarchy for perpmovers.

All perpmovers-specific exceptions inherit from PerpMoversError. None of them
is fatal to a running monitor: each is logged at the boundary where it is
caught and the pipeline keeps going.

Exception Hierarchy
-------------------
PerpMoversError (base)
├── FetchError (REST network/HTTP failure or malformed JSON)
├── StreamError (subscription transport closed or failed)
├── MessageParseError (malformed inbound stream frame)
└── AlertDispatchError (notification transport failure)

Usage
-----
>>> from perpmovers.exceptions import FetchError
>>>
>>> try:
...     symbols = await directory.resolve_universe()
... except FetchError as e:
...     logger.warning("universe fetch failed: %s", e)
...     # retry after the reconnect delay
"""

from __future__ import annotations


class PerpMoversError(Exception):
    """Base exception for all perpmovers errors.

    Examples
    --------
    >>> try:
    ...     await monitor.start()
    ... except PerpMoversError as e:
    ...     print(f"perpmovers error: {e}")
    """


class FetchError(PerpMoversError):
    """Raised when a REST call fails or returns an unusable payload.

    Raised for transport errors, non-2xx responses and bodies that are not
    the expected JSON shape. The fetch queue logs it and resolves the task
    with no state update; it is never retried by the queue itself.

    Attributes
    ----------
    url : str | None
        Endpoint that was requested, if known.
    symbol : str | None
        Symbol the request was for, if any.
    interval : str | None
        Interval label the request was for, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        symbol: str | None = None,
        interval: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.symbol = symbol
        self.interval = interval


class StreamError(PerpMoversError):
    """Raised when a subscription connection closes or errors.

    Triggers a fixed-delay reconnect of the affected partition only.

    Attributes
    ----------
    partition : int | None
        Index of the partition whose connection failed.
    """

    def __init__(self, message: str, *, partition: int | None = None) -> None:
        super().__init__(message)
        self.partition = partition


class MessageParseError(PerpMoversError):
    """Raised when an inbound stream frame cannot be decoded.

    The frame is dropped and the connection stays open.

    Attributes
    ----------
    raw : str | None
        Leading excerpt of the offending frame.
    """

    _EXCERPT_LEN = 200

    def __init__(self, message: str, *, raw: str | bytes | None = None) -> None:
        super().__init__(message)
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        self.raw = raw[: self._EXCERPT_LEN] if raw is not None else None


class AlertDispatchError(PerpMoversError):
    """Raised when the notification transport rejects or fails an alert.

    Logged and swallowed by the alert sink; alerts are never retried.
    """


__all__ = [
    "AlertDispatchError",
    "FetchError",
    "MessageParseError",
    "PerpMoversError",
    "StreamError",
]
