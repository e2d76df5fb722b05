"""Connection supervisor: one persistent combined-stream connection per partition.

State machine per instance::

    CONNECTING --open--> OPEN --close/error--> CLOSED --delay--> CONNECTING
         any state --close()--> STOPPED

A dropped connection is reopened with the exact same stream list after the
policy's delay (fixed 5 s by default, no retry cap). Sibling partitions are
never touched. Malformed frames are logged and dropped without affecting the
connection.

>>> sup = ConnectionSupervisor(part, STREAM_BASE_URL, on_candle=store_update)
>>> sup.start()
>>> ...
>>> await sup.close()
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterable, Callable
from contextlib import AbstractAsyncContextManager
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from .constants import STREAM_BASE_URL
from .exceptions import MessageParseError, StreamError
from .models import CandleSnapshot, Partition
from .partition import combined_stream_url
from .resilience import ReconnectPolicy

logger = logging.getLogger(__name__)

Connector = Callable[[str], AbstractAsyncContextManager[AsyncIterable[Any]]]


class SupervisorState(str, Enum):
    """Lifecycle state of one partition's connection."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    STOPPED = "stopped"


class ConnectionSupervisor:
    """Owns and perpetually re-opens the connection for one partition.

    Parameters
    ----------
    part : Partition
        Stream names this supervisor subscribes to; fixed for its lifetime.
    base_url : str
        Combined-stream endpoint, e.g. ``wss://fstream.binance.com/stream``.
    on_candle : Callable[[CandleSnapshot], None]
        Receives every kline update, in arrival order.
    policy : ReconnectPolicy | None
        Reconnect delay schedule (default: fixed 5 s, unlimited).
    connect : Connector | None
        Transport factory (default: ``websockets.connect``).
    on_state_change : Callable[[ConnectionSupervisor], None] | None
        Called after every state transition.
    """

    def __init__(
        self,
        part: Partition,
        base_url: str = STREAM_BASE_URL,
        *,
        on_candle: Callable[[CandleSnapshot], None],
        policy: ReconnectPolicy | None = None,
        connect: Connector | None = None,
        on_state_change: Callable[[ConnectionSupervisor], None] | None = None,
    ) -> None:
        self.partition = part
        self.url = combined_stream_url(base_url, part)
        self.policy = policy or ReconnectPolicy()
        self._on_candle = on_candle
        self._connect: Connector = connect or websockets.connect
        self._on_state_change = on_state_change
        self._task: asyncio.Task | None = None
        self._stopping = False

        self.state = SupervisorState.CONNECTING
        self.connects = 0
        self.reconnects = 0
        self.messages_received = 0
        self.parse_errors = 0
        self.last_message_at: float | None = None
        self.last_error: str | None = None

    @property
    def index(self) -> int:
        return self.partition.index

    @property
    def is_open(self) -> bool:
        return self.state is SupervisorState.OPEN

    def start(self) -> asyncio.Task | None:
        """Start the connection loop; returns the running task.

        A supervisor that has been closed stays closed: start() is then a
        no-op returning None.
        """
        if self._stopping:
            logger.debug("partition %d is closed; not starting", self.index)
            return None
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(
                self.run(), name=f"supervisor-{self.index}",
            )
        return self._task

    async def run(self) -> None:
        """Connect, consume, and reconnect until ``close()`` is called."""
        attempt = 0
        try:
            while not self._stopping:
                self._set_state(SupervisorState.CONNECTING)
                try:
                    async with self._connect(self.url) as ws:
                        attempt = 0
                        self.connects += 1
                        self._set_state(SupervisorState.OPEN)
                        logger.info(
                            "partition %d open (%d streams)",
                            self.index, len(self.partition),
                        )
                        async for raw in ws:
                            self.handle_message(raw)
                    err = StreamError(
                        f"partition {self.index} closed by peer", partition=self.index,
                    )
                except (WebSocketException, OSError, TimeoutError) as e:
                    err = StreamError(
                        f"partition {self.index} transport error: {e}",
                        partition=self.index,
                    )
                except Exception as e:
                    logger.exception("partition %d failed unexpectedly", self.index)
                    err = StreamError(
                        f"partition {self.index} failed: {e!r}", partition=self.index,
                    )

                if self._stopping:
                    break
                self.last_error = str(err)
                self._set_state(SupervisorState.CLOSED)

                attempt += 1
                if self.policy.exhausted(attempt):
                    logger.error(
                        "partition %d: giving up after %d attempt(s)",
                        self.index, attempt - 1,
                    )
                    break
                delay = self.policy.next_delay(attempt)
                self.reconnects += 1
                logger.warning("%s; reconnecting in %.1fs", err, delay)
                await asyncio.sleep(delay)
        finally:
            self._set_state(SupervisorState.STOPPED)

    def handle_message(self, raw: str | bytes) -> None:
        """Decode one frame and route kline updates to ``on_candle``."""
        self.messages_received += 1
        self.last_message_at = time.monotonic()
        try:
            candle = self._decode(raw)
        except MessageParseError as e:
            self.parse_errors += 1
            logger.warning("partition %d: dropped frame: %s", self.index, e)
            return
        if candle is None:
            return
        try:
            self._on_candle(candle)
        except Exception:
            logger.exception(
                "partition %d: candle handler failed for %s %s",
                self.index, candle.symbol, candle.interval,
            )

    @staticmethod
    def _decode(raw: str | bytes) -> CandleSnapshot | None:
        try:
            frame = json.loads(raw)
        except (TypeError, ValueError) as e:
            msg = f"invalid JSON: {e}"
            raise MessageParseError(msg, raw=raw) from e

        data = frame.get("data") if isinstance(frame, dict) else None
        if not isinstance(data, dict) or data.get("e") != "kline":
            return None
        k = data.get("k")
        if not isinstance(k, dict):
            msg = "kline event without k payload"
            raise MessageParseError(msg, raw=raw)
        return CandleSnapshot.from_stream(k)

    async def close(self) -> None:
        """Stop the loop and close the connection; later reconnects are no-ops."""
        self._stopping = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._set_state(SupervisorState.STOPPED)

    def _set_state(self, state: SupervisorState) -> None:
        if state is self.state:
            return
        self.state = state
        if self._on_state_change is not None:
            try:
                self._on_state_change(self)
            except Exception:
                logger.exception("partition %d: state callback failed", self.index)

    def stats(self) -> dict[str, Any]:
        return {
            "partition": self.index,
            "streams": len(self.partition),
            "state": self.state.value,
            "connects": self.connects,
            "reconnects": self.reconnects,
            "messages_received": self.messages_received,
            "parse_errors": self.parse_errors,
            "last_error": self.last_error,
        }


__all__ = ["ConnectionSupervisor", "Connector", "SupervisorState"]
