"""Alert sink adapter: non-blocking hand-off from ingestion to a transport.

``AlertSink.send()`` only enqueues; a single worker task delivers queued
alerts one at a time by running the blocking transport in a worker thread.
Delivery failures are logged and dropped, never retried, and never reach
the ingestion path. While the transport keeps failing a circuit breaker
fails calls fast instead of waiting on timeouts.

>>> sink = AlertSink(TelegramTransport.from_config())
>>> sink.start()
>>> sink.send("\U0001f7e2 BTCUSDT crossed above 5% on 5m timeframe (5.20%)")
>>> await sink.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .constants import ALERT_QUEUE_SIZE
from .exceptions import AlertDispatchError
from .hooks import HookEvent, emit_hook
from .resilience import CircuitBreaker, CircuitOpenError

logger = logging.getLogger(__name__)

Transport = Callable[[str], Any]


class LogTransport:
    """Transport that only writes alerts to the log."""

    def __init__(self, name: str = "perpmovers.alerts.log") -> None:
        self._log = logging.getLogger(name)

    def __call__(self, text: str) -> None:
        self._log.info("ALERT %s", text)


class AlertSink:
    """Bounded queue plus one delivery worker.

    Parameters
    ----------
    transport : Callable[[str], Any]
        Blocking delivery function; signals failure by raising.
    maxsize : int
        Pending alerts kept before new ones are dropped.
    breaker : CircuitBreaker | None
        Circuit around the transport (default: opens after 5 consecutive
        failures, retries after 60 s).
    """

    def __init__(
        self,
        transport: Transport,
        maxsize: int = ALERT_QUEUE_SIZE,
        *,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self.transport = transport
        self.breaker = breaker or CircuitBreaker("alert-transport")
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task | None = None
        self._closed = False

        self.queued = 0
        self.sent = 0
        self.failed = 0
        self.dropped = 0

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the delivery worker; idempotent."""
        if self._closed or self.is_running:
            return
        self._worker = asyncio.create_task(self._deliver_loop(), name="alert-sink")

    def send(self, text: str) -> bool:
        """Queue ``text`` for delivery without blocking.

        Returns False (and logs) when the alert was dropped because the sink
        is closed or the queue is full.
        """
        if self._closed:
            self._drop(text, "sink closed")
            return False
        try:
            self._queue.put_nowait(text)
        except asyncio.QueueFull:
            self._drop(text, "queue full")
            return False
        self.queued += 1
        return True

    async def _deliver_loop(self) -> None:
        while True:
            text = await self._queue.get()
            try:
                await self._deliver(text)
            finally:
                self._queue.task_done()

    async def _deliver(self, text: str) -> None:
        try:
            await asyncio.to_thread(self.breaker.call, self.transport, text)
        except CircuitOpenError:
            self._drop(text, f"circuit {self.breaker.name} open")
            return
        except AlertDispatchError as e:
            self.failed += 1
            logger.warning("alert delivery failed: %s", e)
            return
        except Exception:
            self.failed += 1
            logger.exception("alert transport raised unexpectedly")
            return
        self.sent += 1

    def _drop(self, text: str, reason: str) -> None:
        self.dropped += 1
        logger.warning("alert dropped (%s): %s", reason, text)
        emit_hook(HookEvent.ALERT_DROPPED, reason=reason, text=text)

    async def close(self, timeout: float = 5.0) -> None:
        """Stop accepting alerts, give pending ones ``timeout`` s, then stop."""
        if self._closed:
            return
        self._closed = True
        if self.is_running and not self._queue.empty():
            try:
                await asyncio.wait_for(self._queue.join(), timeout)
            except TimeoutError:
                logger.warning(
                    "alert sink closed with %d undelivered alert(s)", self._queue.qsize(),
                )
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass

    def stats(self) -> dict[str, Any]:
        return {
            "queued": self.queued,
            "sent": self.sent,
            "failed": self.failed,
            "dropped": self.dropped,
            "pending": self._queue.qsize(),
            "circuit": self.breaker.state.value,
        }


__all__ = ["AlertSink", "LogTransport", "Transport"]
