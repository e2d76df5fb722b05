"""MarketMonitor: wires universe, seeding, ingestion, state and alerts together.

Startup sequence::

    resolve universe (retry every reconnect delay until it succeeds)
      -> pre-seed store rows
      -> enqueue REST seed fetches through the rate-limited queue
      -> stream mode: one ConnectionSupervisor per partition
         poll mode:   one RestPoller loop per interval

Every candle, seeded, streamed or polled, goes through ``handle_candle``:
the store is always updated; the crossing detector only sees intervals
configured for alerting.

>>> monitor = MarketMonitor(MonitorConfig())
>>> await monitor.start()
>>> monitor.store.sorted_rows("5m-desc")[:10]
>>> await monitor.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from .alerts import AlertSink, LogTransport
from .config.monitor import MonitorConfig
from .config.notify import NotifyConfig
from .crossing import CrossingDetector
from .directory import SymbolDirectory
from .exceptions import FetchError
from .fetch_queue import RateLimitedFetchQueue
from .hooks import HookEvent, emit_hook
from .logging import generate_trace_id, log_crossing_event
from .models import AlertEvent, CandleSnapshot, Interval
from .notify.telegram import TelegramTransport
from .partition import build_stream_names, partition
from .polling import RestPoller
from .rest import ExchangeClient
from .seeding import seed_universe
from .store import MarketStateStore
from .supervisor import ConnectionSupervisor, Connector, SupervisorState

logger = logging.getLogger(__name__)


def default_alert_sink(
    config: MonitorConfig,
    notify: NotifyConfig | None = None,
) -> AlertSink:
    """Telegram sink when a bot token and chat are configured, log-only otherwise."""
    notify = notify or NotifyConfig()
    if notify.telegram_enabled:
        transport = TelegramTransport.from_config(notify)
    else:
        logger.warning("Telegram not configured; alerts will only be logged")
        transport = LogTransport()
    return AlertSink(transport, maxsize=config.alert_queue_size)


class MarketMonitor:
    """Long-running percent-move tracker for one exchange universe.

    Parameters
    ----------
    config : MonitorConfig | None
        Runtime configuration (default: loaded from environment).
    client : ExchangeClient | None
        REST client (default: built from ``config``).
    sink : AlertSink | None
        Alert sink (default: ``default_alert_sink(config)`` when alerts are
        enabled).
    connect : Connector | None
        WebSocket connector passed to every supervisor.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        *,
        client: ExchangeClient | None = None,
        sink: AlertSink | None = None,
        connect: Connector | None = None,
    ) -> None:
        self.config = config or MonitorConfig()
        cfg = self.config
        self.client = client or ExchangeClient(
            cfg.rest_base_url, timeout_s=cfg.http_timeout_s,
        )
        self.directory = SymbolDirectory(self.client, cfg.quote_asset)
        self.queue = RateLimitedFetchQueue(cfg.fetch_batch_size, cfg.fetch_batch_interval_s)
        self.store = MarketStateStore()
        self.detector = CrossingDetector(cfg.crossing_threshold_pct)
        if sink is None and cfg.alerts_enabled:
            sink = default_alert_sink(cfg)
        self.sink = sink
        self._connect = connect

        self.intervals: list[Interval] = [Interval(v) for v in cfg.intervals]
        self.alert_intervals: frozenset[Interval] = frozenset(
            Interval(v) for v in cfg.alert_intervals
        )
        self.supervisors: list[ConnectionSupervisor] = []
        self.poller: RestPoller | None = None
        self.trace_id = generate_trace_id()
        self.crossings = 0

        self._symbols: list[str] = []
        self._background: set[asyncio.Task] = set()
        self._initialized = False
        self._stopping = False
        self._closed = asyncio.Event()

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    async def start(self) -> None:
        """Resolve the universe and start ingestion.

        Blocks until the universe resolves (retrying on failure) or
        ``close()`` is called.
        """
        if self._initialized or self._stopping:
            return
        symbols = await self._resolve_universe_with_retry()
        # close() may have run while the last resolve was in flight
        if symbols is None or self._stopping:
            return

        self._symbols = symbols
        self.store.seed_universe(symbols)
        if self.sink is not None:
            self.sink.start()
        if self.config.seed_on_startup:
            self._spawn(self._seed(symbols, self.intervals), "seed")

        if self.config.mode == "poll":
            self.poller = RestPoller(
                self.client, self.queue, self.handle_candle, symbols, self.intervals,
            )
            self.poller.start()
        else:
            self._start_supervisors(symbols, self.intervals)

        self._initialized = True
        logger.info(
            "monitor started [%s]: %d symbol(s), %d interval(s), mode=%s",
            self.trace_id, len(symbols), len(self.intervals), self.config.mode,
        )

    async def _resolve_universe_with_retry(self) -> list[str] | None:
        attempt = 0
        while not self._stopping:
            attempt += 1
            try:
                symbols = await self.directory.resolve_universe()
            except FetchError as e:
                delay = self.config.reconnect_delay_s
                logger.warning(
                    "universe resolution failed (attempt %d): %s; retrying in %.1fs",
                    attempt, e, delay,
                )
                emit_hook(HookEvent.UNIVERSE_FAILED, error=str(e), attempt=attempt)
                await asyncio.sleep(delay)
                continue
            emit_hook(HookEvent.UNIVERSE_RESOLVED, count=len(symbols))
            return symbols
        return None

    async def _seed(self, symbols: list[str], intervals: Iterable[Interval]) -> int:
        intervals = list(intervals)
        seeded = await seed_universe(
            self.queue, self.client, symbols, intervals, self.handle_candle,
            limit=self.config.seed_limit,
        )
        emit_hook(
            HookEvent.SEED_COMPLETE,
            seeded=seeded,
            requested=len(symbols) * len(intervals),
            intervals=[iv.value for iv in intervals],
        )
        return seeded

    def _start_supervisors(
        self, symbols: list[str], intervals: Iterable[Interval],
    ) -> list[ConnectionSupervisor]:
        names = build_stream_names(symbols, intervals)
        parts = partition(
            names,
            self.config.streams_per_connection,
            start_index=len(self.supervisors),
        )
        policy = self.config.reconnect_policy()
        started = []
        for part in parts:
            sup = ConnectionSupervisor(
                part,
                self.config.stream_base_url,
                on_candle=self.handle_candle,
                policy=policy,
                connect=self._connect,
                on_state_change=self._on_supervisor_state,
            )
            self.supervisors.append(sup)
            sup.start()
            started.append(sup)
        logger.info(
            "opened %d partition(s) for %d stream(s)", len(parts), len(names),
        )
        return started

    def _on_supervisor_state(self, sup: ConnectionSupervisor) -> None:
        if sup.state is SupervisorState.OPEN:
            emit_hook(HookEvent.STREAM_OPENED, partition=sup.index, streams=len(sup.partition))
        elif sup.state is SupervisorState.CLOSED:
            emit_hook(HookEvent.STREAM_CLOSED, partition=sup.index, error=sup.last_error)

    async def extend_intervals(self, intervals: Iterable[Interval | str]) -> list[Interval]:
        """Start tracking additional intervals.

        The universe is re-resolved first so newly listed symbols get rows;
        the new intervals are then seeded and subscribed (or polled) once.
        Intervals already tracked are ignored.

        Returns
        -------
        list[Interval]
            The intervals actually added.
        """
        if not self._initialized or self._stopping:
            msg = "monitor is not running"
            raise RuntimeError(msg)

        new = []
        for iv in intervals:
            member = iv if isinstance(iv, Interval) else Interval(iv)
            if member not in self.intervals and member not in new:
                new.append(member)
        if not new:
            return []

        try:
            symbols = await self.directory.resolve_universe()
        except FetchError as e:
            logger.warning("universe refresh failed, extending known symbols only: %s", e)
            symbols = self._symbols
        else:
            emit_hook(HookEvent.UNIVERSE_RESOLVED, count=len(symbols))
        if self._stopping:
            return []

        added_symbols = [s for s in symbols if s not in self.store]
        self.store.seed_universe(added_symbols)
        self._symbols.extend(added_symbols)
        self.intervals.extend(new)

        # Newly tracked intervals cover the whole universe; known intervals
        # for newly listed symbols are left to a later restart.
        self._spawn(self._seed(self._symbols, new), "seed-extend")
        if self.poller is not None:
            self.poller.add_symbols(added_symbols)
            self.poller.add_intervals(new)
        else:
            self._start_supervisors(self._symbols, new)

        logger.info(
            "tracking %d more interval(s): %s (%d new symbol(s))",
            len(new), ",".join(iv.value for iv in new), len(added_symbols),
        )
        return new

    def handle_candle(self, candle: CandleSnapshot) -> AlertEvent | None:
        """Apply one candle to the store and, if alerting, to the detector."""
        stored = self.store.apply_update(candle.symbol, candle)
        if stored is None or not self.config.alerts_enabled:
            return None
        interval = Interval.parse(candle.interval)
        if interval not in self.alert_intervals:
            return None

        # Unrounded change; the stored 2-decimal string is for display
        event = self.detector.observe(candle.symbol, interval, candle.percent_change())
        if event is None:
            return None

        self.crossings += 1
        if self.sink is not None:
            self.sink.send(event.message())
        log_crossing_event(event, self.trace_id)
        details = event.to_dict()
        details.pop("symbol")
        emit_hook(HookEvent.CROSSING_DETECTED, event.symbol, **details)
        return event

    def is_connected(self) -> bool:
        """True while at least one partition is open (poll mode: poller running)."""
        if self.poller is not None:
            return self.poller.is_running
        return any(sup.is_open for sup in self.supervisors)

    def status(self) -> dict[str, Any]:
        open_parts = sum(1 for sup in self.supervisors if sup.is_open)
        return {
            "trace_id": self.trace_id,
            "mode": self.config.mode,
            "connected": self.is_connected(),
            "initialized": self._initialized,
            "symbols": len(self.store),
            "intervals": [iv.value for iv in self.intervals],
            "partitions": len(self.supervisors),
            "open_partitions": open_parts,
            "supervisors": [sup.stats() for sup in self.supervisors],
            "poller": self.poller.stats() if self.poller is not None else None,
            "fetch_queue": self.queue.stats(),
            "alerts": self.sink.stats() if self.sink is not None else None,
            "crossings": self.crossings,
            "crossing_state_size": len(self.detector),
            "store": {
                "updates_applied": self.store.updates_applied,
                "updates_dropped": self.store.updates_dropped,
            },
        }

    def _spawn(self, coro: Any, name: str) -> asyncio.Task:  # noqa: ANN401
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def close(self) -> None:
        """Stop ingestion and release every resource; idempotent."""
        if self._stopping:
            await self._closed.wait()
            return
        self._stopping = True
        logger.info("monitor stopping [%s]", self.trace_id)

        for task in list(self._background):
            task.cancel()
        for task in list(self._background):
            try:
                await task
            except asyncio.CancelledError:
                pass

        await asyncio.gather(*(sup.close() for sup in self.supervisors))
        if self.poller is not None:
            await self.poller.close()
        await self.queue.close()
        if self.sink is not None:
            await self.sink.close()
        await self.client.aclose()
        self._closed.set()
        logger.info("monitor stopped [%s]", self.trace_id)

    async def run_forever(self) -> None:
        """Start, then wait until ``close()`` is called."""
        await self.start()
        await self._closed.wait()

    async def __aenter__(self) -> MarketMonitor:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()


__all__ = ["MarketMonitor", "default_alert_sink"]
