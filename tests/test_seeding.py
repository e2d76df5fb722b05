"""Tests for REST seeding and the polling variant."""

from __future__ import annotations

import asyncio

import pytest
from perpmovers.fetch_queue import RateLimitedFetchQueue
from perpmovers.models import CandleSnapshot, Interval
from perpmovers.polling import RestPoller, fetch_poll_candle
from perpmovers.seeding import fetch_seed_candle, seed_universe
from perpmovers.store import MarketStateStore

from conftest import FakeExchange, rest_row


@pytest.mark.asyncio
async def test_seed_candle_from_rest_row() -> None:
    exchange = FakeExchange(klines={("BTCUSDT", "5m"): [rest_row("100", "106")]})
    async with exchange.client() as client:
        candle = await fetch_seed_candle(client, "BTCUSDT", Interval.M5)

    assert candle.symbol == "BTCUSDT"
    assert candle.interval == "5m"
    assert (candle.open, candle.close) == (100.0, 106.0)
    # Derived fields are zeroed on seeds
    assert candle.trade_count == 0
    assert candle.quote_volume == 0.0
    assert exchange.requests[0].url.params["limit"] == "1"


@pytest.mark.asyncio
async def test_empty_klines_yield_no_candle() -> None:
    async with FakeExchange().client() as client:
        assert await fetch_seed_candle(client, "BTCUSDT", "5m") is None


@pytest.mark.asyncio
async def test_seed_universe_fills_store_through_queue() -> None:
    exchange = FakeExchange(klines={
        ("BTCUSDT", "5m"): [rest_row("100", "106")],
        ("BTCUSDT", "1h"): [rest_row("100", "98")],
        ("ETHUSDT", "5m"): [rest_row("2000", "2010")],
    })
    store = MarketStateStore(["BTCUSDT", "ETHUSDT"])
    queue = RateLimitedFetchQueue(batch_size=2, batch_interval_s=0.0)

    async with exchange.client() as client:
        seeded = await seed_universe(
            queue, client, ["BTCUSDT", "ETHUSDT"], [Interval.M5, Interval.H1],
            lambda c: store.apply_update(c.symbol, c),
        )

    assert seeded == 3
    assert store.get("BTCUSDT").changes[Interval.M5] == "6.00"
    assert store.get("BTCUSDT").changes[Interval.H1] == "-2.00"
    assert store.get("ETHUSDT").changes[Interval.M5] == "0.50"
    assert store.get("ETHUSDT").changes[Interval.H1] is None
    assert queue.metrics.batches_dispatched == 2
    assert queue.metrics.last_batch_size == 2


@pytest.mark.asyncio
async def test_failed_seed_fetch_is_logged_and_skipped(caplog) -> None:
    exchange = FakeExchange(klines={("ETHUSDT", "5m"): [rest_row("100", "101")]})
    original = exchange.handler

    def handler(request):
        if request.url.params.get("symbol") == "BTCUSDT":
            import httpx

            return httpx.Response(500)
        return original(request)

    exchange.handler = handler
    received: list[CandleSnapshot] = []
    queue = RateLimitedFetchQueue()

    async with exchange.client() as client:
        seeded = await seed_universe(queue, client, ["BTCUSDT", "ETHUSDT"], ["5m"], received.append)

    assert seeded == 1
    assert [c.symbol for c in received] == ["ETHUSDT"]
    assert "seed fetch failed for BTCUSDT 5m" in caplog.text
    assert queue.metrics.tasks_failed == 0


@pytest.mark.asyncio
async def test_seed_universe_with_nothing_to_do() -> None:
    async with FakeExchange().client() as client:
        assert await seed_universe(RateLimitedFetchQueue(), client, [], ["5m"], print) == 0


class TestPolling:
    @pytest.mark.asyncio
    async def test_poll_candle_spans_previous_open_to_current_close(self) -> None:
        rows = [rest_row("90", "95"), rest_row("100", "103"), rest_row("103", "110")]
        exchange = FakeExchange(klines={("BTCUSDT", "1h"): rows})
        async with exchange.client() as client:
            candle = await fetch_poll_candle(client, "BTCUSDT", Interval.H1)

        assert exchange.requests[0].url.params["limit"] == "2"
        assert candle.open == 100.0
        assert candle.close == 110.0
        assert candle.percent_change() == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_single_row_is_not_enough(self) -> None:
        exchange = FakeExchange(klines={("BTCUSDT", "1h"): [rest_row()]})
        async with exchange.client() as client:
            assert await fetch_poll_candle(client, "BTCUSDT", Interval.H1) is None

    @pytest.mark.asyncio
    async def test_poller_runs_first_pass_immediately(self) -> None:
        exchange = FakeExchange(klines={
            ("BTCUSDT", "5m"): [rest_row("100", "101"), rest_row("101", "106")],
            ("ETHUSDT", "5m"): [rest_row("100", "100"), rest_row("100", "99")],
        })
        received: list[CandleSnapshot] = []
        async with exchange.client() as client:
            poller = RestPoller(
                client, RateLimitedFetchQueue(), received.append,
                ["BTCUSDT", "ETHUSDT"], [Interval.M5],
            )
            poller.start()
            for _ in range(200):
                if poller.passes == 1:
                    break
                await asyncio.sleep(0.005)
            assert poller.is_running
            await poller.close()

        assert sorted(c.symbol for c in received) == ["BTCUSDT", "ETHUSDT"]
        assert poller.passes == 1
        assert not poller.is_running

    @pytest.mark.asyncio
    async def test_add_intervals_and_symbols(self) -> None:
        async with FakeExchange().client() as client:
            poller = RestPoller(client, RateLimitedFetchQueue(), print, ["BTCUSDT"], [Interval.M5])
            poller.add_symbols(["BTCUSDT", "ETHUSDT"])
            poller.add_intervals([Interval.M5, Interval.H8])
            assert poller.symbols == ["BTCUSDT", "ETHUSDT"]
            assert poller.intervals == [Interval.M5, Interval.H8]
            assert not poller.is_running
