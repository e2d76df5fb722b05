"""Tests for MarketStateStore: update rules, sorting and thread safety."""

from __future__ import annotations

import threading

import pytest
from perpmovers.models import CandleSnapshot, Interval
from perpmovers.store import MarketStateStore

from conftest import kline_payload, rest_row


def _candle(symbol: str = "BTCUSDT", interval: str = "5m", open_: str = "100", close: str = "106"):
    return CandleSnapshot.from_stream(kline_payload(symbol, interval, open_, close))


class TestApplyUpdate:
    def test_seed_candle_stores_two_decimal_change_and_price(self) -> None:
        store = MarketStateStore(["BTCUSDT", "ETHUSDT"])
        candle = CandleSnapshot.from_rest_row("BTCUSDT", "5m", rest_row("100", "106"))

        assert store.apply_update("BTCUSDT", candle) == "6.00"
        row = store.get("BTCUSDT")
        assert row.changes[Interval.M5] == "6.00"
        assert row.last_price == 106.0
        assert row.changes[Interval.H1] is None

    def test_negative_change_and_rounding(self) -> None:
        store = MarketStateStore(["ETHUSDT"])
        assert store.apply_update("ETHUSDT", _candle("ETHUSDT", "1h", "3000", "2950")) == "-1.67"

    def test_same_candle_twice_is_idempotent(self) -> None:
        store = MarketStateStore(["BTCUSDT"])
        candle = _candle(open_="99.5", close="101.234")
        first = store.apply_update("BTCUSDT", candle)
        second = store.apply_update("BTCUSDT", candle)
        assert first == second == "1.74"

    def test_unknown_symbol_never_creates_row(self) -> None:
        store = MarketStateStore(["BTCUSDT"])
        assert store.apply_update("DOGEUSDT", _candle("DOGEUSDT")) is None
        assert "DOGEUSDT" not in store
        assert len(store) == 1
        assert store.updates_dropped == 1

    def test_unknown_interval_is_dropped(self) -> None:
        store = MarketStateStore(["BTCUSDT"])
        assert store.apply_update("BTCUSDT", _candle(interval="3m")) is None
        row = store.get("BTCUSDT")
        assert all(v is None for v in row.changes.values())
        assert row.last_price is None

    def test_zero_open_is_dropped(self) -> None:
        store = MarketStateStore(["BTCUSDT"])
        assert store.apply_update("BTCUSDT", _candle(open_="0", close="5")) is None
        assert store.get("BTCUSDT").changes[Interval.M5] is None

    def test_latest_write_wins_regardless_of_candle_time(self) -> None:
        store = MarketStateStore(["BTCUSDT"])
        newer = CandleSnapshot.from_stream(kline_payload(o="100", c="110", t=2_000))
        older = CandleSnapshot.from_stream(kline_payload(o="100", c="102", t=1_000))
        store.apply_update("BTCUSDT", newer)
        store.apply_update("BTCUSDT", older)
        assert store.get("BTCUSDT").changes[Interval.M5] == "2.00"


class TestSnapshotAndSorting:
    def test_snapshot_is_a_copy(self) -> None:
        store = MarketStateStore(["BTCUSDT"])
        snap = store.snapshot()
        snap["BTCUSDT"].changes[Interval.M5] = "99.00"
        assert store.get("BTCUSDT").changes[Interval.M5] is None

    def test_seed_universe_keeps_existing_rows(self) -> None:
        store = MarketStateStore(["BTCUSDT"])
        store.apply_update("BTCUSDT", _candle())
        assert store.seed_universe(["BTCUSDT", "ETHUSDT"]) == 1
        assert store.get("BTCUSDT").changes[Interval.M5] == "6.00"
        assert store.symbols() == ["BTCUSDT", "ETHUSDT"]

    def test_sort_by_interval_treats_missing_as_zero(self) -> None:
        store = MarketStateStore(["AUSDT", "BUSDT", "CUSDT"])
        store.apply_update("AUSDT", _candle("AUSDT", close="97"))
        store.apply_update("CUSDT", _candle("CUSDT", close="104"))

        desc = [s for s, _ in store.sorted_rows("5m-desc")]
        asc = [s for s, _ in store.sorted_rows("5m")]
        assert desc == ["CUSDT", "BUSDT", "AUSDT"]
        assert asc == ["AUSDT", "BUSDT", "CUSDT"]

    def test_sort_by_symbol(self) -> None:
        store = MarketStateStore(["ETHUSDT", "BTCUSDT"])
        assert [s for s, _ in store.sorted_rows("symbol")] == ["BTCUSDT", "ETHUSDT"]
        assert [s for s, _ in store.sorted_rows("symbol-desc")] == ["ETHUSDT", "BTCUSDT"]

    def test_unknown_sort_key(self) -> None:
        with pytest.raises(ValueError, match="unknown sort key"):
            MarketStateStore().sorted_rows("volume")


def test_concurrent_writers_and_readers() -> None:
    """Readers on other threads always see whole rows while writers update."""
    symbols = [f"S{i}USDT" for i in range(20)]
    store = MarketStateStore(symbols)
    errors: list[str] = []

    def writer(n: int) -> None:
        for i in range(300):
            close = str(100 + (i + n) % 10)
            for s in symbols:
                store.apply_update(s, _candle(s, "5m", "100", close))

    def reader() -> None:
        for _ in range(300):
            for symbol, row in store.snapshot().items():
                value = row.changes[Interval.M5]
                if value is not None and row.last_price is None:
                    errors.append(symbol)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(3)]
    threads += [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert store.updates_applied == 3 * 300 * len(symbols)
    assert len(store) == len(symbols)
