"""Tests for the click CLI with the REST client swapped for a fake."""

from __future__ import annotations

import pytest
from click.testing import CliRunner
from perpmovers import cli as cli_module

from conftest import FakeExchange, exchange_info, rest_row


@pytest.fixture
def exchange(monkeypatch) -> FakeExchange:
    fake = FakeExchange(
        info=exchange_info(
            ("BTCUSDT", "USDT", "TRADING"),
            ("ETHUSDT", "USDT", "TRADING"),
            ("BTCUSDC", "USDC", "TRADING"),
        ),
        klines={
            ("BTCUSDT", "5m"): [rest_row("100", "103")],
            ("ETHUSDT", "5m"): [rest_row("100", "108")],
        },
    )
    monkeypatch.setattr(cli_module, "ExchangeClient", lambda *a, **kw: fake.client())
    return fake


def test_universe(exchange: FakeExchange) -> None:
    result = CliRunner().invoke(cli_module.cli, ["universe"])
    assert result.exit_code == 0, result.output
    assert "BTCUSDT" in result.output
    assert "ETHUSDT" in result.output
    assert "BTCUSDC" not in result.output.splitlines()


def test_snapshot_sorted_desc(exchange: FakeExchange, monkeypatch) -> None:
    monkeypatch.setenv("PERPMOVERS_FETCH_BATCH_INTERVAL_MS", "0")
    result = CliRunner().invoke(cli_module.cli, ["snapshot", "-i", "5m", "--sort", "5m-desc"])
    assert result.exit_code == 0, result.output
    rows = [line for line in result.output.splitlines() if line.endswith(("103", "108"))]
    assert rows[0].startswith("ETHUSDT")
    assert "8.00" in rows[0]
    assert "3.00" in rows[1]


def test_snapshot_bad_sort_key(exchange: FakeExchange) -> None:
    result = CliRunner().invoke(cli_module.cli, ["snapshot", "-i", "5m", "--sort", "volume"])
    assert result.exit_code == 2
    assert "unknown sort key" in result.output


def test_universe_fetch_error(exchange: FakeExchange) -> None:
    exchange.info_failures = 1
    result = CliRunner().invoke(cli_module.cli, ["universe"])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_test_telegram_unconfigured() -> None:
    from perpmovers.config import Settings

    Settings.reload()
    result = CliRunner().invoke(cli_module.cli, ["test-telegram"])
    assert result.exit_code == 1
    assert "not configured" in result.output
