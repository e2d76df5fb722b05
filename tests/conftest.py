"""Pytest configuration and shared fakes for perpmovers tests.

No test touches the network: REST goes through ``httpx.MockTransport`` and
streams through ``FakeConnector``, a scripted stand-in for
``websockets.connect``.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from perpmovers.hooks import clear_hooks
from perpmovers.rest import ExchangeClient


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Strip PERPMOVERS_/TELEGRAM_ env vars and send log files to tmp_path."""
    import os

    for key in list(os.environ):
        if key.upper().startswith(("PERPMOVERS_", "TELEGRAM_")):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("PERPMOVERS_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture(autouse=True)
def reset_hooks():
    """Hooks are process-global; drop every registration after each test."""
    yield
    clear_hooks()


def kline_payload(
    symbol: str = "BTCUSDT",
    interval: str = "5m",
    open_: str = "100.0",
    close: str = "106.0",
    **overrides: Any,
) -> dict[str, Any]:
    """Stream kline ``k`` object with realistic field values."""
    k = {
        "t": 1_700_000_000_000,
        "T": 1_700_000_299_999,
        "s": symbol,
        "i": interval,
        "f": 100,
        "L": 200,
        "o": open_,
        "c": close,
        "h": max(open_, close, key=float),
        "l": min(open_, close, key=float),
        "v": "1000",
        "n": 101,
        "x": False,
        "q": "104000",
        "V": "500",
        "Q": "52000",
    }
    k.update(overrides)
    return k


def kline_frame(symbol: str = "BTCUSDT", interval: str = "5m", **kw: Any) -> str:
    """Combined-stream frame wrapping one kline event."""
    k = kline_payload(symbol, interval, **kw)
    return json.dumps({
        "stream": f"{symbol.lower()}@kline_{interval}",
        "data": {"e": "kline", "E": k["T"], "s": symbol, "k": k},
    })


def rest_row(open_: str = "100.0", close: str = "106.0", open_time: int = 1_700_000_000_000) -> list:
    """REST kline row ``[openTime, open, high, low, close, volume, closeTime, ...]``."""
    high = max(open_, close, key=float)
    low = min(open_, close, key=float)
    return [open_time, open_, high, low, close, "1000", open_time + 299_999,
            "104000", 101, "500", "52000", "0"]


def exchange_info(*entries: tuple[str, str, str]) -> dict[str, Any]:
    """exchangeInfo document from (symbol, quoteAsset, status) triples."""
    return {
        "timezone": "UTC",
        "symbols": [
            {"symbol": s, "quoteAsset": q, "status": st, "contractType": "PERPETUAL"}
            for s, q, st in entries
        ],
    }


class FakeExchange:
    """Routes REST requests to canned responses and records them."""

    def __init__(
        self,
        info: dict[str, Any] | None = None,
        klines: dict[tuple[str, str], list] | None = None,
    ) -> None:
        self.info = info if info is not None else exchange_info(
            ("BTCUSDT", "USDT", "TRADING"), ("ETHUSDT", "USDT", "TRADING"),
        )
        self.klines = klines or {}
        self.requests: list[httpx.Request] = []
        self.info_failures = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/fapi/v1/exchangeInfo":
            if self.info_failures > 0:
                self.info_failures -= 1
                return httpx.Response(503, json={"msg": "unavailable"})
            return httpx.Response(200, json=self.info)
        if request.url.path == "/fapi/v1/klines":
            key = (request.url.params["symbol"], request.url.params["interval"])
            rows = self.klines.get(key, [])
            limit = int(request.url.params.get("limit", 1))
            return httpx.Response(200, json=rows[-limit:])
        return httpx.Response(404, json={"msg": "not found"})

    def client(self) -> ExchangeClient:
        return ExchangeClient(
            "https://fapi.test", transport=httpx.MockTransport(self.handler),
        )

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@dataclass
class Session:
    """One scripted connection: frames to deliver, then close or hold open."""

    frames: list[str] = field(default_factory=list)
    hold: bool = False


class FakeConnector:
    """Scripted stand-in for ``websockets.connect``.

    Each call consumes the next script entry: a ``Session`` opens and
    delivers its frames, an exception instance fails the connect. Once the
    script is exhausted further connects hang until cancelled.
    """

    def __init__(self, *script: Session | BaseException) -> None:
        self.script = list(script)
        self.urls: list[str] = []

    @asynccontextmanager
    async def __call__(self, url: str) -> AsyncIterator[AsyncIterator[str]]:
        self.urls.append(url)
        if not self.script:
            await asyncio.Event().wait()
        step = self.script.pop(0)
        if isinstance(step, BaseException):
            raise step
        yield self._frames(step)

    @staticmethod
    async def _frames(session: Session) -> AsyncIterator[str]:
        for frame in session.frames:
            await asyncio.sleep(0)
            yield frame
        if session.hold:
            await asyncio.Event().wait()


async def wait_for(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll ``predicate`` until true or fail the test after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail(f"condition not met within {timeout}s")
        await asyncio.sleep(interval)


@pytest.fixture
def fake_exchange() -> FakeExchange:
    return FakeExchange()
