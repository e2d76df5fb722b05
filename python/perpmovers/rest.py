"""Async REST client for the exchange's public market-data endpoints.

Only two endpoints are used: exchange metadata (the tradable universe) and
klines (seed candles). Every failure, whether transport, HTTP status or an
unexpected body, surfaces as ``FetchError``.

>>> async with ExchangeClient() as client:
...     info = await client.exchange_info()
...     rows = await client.klines("BTCUSDT", "5m", limit=1)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .constants import EXCHANGE_INFO_PATH, HTTP_TIMEOUT_S, KLINES_PATH, REST_BASE_URL
from .exceptions import FetchError

logger = logging.getLogger(__name__)


class ExchangeClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the futures REST API.

    Parameters
    ----------
    base_url : str
        REST root, e.g. ``https://fapi.binance.com``.
    timeout_s : float
        Per-request timeout.
    transport : httpx.AsyncBaseTransport | None
        Optional transport override (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        base_url: str = REST_BASE_URL,
        *,
        timeout_s: float = HTTP_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_s,
            transport=transport,
        )
        self.requests_sent = 0

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        symbol: str | None = None,
        interval: str | None = None,
    ) -> Any:  # noqa: ANN401
        url = f"{self.base_url}{path}"
        self.requests_sent += 1
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            msg = f"GET {path} returned HTTP {e.response.status_code}"
            raise FetchError(msg, url=url, symbol=symbol, interval=interval) from e
        except httpx.HTTPError as e:
            msg = f"GET {path} failed: {e}"
            raise FetchError(msg, url=url, symbol=symbol, interval=interval) from e
        except ValueError as e:
            msg = f"GET {path} returned malformed JSON"
            raise FetchError(msg, url=url, symbol=symbol, interval=interval) from e

    async def exchange_info(self) -> dict[str, Any]:
        """Return the exchange metadata document."""
        body = await self._get_json(EXCHANGE_INFO_PATH)
        if not isinstance(body, dict):
            msg = "exchangeInfo body is not an object"
            raise FetchError(msg, url=f"{self.base_url}{EXCHANGE_INFO_PATH}")
        return body

    async def klines(
        self,
        symbol: str,
        interval: str,
        limit: int = 1,
    ) -> list[list[Any]]:
        """Return the latest ``limit`` kline rows, oldest first."""
        body = await self._get_json(
            KLINES_PATH,
            {"symbol": symbol, "interval": interval, "limit": limit},
            symbol=symbol,
            interval=interval,
        )
        if not isinstance(body, list):
            msg = f"klines body for {symbol} {interval} is not a list"
            raise FetchError(
                msg,
                url=f"{self.base_url}{KLINES_PATH}",
                symbol=symbol,
                interval=interval,
            )
        return body

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ExchangeClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()


__all__ = ["ExchangeClient"]
