"""Symbol directory: resolve the tradable universe from exchange metadata."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .constants import QUOTE_ASSET, TRADING_STATUS
from .exceptions import FetchError

if TYPE_CHECKING:
    from .rest import ExchangeClient

logger = logging.getLogger(__name__)


def filter_universe(
    payload: dict[str, Any],
    quote_asset: str = QUOTE_ASSET,
) -> list[str]:
    """Return symbols quoted in ``quote_asset`` whose status is TRADING.

    Order follows the metadata listing.

    Raises
    ------
    FetchError
        If the payload carries no ``symbols`` list.
    """
    listing = payload.get("symbols")
    if not isinstance(listing, list):
        msg = "No symbols found in exchangeInfo response"
        raise FetchError(msg)
    return [
        entry["symbol"]
        for entry in listing
        if isinstance(entry, dict)
        and "symbol" in entry
        and entry.get("quoteAsset") == quote_asset
        and entry.get("status") == TRADING_STATUS
    ]


class SymbolDirectory:
    """Resolves the universe on demand; callers decide the refresh cadence."""

    def __init__(self, client: ExchangeClient, quote_asset: str = QUOTE_ASSET) -> None:
        self._client = client
        self.quote_asset = quote_asset

    async def resolve_universe(self) -> list[str]:
        """Fetch metadata and return the tradable symbols.

        Raises
        ------
        FetchError
            On network, HTTP or payload failure.
        """
        payload = await self._client.exchange_info()
        symbols = filter_universe(payload, self.quote_asset)
        logger.info(
            "resolved universe: %d %s pair(s) in %s status",
            len(symbols), self.quote_asset, TRADING_STATUS,
        )
        return symbols


__all__ = ["SymbolDirectory", "filter_universe"]
