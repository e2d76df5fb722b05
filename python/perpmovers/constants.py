"""Constants for perpmovers.

This module centralizes exchange endpoints and ingestion tunables so that
defaults live in one place. Configuration (``perpmovers.config``) reads its
defaults from here; import from here instead of defining locally.

SSoT (Single Source of Truth) for:
- INTERVAL_LABELS / SHORT_INTERVAL_LABELS / LONG_INTERVAL_LABELS
- ALERT_INTERVAL_LABELS: intervals that feed the crossing detector by default
- STREAMS_PER_CONNECTION: exchange limit on subscriptions per connection
- FETCH_BATCH_SIZE / FETCH_BATCH_INTERVAL_S: REST rate budget
- RECONNECT_DELAY_S: fixed delay before re-opening a dropped partition
- CROSSING_THRESHOLD_PCT: hysteresis band half-width
"""

from __future__ import annotations

# =============================================================================
# Exchange endpoints (Binance USD-M futures)
# =============================================================================

REST_BASE_URL: str = "https://fapi.binance.com"
EXCHANGE_INFO_PATH: str = "/fapi/v1/exchangeInfo"
KLINES_PATH: str = "/fapi/v1/klines"
STREAM_BASE_URL: str = "wss://fstream.binance.com/stream"

QUOTE_ASSET: str = "USDT"
TRADING_STATUS: str = "TRADING"

# =============================================================================
# Intervals
# =============================================================================
# Ordered as displayed. Short intervals are streamed and alerted on; long
# intervals are for extended display only.

SHORT_INTERVAL_LABELS: tuple[str, ...] = ("5m", "15m", "30m", "1h", "2h", "4h")
LONG_INTERVAL_LABELS: tuple[str, ...] = ("8h", "12h", "1d", "1w", "1M")
INTERVAL_LABELS: tuple[str, ...] = SHORT_INTERVAL_LABELS + LONG_INTERVAL_LABELS

ALERT_INTERVAL_LABELS: tuple[str, ...] = ("5m", "15m", "30m", "1h")

# Nominal durations (seconds). 1M is approximated as 30 days; only the
# polling cadence depends on it.
INTERVAL_SECONDS: dict[str, int] = {
    "5m": 5 * 60,
    "15m": 15 * 60,
    "30m": 30 * 60,
    "1h": 60 * 60,
    "2h": 2 * 60 * 60,
    "4h": 4 * 60 * 60,
    "8h": 8 * 60 * 60,
    "12h": 12 * 60 * 60,
    "1d": 24 * 60 * 60,
    "1w": 7 * 24 * 60 * 60,
    "1M": 30 * 24 * 60 * 60,
}

# =============================================================================
# Ingestion tunables
# =============================================================================

STREAMS_PER_CONNECTION: int = 200

FETCH_BATCH_SIZE: int = 100
FETCH_BATCH_INTERVAL_S: float = 0.1

RECONNECT_DELAY_S: float = 5.0

SEED_LIMIT: int = 1
POLL_LIMIT: int = 2

HTTP_TIMEOUT_S: float = 10.0

ALERT_QUEUE_SIZE: int = 1_000

# =============================================================================
# Crossing detection
# =============================================================================

CROSSING_THRESHOLD_PCT: float = 5.0

# Percent-change values are stored as decimal strings with this many places.
PERCENT_DECIMALS: int = 2

__all__ = [
    "ALERT_INTERVAL_LABELS",
    "ALERT_QUEUE_SIZE",
    "CROSSING_THRESHOLD_PCT",
    "EXCHANGE_INFO_PATH",
    "FETCH_BATCH_INTERVAL_S",
    "FETCH_BATCH_SIZE",
    "HTTP_TIMEOUT_S",
    "INTERVAL_LABELS",
    "INTERVAL_SECONDS",
    "KLINES_PATH",
    "LONG_INTERVAL_LABELS",
    "PERCENT_DECIMALS",
    "POLL_LIMIT",
    "QUOTE_ASSET",
    "RECONNECT_DELAY_S",
    "REST_BASE_URL",
    "SEED_LIMIT",
    "SHORT_INTERVAL_LABELS",
    "STREAMS_PER_CONNECTION",
    "STREAM_BASE_URL",
    "TRADING_STATUS",
]
