"""Monitor configuration for the ingestion pipeline.

All values load from environment variables (PERPMOVERS_ prefix) with
automatic overlay: constructor kwargs > env > defaults via pydantic-settings.
List fields accept comma-separated values (``5m,15m,1h``) as well as JSON.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.providers.env import EnvSettingsSource

from perpmovers.constants import (
    ALERT_INTERVAL_LABELS,
    ALERT_QUEUE_SIZE,
    CROSSING_THRESHOLD_PCT,
    FETCH_BATCH_INTERVAL_S,
    FETCH_BATCH_SIZE,
    HTTP_TIMEOUT_S,
    INTERVAL_LABELS,
    QUOTE_ASSET,
    RECONNECT_DELAY_S,
    REST_BASE_URL,
    SEED_LIMIT,
    SHORT_INTERVAL_LABELS,
    STREAM_BASE_URL,
    STREAMS_PER_CONNECTION,
)
from perpmovers.resilience import ReconnectPolicy


class _CsvEnvSource(EnvSettingsSource):
    """Env source that falls back to CSV splitting for list fields.

    pydantic-settings tries ``json.loads()`` first for complex types. Our
    env vars use comma-separated format (``5m,15m``), not JSON
    (``["5m","15m"]``). This source falls back to CSV when JSON parsing fails.
    """

    def decode_complex_value(
        self,
        field_name: str,
        field: Any,  # noqa: ANN401
        value: Any,  # noqa: ANN401
    ) -> Any:  # noqa: ANN401
        try:
            return super().decode_complex_value(field_name, field, value)
        except ValueError:
            if isinstance(value, str):
                return [s.strip() for s in value.split(",") if s.strip()]
            raise


class MonitorConfig(BaseSettings):
    """Configuration for universe resolution, streaming, seeding and alerting.

    Environment Variables
    ---------------------
    PERPMOVERS_REST_BASE_URL : str
        REST root (default: "https://fapi.binance.com")
    PERPMOVERS_STREAM_BASE_URL : str
        Combined-stream endpoint (default: "wss://fstream.binance.com/stream")
    PERPMOVERS_QUOTE_ASSET : str
        Quote asset of the tracked universe (default: "USDT")
    PERPMOVERS_INTERVALS : str
        Comma-separated intervals to track (default: "5m,15m,30m,1h,2h,4h")
    PERPMOVERS_ALERT_INTERVALS : str
        Comma-separated intervals fed to the crossing detector
        (default: "5m,15m,30m,1h")
    PERPMOVERS_ALERTS_ENABLED : bool
        Run the crossing detector and dispatch alerts (default: True)
    PERPMOVERS_CROSSING_THRESHOLD_PCT : float
        Hysteresis band half-width in percent (default: 5.0)
    PERPMOVERS_STREAMS_PER_CONNECTION : int
        Subscriptions per connection (default: 200)
    PERPMOVERS_FETCH_BATCH_SIZE : int
        REST tasks per batch (default: 100)
    PERPMOVERS_FETCH_BATCH_INTERVAL_MS : int
        Pause between REST batches in ms (default: 100)
    PERPMOVERS_RECONNECT_DELAY_MS : int
        Delay before reopening a dropped partition in ms (default: 5000)
    PERPMOVERS_RECONNECT_BACKOFF_FACTOR : float
        Multiplier per consecutive failure, 1.0 = fixed (default: 1.0)
    PERPMOVERS_RECONNECT_MAX_DELAY_MS : int
        Ceiling for backed-off delays in ms (default: 60000)
    PERPMOVERS_RECONNECT_JITTER_FACTOR : float
        Random jitter range, 0 = none (default: 0.0)
    PERPMOVERS_SEED_ON_STARTUP : bool
        Fetch one REST candle per (symbol, interval) at startup (default: True)
    PERPMOVERS_SEED_LIMIT : int
        Candles requested per seed fetch (default: 1)
    PERPMOVERS_MODE : str
        "stream" (WebSocket) or "poll" (REST polling) (default: "stream")
    PERPMOVERS_HTTP_TIMEOUT_S : float
        REST request timeout (default: 10.0)
    PERPMOVERS_ALERT_QUEUE_SIZE : int
        Pending alerts before new ones are dropped (default: 1000)
    PERPMOVERS_VERBOSE : bool
        Verbose logging (default: False)
    """

    model_config = SettingsConfigDict(
        env_prefix="PERPMOVERS_",
        case_sensitive=False,
    )

    rest_base_url: str = REST_BASE_URL
    stream_base_url: str = STREAM_BASE_URL
    quote_asset: str = QUOTE_ASSET
    intervals: list[str] = Field(default=list(SHORT_INTERVAL_LABELS))
    alert_intervals: list[str] = Field(default=list(ALERT_INTERVAL_LABELS))
    alerts_enabled: bool = True
    crossing_threshold_pct: float = Field(CROSSING_THRESHOLD_PCT, ge=0)
    streams_per_connection: int = Field(STREAMS_PER_CONNECTION, ge=1)
    fetch_batch_size: int = Field(FETCH_BATCH_SIZE, ge=1)
    fetch_batch_interval_ms: int = Field(int(FETCH_BATCH_INTERVAL_S * 1000), ge=0)
    reconnect_delay_ms: int = Field(int(RECONNECT_DELAY_S * 1000), ge=0)
    reconnect_backoff_factor: float = Field(1.0, ge=1.0)
    reconnect_max_delay_ms: int = Field(60_000, ge=0)
    reconnect_jitter_factor: float = Field(0.0, ge=0.0, le=1.0)
    seed_on_startup: bool = True
    seed_limit: int = Field(SEED_LIMIT, ge=1)
    mode: Literal["stream", "poll"] = "stream"
    http_timeout_s: float = Field(HTTP_TIMEOUT_S, gt=0)
    alert_queue_size: int = Field(ALERT_QUEUE_SIZE, ge=1)
    verbose: bool = False

    @field_validator("intervals", "alert_intervals")
    @classmethod
    def _validate_intervals(cls, v: list[str]) -> list[str]:
        unknown = [iv for iv in v if iv not in INTERVAL_LABELS]
        if unknown:
            msg = f"unknown interval(s) {unknown}; expected a subset of {list(INTERVAL_LABELS)}"
            raise ValueError(msg)
        # De-duplicate, keep first occurrence
        return list(dict.fromkeys(v))

    @property
    def fetch_batch_interval_s(self) -> float:
        return self.fetch_batch_interval_ms / 1000

    @property
    def reconnect_delay_s(self) -> float:
        return self.reconnect_delay_ms / 1000

    def reconnect_policy(self) -> ReconnectPolicy:
        """Build the reconnect schedule described by this config."""
        return ReconnectPolicy(
            initial_delay_s=self.reconnect_delay_s,
            backoff_factor=self.reconnect_backoff_factor,
            max_delay_s=self.reconnect_max_delay_ms / 1000,
            jitter_factor=self.reconnect_jitter_factor,
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,  # noqa: ANN401
        env_settings: Any,  # noqa: ANN401, ARG003
        dotenv_settings: Any,  # noqa: ANN401
        file_secret_settings: Any,  # noqa: ANN401
        **kwargs: Any,  # noqa: ANN401, ARG003
    ) -> tuple[Any, ...]:
        """Use CSV-aware env source for comma-separated list fields."""
        return (
            init_settings,
            _CsvEnvSource(settings_cls),
            dotenv_settings,
            file_secret_settings,
        )


__all__ = ["MonitorConfig"]
