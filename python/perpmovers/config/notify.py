"""Notification configuration for the alert transport.

Token and chat id accept both the prefixed names and the bare
``TELEGRAM_TOKEN`` / ``TELEGRAM_CHAT_ID`` used by existing deployments.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotifyConfig(BaseSettings):
    """Configuration for Telegram alert delivery.

    Environment Variables
    ---------------------
    PERPMOVERS_TELEGRAM_TOKEN / TELEGRAM_TOKEN : str | None
        Telegram bot token (default: None, alerts are only logged)
    PERPMOVERS_TELEGRAM_CHAT_ID / TELEGRAM_CHAT_ID : str
        Telegram chat ID (default: "")
    PERPMOVERS_TELEGRAM_TIMEOUT_S : float
        HTTP timeout for sendMessage (default: 10.0)
    """

    model_config = SettingsConfigDict(
        env_prefix="PERPMOVERS_",
        case_sensitive=False,
        populate_by_name=True,
    )

    telegram_token: str | None = Field(
        None,
        validation_alias=AliasChoices("PERPMOVERS_TELEGRAM_TOKEN", "TELEGRAM_TOKEN"),
    )
    telegram_chat_id: str = Field(
        "",
        validation_alias=AliasChoices("PERPMOVERS_TELEGRAM_CHAT_ID", "TELEGRAM_CHAT_ID"),
    )
    telegram_timeout_s: float = Field(10.0, gt=0)

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_token and self.telegram_chat_id)


__all__ = ["NotifyConfig"]
