"""Telegram alert transport.

Configuration
-------------
Set environment variables:

    TELEGRAM_TOKEN (or PERPMOVERS_TELEGRAM_TOKEN) - Bot token from @BotFather
    TELEGRAM_CHAT_ID (or PERPMOVERS_TELEGRAM_CHAT_ID) - Destination chat

Usage
-----
>>> from perpmovers.notify.telegram import TelegramTransport
>>> transport = TelegramTransport.from_config()
>>> transport("\U0001f7e2 BTCUSDT crossed above 5% on 5m timeframe (5.20%)")

Or the bool-returning convenience wrapper:
>>> from perpmovers.notify.telegram import send_telegram
>>> send_telegram("<b>perpmovers</b> test message")
True
"""

from __future__ import annotations

import logging

import requests

from ..config.notify import NotifyConfig
from ..exceptions import AlertDispatchError

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramTransport:
    """Blocking ``sendMessage`` call, suitable for ``asyncio.to_thread``.

    Parameters
    ----------
    token : str | None
        Bot token. When missing every call raises ``AlertDispatchError``.
    chat_id : str
        Destination chat.
    timeout : float
        HTTP timeout in seconds.
    parse_mode : str
        Telegram parse mode ("HTML" or "Markdown").
    """

    def __init__(
        self,
        token: str | None,
        chat_id: str,
        *,
        timeout: float = 10.0,
        parse_mode: str = "HTML",
    ) -> None:
        self.token = token
        self.chat_id = chat_id
        self.timeout = timeout
        self.parse_mode = parse_mode

    @classmethod
    def from_config(cls, config: NotifyConfig | None = None) -> TelegramTransport:
        config = config or NotifyConfig()
        return cls(
            config.telegram_token,
            config.telegram_chat_id,
            timeout=config.telegram_timeout_s,
        )

    @property
    def configured(self) -> bool:
        return bool(self.token and self.chat_id)

    def __call__(self, text: str, *, disable_notification: bool = False) -> None:
        """Send ``text`` to the configured chat.

        Raises
        ------
        AlertDispatchError
            If the transport is not configured or the request fails.
        """
        if not self.token:
            msg = "Telegram not configured: TELEGRAM_TOKEN not set"
            raise AlertDispatchError(msg)
        if not self.chat_id:
            msg = "Telegram not configured: TELEGRAM_CHAT_ID not set"
            raise AlertDispatchError(msg)

        url = f"{TELEGRAM_API_URL}/bot{self.token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": self.parse_mode,
            "disable_notification": disable_notification,
        }
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            msg = "Telegram notification timed out"
            raise AlertDispatchError(msg) from e
        except requests.exceptions.RequestException as e:
            # The token is part of the URL; keep it out of the message
            status = getattr(e.response, "status_code", None)
            msg = f"Telegram notification failed ({type(e).__name__}, status={status})"
            raise AlertDispatchError(msg) from e
        logger.debug("Telegram message sent")

    def __repr__(self) -> str:
        return f"TelegramTransport(chat_id={self.chat_id!r}, configured={self.configured})"


def is_configured(config: NotifyConfig | None = None) -> bool:
    """Check if both token and chat id are available."""
    return (config or NotifyConfig()).telegram_enabled


def send_telegram(
    message: str,
    *,
    config: NotifyConfig | None = None,
    disable_notification: bool = False,
) -> bool:
    """Send a message via the Telegram bot.

    Returns
    -------
    bool
        True if the message was sent, False otherwise (the reason is logged).
    """
    transport = TelegramTransport.from_config(config)
    try:
        transport(message, disable_notification=disable_notification)
    except AlertDispatchError as e:
        logger.warning("%s", e)
        return False
    return True


__all__ = [
    "TELEGRAM_API_URL",
    "TelegramTransport",
    "is_configured",
    "send_telegram",
]
