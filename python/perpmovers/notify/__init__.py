"""Notification transports for crossing alerts.

Currently supported: Telegram.
"""

from __future__ import annotations

from .telegram import TelegramTransport, is_configured, send_telegram

__all__ = ["TelegramTransport", "is_configured", "send_telegram"]
