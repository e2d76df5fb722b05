"""Unified Settings singleton for perpmovers."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .monitor import MonitorConfig
from .notify import NotifyConfig

_lock = threading.Lock()
_instance: Settings | None = None


@dataclass
class Settings:
    """Unified configuration for perpmovers.

    Composes MonitorConfig and NotifyConfig into a single entry point.
    All values loaded from environment variables.

    Usage
    -----
    >>> settings = Settings.get()
    >>> settings.monitor.streams_per_connection
    200

    Reload after env change:

    >>> Settings.reload()
    >>> settings = Settings.get()
    """

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)

    @classmethod
    def get(cls) -> Settings:
        """Return the cached singleton instance (thread-safe).

        Returns
        -------
        Settings
            The cached settings instance. Creates one on first call.
        """
        global _instance  # noqa: PLW0603
        if _instance is not None:
            return _instance
        with _lock:
            if _instance is None:
                _instance = cls()
            return _instance

    @classmethod
    def reload(cls) -> Settings:
        """Discard the cached instance and reload from environment.

        Returns
        -------
        Settings
            A freshly loaded settings instance.
        """
        global _instance  # noqa: PLW0603
        with _lock:
            _instance = cls()
            return _instance
