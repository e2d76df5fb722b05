"""Configuration for perpmovers, loaded from environment variables."""

from .monitor import MonitorConfig
from .notify import NotifyConfig
from .settings import Settings

__all__ = ["MonitorConfig", "NotifyConfig", "Settings"]
