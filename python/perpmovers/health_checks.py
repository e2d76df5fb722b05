"""Health check probes for a running monitor.

Each probe returns a bool and logs the reason for a failure; none of them
raise. ``run_all_checks`` is the status query used by the CLI and by
embedding services.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import psutil

if TYPE_CHECKING:
    from .monitor import MarketMonitor

logger = logging.getLogger(__name__)


def check_streams(monitor: MarketMonitor) -> bool:
    """Check the monitor is initialized and at least one ingestion path is live.

    Returns
    -------
    bool
        True if the universe is resolved and a partition is open (poll mode:
        the poller is running).
    """
    if not monitor.initialized:
        logger.warning("stream health check: monitor not initialized")
        return False
    if not monitor.is_connected():
        logger.warning("stream health check: no open partition")
        return False
    return True


def check_partitions(monitor: MarketMonitor, min_open_ratio: float = 1.0) -> bool:
    """Check that enough partitions are open.

    Parameters
    ----------
    min_open_ratio : float
        Required fraction of open partitions (1.0 = all of them).

    Returns
    -------
    bool
        True in poll mode, or when the open fraction meets ``min_open_ratio``.
    """
    if not monitor.supervisors:
        return monitor.poller is not None
    open_count = sum(1 for sup in monitor.supervisors if sup.is_open)
    ratio = open_count / len(monitor.supervisors)
    if ratio < min_open_ratio:
        logger.warning(
            "partition health check: %d/%d open", open_count, len(monitor.supervisors),
        )
        return False
    return True


def check_memory(threshold_mb: int = 1024) -> bool:
    """Check process RSS is below ``threshold_mb``."""
    try:
        rss_mb = psutil.Process().memory_info().rss / (1024 * 1024)
    except (psutil.NoSuchProcess, psutil.AccessDenied, OSError):
        logger.warning("Memory health check failed", exc_info=True)
        return False
    else:
        return rss_mb < threshold_mb


def run_all_checks(
    monitor: MarketMonitor,
    memory_threshold_mb: int = 1024,
) -> dict[str, bool]:
    """Run all health checks and return results.

    Returns
    -------
    dict[str, bool]
        Dictionary mapping check names to their results.
    """
    return {
        "streams": check_streams(monitor),
        "partitions": check_partitions(monitor),
        "memory": check_memory(memory_threshold_mb),
    }


__all__ = ["check_memory", "check_partitions", "check_streams", "run_all_checks"]
