"""Centralized NDJSON logging configuration for perpmovers.

Library modules log through ``logging.getLogger(__name__)``; services call
``setup_service_logging("monitor")`` once at the CLI entry point. That creates
a per-service NDJSON file with auto-rotation, a shared ``events.jsonl``,
intercepts stdlib logging, and keeps human-readable stderr.

Logs go to ``$PERPMOVERS_LOG_DIR`` or ``<cwd>/logs``.
"""

from __future__ import annotations

import logging as _stdlib_logging
import os
import socket
import sys
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger as _loguru_logger

if TYPE_CHECKING:
    from loguru import Logger

    from .models import AlertEvent

_logger: Logger | None = None


def log_dir() -> Path:
    """Directory for NDJSON log files, resolved at call time."""
    env_dir = os.environ.get("PERPMOVERS_LOG_DIR")
    return Path(env_dir) if env_dir else Path.cwd() / "logs"


def _get_context_extra(service_name: str = "perpmovers") -> dict:
    """Get context fields added to every log entry."""
    return {
        "service": service_name,
        "environment": os.environ.get("PERPMOVERS_ENV", "development"),
        "pid": os.getpid(),
        "host": socket.gethostname(),
    }


class _InterceptHandler(_stdlib_logging.Handler):
    """Route stdlib logging messages to loguru.

    Library code using ``logging.getLogger(__name__)`` then emits structured
    NDJSON alongside direct loguru calls.
    """

    def emit(self, record: _stdlib_logging.LogRecord) -> None:
        target = _logger if _logger is not None else _loguru_logger

        try:
            level = target.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        # Find the caller frame (skip intercept handler frames)
        frame, depth = _stdlib_logging.currentframe(), 2
        while frame and frame.f_code.co_filename == _stdlib_logging.__file__:
            frame = frame.f_back
            depth += 1

        target.bind(stdlib_logger=record.name).opt(
            depth=depth, exception=record.exc_info,
        ).log(level, record.getMessage())


def _add_ndjson_sink(logger: Logger, path: Path, level: str) -> None:
    logger.add(
        path,
        format="{message}",
        serialize=True,
        rotation="10 MB",
        retention="7 days",
        compression="gz",
        enqueue=True,
        level=level,
    )


def setup_service_logging(
    service_name: str,
    *,
    verbose: bool = False,
) -> Logger:
    """Configure structured NDJSON logging for a long-running service.

    Args:
        service_name: Service identifier (e.g., "monitor"). Used in log
            filenames and structured fields.
        verbose: Enable DEBUG level on stderr (default: INFO).

    Returns:
        Configured loguru Logger instance.
    """
    global _logger  # noqa: PLW0603

    directory = log_dir()
    directory.mkdir(parents=True, exist_ok=True)

    _loguru_logger.remove()
    logger = _loguru_logger.bind(**_get_context_extra(service_name))
    level = "DEBUG" if verbose else "INFO"

    # 1. Per-service NDJSON file, always DEBUG
    service_log = directory / f"{service_name}.jsonl"
    _add_ndjson_sink(logger, service_log, "DEBUG")

    # 2. Shared events.jsonl, INFO+ only
    _add_ndjson_sink(logger, directory / "events.jsonl", "INFO")

    # 3. Console stderr
    def _console_format(record: dict) -> str:
        svc = record["extra"].get("service", service_name)
        stdlib = record["extra"].get("stdlib_logger")
        source = f"{svc}:{stdlib}" if stdlib else svc
        return (
            "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
            + source
            + " | {message}\n{exception}"
        )

    logger.add(sys.stderr, format=_console_format, level=level, colorize=False)

    # 4. Intercept stdlib logging -> loguru
    _stdlib_logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    _logger = logger
    logger.info(
        "Service logging initialized",
        service=service_name,
        log_file=str(service_log),
        level=level,
    )
    return logger


def get_logger() -> Logger:
    """Get the configured logger instance.

    If ``setup_service_logging()`` was already called, returns that logger;
    otherwise the global loguru logger bound with the default context, with
    whatever sinks the host application configured.
    """
    if _logger is not None:
        return _logger
    return _loguru_logger.bind(**_get_context_extra())


def log_crossing_event(event: AlertEvent, trace_id: str, **kwargs: object) -> None:
    """Log a crossing as a structured record.

    Args:
        event: The detected crossing.
        trace_id: Correlation ID for the monitor run.
        **kwargs: Additional event-specific fields.
    """
    get_logger().bind(
        component="crossing",
        event_type=f"crossed_{event.direction.value}",
        trace_id=trace_id,
        **event.to_dict(),
        **kwargs,
    ).info(event.message())


def generate_trace_id(prefix: str = "pm") -> str:
    """Generate a unique trace ID for request correlation.

    Returns:
        Trace ID in format "{prefix}-{hex8}" (e.g., "pm-a1b2c3d4")
    """
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


__all__ = [
    "generate_trace_id",
    "get_logger",
    "log_crossing_event",
    "log_dir",
    "setup_service_logging",
]
