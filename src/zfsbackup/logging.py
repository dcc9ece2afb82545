"""Logging setup and utilities for zfs-backup."""

from __future__ import annotations

import logging
import socket
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

from zfsbackup.models import LogLevel

__all__ = [
    "configure_logging",
    "create_log_file_path",
    "get_logger",
    "get_logs_directory",
]

# Register custom FULL log level with Python's logging module
logging.addLevelName(LogLevel.FULL, "FULL")

# Keys whose values must never reach a log sink
_REDACTED_KEYS = frozenset({"secret", "password", "passphrase", "stdin"})


def _add_hostname(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add hostname to log context if not already present."""
    if "hostname" not in event_dict:
        event_dict["hostname"] = socket.gethostname()
    return event_dict


def _redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask values of secret-bearing keys."""
    for key in _REDACTED_KEYS & event_dict.keys():
        event_dict[key] = "***"
    return event_dict


def configure_logging(
    log_file_level: LogLevel,
    log_cli_level: LogLevel | None,
    log_file_path: Path,
) -> None:
    """Configure structlog with file (JSON) and optional terminal output.

    Args:
        log_file_level: Minimum level for file logging
        log_cli_level: Minimum level for terminal display, or None to log to
            the file only (used while the full-screen interface owns the terminal)
        log_file_path: Path to log file
    """
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    shared_processors: list[Any] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_hostname,
        _redact_secrets,
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(log_file_level)
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(file_handler)

    levels = [log_file_level]
    if log_cli_level is not None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_cli_level)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=True),
                foreign_pre_chain=shared_processors,
            )
        )
        root_logger.addHandler(console_handler)
        levels.append(log_cli_level)

    root_logger.setLevel(min(levels))


def get_logger(name: str, **context: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger with bound context.

    Args:
        name: Logger name (typically the module name)
        **context: Additional context to bind (e.g., operation)

    Returns:
        BoundLogger with context
    """
    logger = structlog.wrap_logger(logging.getLogger(name), wrapper_class=structlog.stdlib.BoundLogger)
    if context:
        logger = logger.bind(**context)
    return logger


def _full_log_method(self: structlog.stdlib.BoundLogger, event: str, **kw: Any) -> Any:
    """Custom method for FULL level logging.

    structlog has no name for levels outside the stdlib set, so the event is
    processed under the "full" method name and handed to logging.Logger.log.
    """
    if not self._logger.isEnabledFor(LogLevel.FULL):
        return None
    args, kwargs = self._process_event("full", event, kw)  # type: ignore[attr-defined]
    return self._logger.log(LogLevel.FULL, *args, **kwargs)


# Add custom full() method to BoundLogger
structlog.stdlib.BoundLogger.full = _full_log_method  # type: ignore[attr-defined]


def get_logs_directory() -> Path:
    """Get the logs directory path."""
    return Path.home() / ".local" / "share" / "zfs-backup" / "logs"


def create_log_file_path(timestamp: datetime | None = None) -> Path:
    """Create log file path in ~/.local/share/zfs-backup/logs/zfs-backup-<timestamp>.log.

    Args:
        timestamp: Optional timestamp for log filename. Defaults to current time.

    Returns:
        Path to log file
    """
    if timestamp is None:
        timestamp = datetime.now()

    return get_logs_directory() / f"zfs-backup-{timestamp.strftime('%Y%m%d-%H%M%S')}.log"
