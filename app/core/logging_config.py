"""Centralized logging configuration for the application.

Provides structured logging with separate files for:
- info.log: General application logs (INFO level and above)
- error.log: Error logs only (ERROR level and above)

A bounded in-memory buffer additionally keeps the most recent messages
so the debug endpoint can show what the last webhook run did.
"""

import logging
import sys
from collections import deque
from datetime import datetime, timezone
from typing import Any

from app.core.config import Settings, get_settings


class RecentMessagesHandler(logging.Handler):
    """Logging handler that keeps the last N formatted messages in memory."""

    def __init__(self, capacity: int = 50) -> None:
        super().__init__(level=logging.INFO)
        self._messages: deque[dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._messages.append(
                {
                    "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                    "level": record.levelname,
                    "message": record.getMessage(),
                }
            )
        except Exception:
            self.handleError(record)

    def recent(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Return buffered messages, oldest first."""
        messages = list(self._messages)
        if limit is not None:
            return messages[-limit:]
        return messages

    def clear(self) -> None:
        self._messages.clear()


_recent_handler: RecentMessagesHandler | None = None


def setup_logging(settings: Settings | None = None) -> logging.Logger:
    """Configure application logging with file and console handlers.

    Creates separate log files for info and error levels in the
    configured log directory.

    Args:
        settings: Optional settings. If None, loads from environment.

    Returns:
        The configured root logger.
    """
    global _recent_handler
    settings = settings or get_settings()

    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    info_log_path = log_dir / "info.log"
    error_log_path = log_dir / "error.log"

    # Create formatters
    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    simple_formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if settings.log_level == "DEBUG" else logging.INFO)

    # Clear existing handlers
    root_logger.handlers.clear()

    # File handler for INFO and above (info.log)
    info_handler = logging.FileHandler(info_log_path, encoding="utf-8")
    info_handler.setLevel(logging.INFO)
    info_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(info_handler)

    # File handler for ERROR and above (error.log)
    error_handler = logging.FileHandler(error_log_path, encoding="utf-8")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(detailed_formatter)
    root_logger.addHandler(error_handler)

    # Console handler for development
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if settings.log_level == "DEBUG" else logging.INFO)
    console_handler.setFormatter(simple_formatter)
    root_logger.addHandler(console_handler)

    # Recent messages for the debug endpoint
    _recent_handler = RecentMessagesHandler(capacity=settings.debug_buffer_size)
    root_logger.addHandler(_recent_handler)

    return root_logger


def get_recent_messages(limit: int | None = None) -> list[dict[str, Any]]:
    """Return the most recent buffered log messages.

    Args:
        limit: Maximum number of messages to return (newest kept).

    Returns:
        A list of ``{timestamp, level, message}`` dicts, oldest first.
    """
    if _recent_handler is None:
        return []
    return _recent_handler.recent(limit)
