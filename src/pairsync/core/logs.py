"""Logging setup for pairsync.

This module provides:
- LogBuffer: In-memory ring buffer of recent records, newest first
- setup_logging: Console, daily file and buffer handlers on the pairsync logger

The buffer is what a dashboard reads to show the log stream; the engine
itself only ever talks to the standard logging module.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections import deque
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_MEMORY_LOGS = 1000


class LogBuffer(logging.Handler):
    """Logging handler that keeps the most recent records in memory."""

    def __init__(self, capacity: int = MAX_MEMORY_LOGS) -> None:
        super().__init__()
        self._records: deque[dict[str, Any]] = deque(maxlen=capacity)
        self._buffer_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            with self._buffer_lock:
                self._records.appendleft(entry)
        except Exception:
            self.handleError(record)

    def get_logs(self, limit: int = 100, level: str | None = None) -> list[dict[str, Any]]:
        """Get recent records, newest first.

        Args:
            limit: Maximum number of records to return.
            level: Only return records of this level name (e.g. "ERROR").

        Returns:
            List of plain dicts safe to serialize.
        """
        with self._buffer_lock:
            records = list(self._records)
        if level:
            wanted = level.upper()
            records = [entry for entry in records if entry["level"] == wanted]
        return records[: max(limit, 0)]

    def clear(self) -> None:
        """Drop every buffered record."""
        with self._buffer_lock:
            self._records.clear()


log_buffer = LogBuffer()


def get_log_file(log_dir: Path, day: date | None = None) -> Path:
    """Get the daily log file path inside a log directory."""
    day = day or date.today()
    return log_dir / f"sync-{day.isoformat()}.log"


def setup_logging(level: str = "INFO", log_dir: Path | None = None) -> logging.Logger:
    """Configure logging to stdout, an optional daily file and the log buffer.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Level name for the pairsync logger.
        log_dir: Directory for the daily log file; no file when None.

    Returns:
        The configured pairsync logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("pairsync")
    root_logger.setLevel(level.upper())
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        if handler is not log_buffer:
            handler.close()

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # File handler
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(get_log_file(log_dir), encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.addHandler(log_buffer)
    return root_logger
