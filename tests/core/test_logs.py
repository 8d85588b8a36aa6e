"""Tests for logging setup and the in-memory log buffer."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from pairsync.core.logs import LogBuffer, get_log_file, log_buffer, setup_logging


def _record(message: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("pairsync.test", level, __file__, 1, message, None, None)


class TestLogBuffer:
    """Tests for LogBuffer."""

    def test_newest_first(self) -> None:
        """Should return the most recent record first."""
        buffer = LogBuffer()
        buffer.emit(_record("first"))
        buffer.emit(_record("second"))

        messages = [entry["message"] for entry in buffer.get_logs()]
        assert messages == ["second", "first"]

    def test_capacity(self) -> None:
        """Should drop the oldest records beyond its capacity."""
        buffer = LogBuffer(capacity=3)
        for i in range(5):
            buffer.emit(_record(f"m{i}"))

        assert [entry["message"] for entry in buffer.get_logs()] == ["m4", "m3", "m2"]

    def test_limit_and_level(self) -> None:
        """Should filter by level name and cap the count."""
        buffer = LogBuffer()
        buffer.emit(_record("ok"))
        buffer.emit(_record("bad", logging.ERROR))
        buffer.emit(_record("worse", logging.ERROR))

        assert [entry["message"] for entry in buffer.get_logs(level="error")] == ["worse", "bad"]
        assert len(buffer.get_logs(limit=1)) == 1

    def test_entry_fields(self) -> None:
        """Should store plain serializable fields."""
        buffer = LogBuffer()
        buffer.emit(_record("hello %s"))

        entry = buffer.get_logs()[0]
        assert set(entry) == {"timestamp", "level", "logger", "message"}
        assert entry["level"] == "INFO"
        assert entry["logger"] == "pairsync.test"

    def test_clear(self) -> None:
        """Should empty the buffer."""
        buffer = LogBuffer()
        buffer.emit(_record("x"))
        buffer.clear()

        assert buffer.get_logs() == []


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_daily_file_name(self, tmp_path: Path) -> None:
        """Should name log files by day."""
        assert get_log_file(tmp_path, date(2024, 3, 9)) == tmp_path / "sync-2024-03-09.log"

    def test_handlers_replaced(self, tmp_path: Path) -> None:
        """Should not stack handlers across calls."""
        setup_logging("INFO")
        logger = setup_logging("DEBUG", tmp_path / "logs")

        try:
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 3
            assert log_buffer in logger.handlers
        finally:
            setup_logging("INFO")

    def test_writes_file_and_buffer(self, tmp_path: Path) -> None:
        """Should write records to the daily file and the buffer."""
        log_dir = tmp_path / "logs"
        logger = setup_logging("INFO", log_dir)
        log_buffer.clear()

        try:
            logging.getLogger("pairsync.sync.test").info("Copied x -> y")
            for handler in logger.handlers:
                handler.flush()

            assert "Copied x -> y" in get_log_file(log_dir).read_text(encoding="utf-8")
            assert log_buffer.get_logs(limit=1)[0]["message"] == "Copied x -> y"
        finally:
            setup_logging("INFO")
