"""
Unit tests for operational logging setup and rotation.
"""

import logging
from datetime import date, timedelta
from pathlib import Path

import pytest

from weblog_pipeline.monitoring import LogRotator, setup_logging


def _installed_handlers() -> list[logging.Handler]:
    return [
        h for h in logging.getLogger().handlers
        if getattr(h, "_weblog_pipeline_handler", False)
    ]


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Remove handlers installed by setup_logging after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in _installed_handlers():
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)


@pytest.fixture
def file_handler(tmp_path: Path):
    """File handler installed by setup_logging."""
    return setup_logging("INFO", tmp_path / "logs" / "service.log", backup_count=2)


def write_line(handler, message: str) -> None:
    logging.getLogger("weblog_pipeline.test").info(message)
    handler.flush()


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_creates_log_file(self, file_handler, tmp_path: Path):
        """Log records reach the configured file."""
        write_line(file_handler, "hello from test")

        content = (tmp_path / "logs" / "service.log").read_text()
        assert "hello from test" in content

    def test_no_file_returns_none(self):
        """Without a log file no file handler is created."""
        assert setup_logging("DEBUG") is None
        assert logging.getLogger().level == logging.DEBUG

    def test_repeated_setup_replaces_handlers(self, file_handler, tmp_path: Path):
        """Calling setup_logging again does not stack handlers."""
        setup_logging("INFO", tmp_path / "logs" / "service.log")
        assert len(_installed_handlers()) == 2


class TestLogRotator:
    """Tests for LogRotator.rotate_if_due()."""

    def test_no_handler_never_due(self):
        """Without a file handler rotation is a no-op."""
        assert LogRotator(None).rotate_if_due() is False

    def test_small_fresh_file_not_rotated(self, file_handler):
        """A small file written today is left alone."""
        write_line(file_handler, "line")

        assert LogRotator(file_handler, max_bytes=1_000_000).rotate_if_due() is False

    def test_rotates_by_size(self, file_handler):
        """A file at the size threshold is rolled over."""
        write_line(file_handler, "x" * 200)
        base = Path(file_handler.baseFilename)

        assert LogRotator(file_handler, max_bytes=100).rotate_if_due() is True
        assert Path(f"{base}.1").exists()
        assert base.stat().st_size == 0

    def test_rotates_by_day(self, file_handler):
        """A file last written on an earlier day is rolled over."""
        write_line(file_handler, "yesterday's line")
        base = Path(file_handler.baseFilename)
        tomorrow = date.today() + timedelta(days=1)

        rotator = LogRotator(file_handler, max_bytes=1_000_000, today=lambda: tomorrow)

        assert rotator.rotate_if_due() is True
        assert Path(f"{base}.1").exists()

    def test_empty_file_not_rotated(self, file_handler):
        """An empty log is never rotated, even with a tiny threshold."""
        assert LogRotator(file_handler, max_bytes=1).rotate_if_due() is False
