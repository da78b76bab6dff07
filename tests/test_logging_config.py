# tests/test_logging_config.py

"""Tests for the rotating logging configuration."""

import logging
import shutil
import tempfile
import unittest
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from src.config.logging_config import setup_logging
from src.config.settings import Settings


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        self._reset()
        self.logs_dir = Path(tempfile.mkdtemp()) / "logs"

    def tearDown(self) -> None:
        self._reset()
        shutil.rmtree(self.logs_dir.parent, ignore_errors=True)

    def _reset(self) -> None:
        """Detach handlers from the project logger."""
        root_logger = logging.getLogger("price_tracker")
        for handler in list(root_logger.handlers):
            handler.close()
        root_logger.handlers.clear()
        root_logger.propagate = True

    def _handlers(self) -> list[logging.Handler]:
        return logging.getLogger("price_tracker").handlers

    def test_setup_creates_log_file_in_logs_dir(self) -> None:
        """The returned path exists inside the requested directory."""
        log_path = setup_logging(self.logs_dir)
        self.assertTrue(log_path.exists())
        self.assertEqual(log_path.parent, self.logs_dir)
        self.assertEqual(log_path.name, Settings.LOG_FILE_NAME)

    def test_file_rotates_daily_with_bounded_backups(self) -> None:
        """The file handler rolls at midnight and keeps a fixed history."""
        setup_logging(self.logs_dir)
        rotating = [
            h for h in self._handlers()
            if isinstance(h, TimedRotatingFileHandler)
        ]
        self.assertEqual(len(rotating), 1)
        handler = rotating[0]
        self.assertEqual(handler.when, "MIDNIGHT")
        self.assertEqual(handler.backupCount, Settings.LOG_BACKUP_DAYS)
        self.assertGreater(handler.backupCount, 0)
        self.assertTrue(handler.utc)

    def test_file_debug_stderr_warning(self) -> None:
        """File captures DEBUG; stderr only WARNING and above."""
        setup_logging(self.logs_dir)
        file_handlers = [
            h for h in self._handlers()
            if isinstance(h, logging.FileHandler)
        ]
        stream_handlers = [
            h for h in self._handlers()
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(file_handlers), 1)
        self.assertEqual(len(stream_handlers), 1)
        self.assertEqual(file_handlers[0].level, logging.DEBUG)
        self.assertEqual(stream_handlers[0].level, logging.WARNING)

    def test_repeated_calls_no_duplicate_handlers(self) -> None:
        """Calling setup_logging twice does not duplicate handlers."""
        setup_logging(self.logs_dir)
        count_before = len(self._handlers())
        setup_logging(self.logs_dir)
        self.assertEqual(count_before, len(self._handlers()))

    def test_child_logger_records_reach_file(self) -> None:
        """Module loggers such as price_tracker.scrape land in the file."""
        log_path = setup_logging(self.logs_dir)
        logging.getLogger("price_tracker.scrape").debug(
            "cycle message 1234",
        )
        for handler in self._handlers():
            handler.flush()
        self.assertIn(
            "cycle message 1234",
            log_path.read_text(encoding="utf-8"),
        )


if __name__ == "__main__":
    unittest.main()
