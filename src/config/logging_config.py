# src/config/logging_config.py

"""Rotating log setup for the long-running tracker process.

Everything under the ``price_tracker`` logger goes to
``logs/price_tracker.log``. The file rolls over at midnight UTC and
keeps ``Settings.LOG_BACKUP_DAYS`` dated backups, so a daemon that runs
for months holds a bounded amount of log on disk. Warnings and errors
are echoed to stderr.
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from src.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "[%(filename)s:%(lineno)d] | %(message)s"
)
_STDERR_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _rotating_file_handler(log_file: Path) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        filename=log_file,
        when="midnight",
        interval=1,
        backupCount=Settings.LOG_BACKUP_DAYS,
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def setup_logging(logs_dir: Path | None = None) -> Path:
    """Attach the rotating file and stderr handlers once per process.

    Returns the path of the active log file.
    """
    logs_dir = logs_dir or Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / Settings.LOG_FILE_NAME

    logger = logging.getLogger("price_tracker")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    if logger.handlers:
        return log_file

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(
        logging.Formatter(_STDERR_FORMAT, datefmt=_DATE_FORMAT)
    )

    logger.addHandler(_rotating_file_handler(log_file))
    logger.addHandler(stderr_handler)
    logger.info("Logging to %s", log_file)
    return log_file
