"""
Operational logging for the service.

setup_logging() configures the root logger: a console handler, plus a
file handler when a log file is configured. The file handler never rolls
over by itself; the periodic scheduler calls LogRotator.rotate_if_due()
so rotation happens between passes instead of in the middle of one.
"""

import logging
import logging.handlers
import os
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional, Union

from ..config.constants import DEFAULT_LOG_BACKUP_COUNT, DEFAULT_LOG_MAX_BYTES

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attribute used to recognize handlers installed by setup_logging()
_HANDLER_MARKER = "_weblog_pipeline_handler"


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = DEFAULT_LOG_MAX_BYTES,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
) -> Optional[logging.handlers.RotatingFileHandler]:
    """
    Configure root logging.

    Calling it again replaces the handlers installed by a previous call.

    Args:
        level: Log level name or number
        log_file: Optional operational log file
        max_bytes: Size threshold used by LogRotator
        backup_count: Number of rotated files kept

    Returns:
        The file handler (to build a LogRotator), or None without a log file
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    setattr(console, _HANDLER_MARKER, True)
    root.addHandler(console)

    if not log_file:
        return None

    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    # maxBytes=0 disables the handler's own size check; LogRotator decides
    file_handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=0, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    setattr(file_handler, _HANDLER_MARKER, True)
    setattr(file_handler, "rotation_max_bytes", max_bytes)
    root.addHandler(file_handler)

    logger.debug(f"Logging to {path} at level {logging.getLevelName(level)}")
    return file_handler


class LogRotator:
    """
    Rolls the operational log over by size or by day.

    A rollover is due when the log file has reached `max_bytes`, or when
    it was last written on an earlier calendar day than today.

    Usage:
        handler = setup_logging("INFO", "data/weblog-pipeline.log")
        rotator = LogRotator(handler, max_bytes=10 * 1024 * 1024)
        rotator.rotate_if_due()
    """

    def __init__(
        self,
        handler: Optional[logging.handlers.RotatingFileHandler],
        max_bytes: int = DEFAULT_LOG_MAX_BYTES,
        today: Callable[[], date] = date.today,
    ):
        self.handler = handler
        self.max_bytes = max_bytes
        self.today = today
        self._lock = threading.Lock()

    def is_due(self) -> bool:
        """Check whether the log file should be rolled over now."""
        if self.handler is None:
            return False

        path = self.handler.baseFilename
        try:
            stat = os.stat(path)
        except FileNotFoundError:
            return False

        if stat.st_size == 0:
            return False
        if self.max_bytes > 0 and stat.st_size >= self.max_bytes:
            return True
        return datetime.fromtimestamp(stat.st_mtime).date() < self.today()

    def rotate_if_due(self) -> bool:
        """
        Roll the log file over if due.

        Returns:
            True if a rollover happened

        Raises:
            OSError: If renaming the log files fails
        """
        with self._lock:
            if not self.is_due():
                return False
            self.handler.acquire()
            try:
                self.handler.doRollover()
            finally:
                self.handler.release()

        logger.info(f"Rotated operational log {self.handler.baseFilename}")
        return True
