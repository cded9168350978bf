"""
Daily retention cleanup bookkeeping.

Decides when expired records should be purged: once on the first check
after startup (optional), then once per calendar day during the
maintenance hour.
"""

import logging
from datetime import date, datetime
from typing import Optional

from ..config.constants import DEFAULT_CLEANUP_HOUR

logger = logging.getLogger(__name__)


class CleanupTracker:
    """
    Tracks the date of the last retention cleanup.

    Usage:
        tracker = CleanupTracker(maintenance_hour=2)
        now = datetime.now()
        if tracker.should_run(now):
            backend.cleanup_expired(retention_days)
            tracker.mark_done(now)
    """

    def __init__(
        self,
        maintenance_hour: int = DEFAULT_CLEANUP_HOUR,
        run_on_first_check: bool = True,
    ):
        if not 0 <= maintenance_hour <= 23:
            raise ValueError(f"maintenance_hour must be 0-23, got {maintenance_hour}")
        self.maintenance_hour = maintenance_hour
        self.run_on_first_check = run_on_first_check
        self.last_cleanup_date: Optional[date] = None

    def should_run(self, now: datetime) -> bool:
        """Return True if a cleanup is due at `now` (local wall-clock time)."""
        if self.last_cleanup_date is None and self.run_on_first_check:
            return True
        return (
            now.hour == self.maintenance_hour
            and self.last_cleanup_date != now.date()
        )

    def mark_done(self, now: datetime) -> None:
        """Record a completed cleanup."""
        self.last_cleanup_date = now.date()
        logger.debug(f"Retention cleanup recorded for {self.last_cleanup_date}")
