"""
Periodic maintenance and ingestion loop.

Every interval the scheduler runs, in order:
    (a) operational log rotation, if due
    (b) retention cleanup, at most once per day in the maintenance hour
    (c) one ingestion pass over all sites, followed by a summary log

Each step is isolated: a failure is logged and the next step still runs.
"""

import logging
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from ..config.constants import DEFAULT_RETENTION_DAYS, DEFAULT_TASK_INTERVAL_SECONDS
from ..ingestion import IngestionCoordinator, ScanOutcome, summarize
from ..monitoring import LogRotator
from ..storage import StorageBackend
from .cancellation import CancellationToken
from .cleanup import CleanupTracker

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Lifecycle of the scheduler loop."""

    RUNNING = "running"
    STOPPED = "stopped"


class PeriodicTaskScheduler:
    """
    Background loop driving log rotation, cleanup and ingestion.

    The service runs run_tasks() once synchronously at startup, then
    start()s the loop, which waits one interval before each further run.

    Usage:
        scheduler = PeriodicTaskScheduler(coordinator, backend, rotator, interval=300)
        scheduler.run_tasks()
        scheduler.start()
        ...
        scheduler.stop(grace_seconds=1.0)
    """

    def __init__(
        self,
        coordinator: IngestionCoordinator,
        backend: StorageBackend,
        log_rotator: Optional[LogRotator] = None,
        interval: float = DEFAULT_TASK_INTERVAL_SECONDS,
        cleanup_tracker: Optional[CleanupTracker] = None,
        token: Optional[CancellationToken] = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.coordinator = coordinator
        self.backend = backend
        self.log_rotator = log_rotator
        self.interval = interval
        self.cleanup_tracker = cleanup_tracker or CleanupTracker()
        self.token = token or CancellationToken()
        self.retention_days = retention_days
        self.clock = clock
        self.state = SchedulerState.STOPPED
        self.iteration = 0
        self._thread: Optional[threading.Thread] = None

    def run_tasks(self) -> list[ScanOutcome]:
        """
        Run the three maintenance steps once.

        Returns:
            Outcomes of the ingestion pass (empty if the pass failed)
        """
        self._rotate_logs()
        self._cleanup_expired()
        return self._run_ingestion()

    def _rotate_logs(self) -> None:
        if self.log_rotator is None:
            return
        try:
            self.log_rotator.rotate_if_due()
        except OSError as e:
            logger.warning(f"Log rotation failed: {e}")

    def _cleanup_expired(self) -> None:
        now = self.clock()
        if not self.cleanup_tracker.should_run(now):
            return
        try:
            deleted = self.backend.cleanup_expired(self.retention_days)
        except Exception as e:
            logger.warning(f"Failed to clean up expired records: {e}")
            return
        self.cleanup_tracker.mark_done(now)
        logger.info(
            f"Retention cleanup removed {deleted} records older than "
            f"{self.retention_days} days"
        )

    def _run_ingestion(self) -> list[ScanOutcome]:
        started = time.monotonic()
        try:
            outcomes = self.coordinator.run_pass()
        except Exception as e:
            logger.error(f"Log scan pass failed: {e}", exc_info=True)
            return []
        elapsed = time.monotonic() - started

        for outcome in outcomes:
            if outcome.success:
                if outcome.total_entries > 0:
                    logger.info(
                        f"Site {outcome.site_name} ({outcome.site_id}) scanned: "
                        f"{outcome.total_entries} records in "
                        f"{outcome.duration_seconds:.2f}s"
                    )
            else:
                logger.warning(
                    f"Site {outcome.site_name} ({outcome.site_id}) scan failed: "
                    f"{outcome.error}"
                )

        summary = summarize(outcomes)
        logger.info(
            f"Log scan complete: {summary.succeeded}/{summary.total} sites succeeded, "
            f"{summary.entries} records, {elapsed:.2f}s"
        )
        return outcomes

    def run(self) -> None:
        """
        Loop until cancelled, running the tasks once per interval.

        Blocks the calling thread; a run that is in progress when
        cancellation arrives is allowed to finish.
        """
        self.state = SchedulerState.RUNNING
        logger.info(f"Periodic task scheduler started (interval {self.interval:g}s)")
        try:
            while not self.token.wait(self.interval):
                self.iteration += 1
                logger.info(f"Periodic tasks starting (iteration {self.iteration})")
                self.run_tasks()
        finally:
            self.state = SchedulerState.STOPPED
            logger.info("Periodic task scheduler stopped")

    def start(self) -> threading.Thread:
        """Run the loop on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Scheduler is already running")
        self.state = SchedulerState.RUNNING
        self._thread = threading.Thread(
            target=self.run, name="periodic-task-scheduler", daemon=True
        )
        self._thread.start()
        return self._thread

    def stop(self, grace_seconds: float = 1.0) -> bool:
        """
        Request cancellation and wait up to `grace_seconds` for the loop.

        Returns:
            True if the loop has exited
        """
        self.token.cancel()
        if self._thread is None:
            self.state = SchedulerState.STOPPED
            return True
        self._thread.join(grace_seconds)
        stopped = not self._thread.is_alive()
        if not stopped:
            logger.warning(
                f"Scheduler still busy after {grace_seconds:g}s grace period"
            )
        return stopped
