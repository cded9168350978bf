"""Background scheduling: periodic tasks, retention cleanup timing, cancellation."""

from .cancellation import CancellationToken
from .cleanup import CleanupTracker
from .periodic import PeriodicTaskScheduler, SchedulerState

__all__ = [
    "CancellationToken",
    "CleanupTracker",
    "PeriodicTaskScheduler",
    "SchedulerState",
]
