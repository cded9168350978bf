"""
Cooperative cancellation for the background scheduler.

The scheduler loop checks the token between passes and sleeps on it,
so a shutdown request wakes it immediately instead of waiting out the
task interval.
"""

import threading
from typing import Optional


class CancellationToken:
    """
    Thread-safe cancellation token.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.wait(60)
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until cancelled or until `timeout` seconds pass.

        Returns:
            True if cancellation was requested, False on timeout
        """
        return self._event.wait(timeout)
