"""
Ingestion coordinator: one pass over every configured site.

For each site, resolves its log path (literal or glob), scans every
resolved file and records a ScanOutcome. The scan state is saved once,
after all sites have been processed.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from ..config import SiteConfig
from .exceptions import IngestionError, SourceValidationError
from .file_utils import is_glob_pattern, resolve_log_paths
from .scanner import FileScanner
from .state import ScanStateStore

logger = logging.getLogger(__name__)


@dataclass
class ScanOutcome:
    """
    Result of one pass over one site.

    A site fails when its log source cannot be resolved, a literal log
    path cannot be read, or scanning one of its files raises unexpectedly.
    Rejected lines never fail a site.
    """

    site_name: str
    site_id: str
    total_entries: int = 0
    duration_seconds: float = 0.0
    success: bool = True
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "site_name": self.site_name,
            "site_id": self.site_id,
            "total_entries": self.total_entries,
            "duration_seconds": round(self.duration_seconds, 3),
            "success": self.success,
            "error": self.error,
        }


@dataclass
class PassSummary:
    """Aggregate of a pass, used for the summary log line."""

    succeeded: int
    total: int
    entries: int
    duration_seconds: float


def summarize(outcomes: Sequence[ScanOutcome]) -> PassSummary:
    """Aggregate site outcomes into pass totals."""
    return PassSummary(
        succeeded=sum(1 for o in outcomes if o.success),
        total=len(outcomes),
        entries=sum(o.total_entries for o in outcomes),
        duration_seconds=sum(o.duration_seconds for o in outcomes),
    )


class IngestionCoordinator:
    """
    Runs ingestion passes over the configured sites.

    Passes are serialized: a pass requested while another is running
    waits for it to finish.

    Usage:
        coordinator = IngestionCoordinator(settings.websites, scanner, state_store)
        outcomes = coordinator.run_pass()
    """

    def __init__(
        self,
        sites: Sequence[SiteConfig],
        scanner: FileScanner,
        state_store: ScanStateStore,
    ):
        self.sites = list(sites)
        self.scanner = scanner
        self.state_store = state_store
        self._pass_lock = threading.Lock()

    def run_pass(self) -> list[ScanOutcome]:
        """
        Scan every site once, in configuration order.

        Returns:
            One ScanOutcome per configured site
        """
        with self._pass_lock:
            try:
                return [self.scan_site(site) for site in self.sites]
            finally:
                self.state_store.save()

    def scan_site(self, site: SiteConfig) -> ScanOutcome:
        """Scan all files of one site. Does not save the scan state."""
        outcome = ScanOutcome(site_name=site.name, site_id=site.id)
        started = time.monotonic()

        try:
            paths = resolve_log_paths(site.log_path)
        except SourceValidationError as e:
            logger.warning(f"Site {site.name}: {e}")
            outcome.success = False
            outcome.error = str(e)
            outcome.duration_seconds = time.monotonic() - started
            return outcome

        literal = not is_glob_pattern(site.log_path)

        for path in paths:
            try:
                result = self.scanner.scan_file(site.id, path, site.log_type)
            except IngestionError as e:
                logger.error(f"Site {site.name}: cannot scan {path}: {e}")
                outcome.success = False
                outcome.error = str(e)
                break
            except Exception as e:
                # State for this file is left unchanged
                logger.error(
                    f"Site {site.name}: unexpected error scanning {path}: {e}",
                    exc_info=True,
                )
                outcome.success = False
                outcome.error = f"{path}: {e}"
                continue

            outcome.total_entries += result.entries

            if result.error is not None and literal:
                outcome.success = False
                outcome.error = result.error

        outcome.duration_seconds = time.monotonic() - started
        return outcome
