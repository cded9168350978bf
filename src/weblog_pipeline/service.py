"""
Service wiring: storage, ingestion, scheduler and HTTP server.

Startup sequence:
    1. initialize the storage backend (fatal on failure)
    2. run the periodic tasks once synchronously (startup scan)
    3. start the HTTP server on a background thread
    4. start the periodic task scheduler
    5. wait for SIGINT/SIGTERM, then shut down gracefully
"""

import logging
import signal
import threading
from typing import Optional

import uvicorn

from .config import Settings
from .enrichment import Enricher, build_enricher
from .ingestion import FileScanner, IngestionCoordinator, ScanOutcome, ScanStateStore
from .monitoring import LogRotator, setup_logging
from .reporting import StatsQueries
from .scheduler import CancellationToken, CleanupTracker, PeriodicTaskScheduler
from .storage import StorageBackend, get_backend
from .web import create_app

logger = logging.getLogger(__name__)


class WeblogService:
    """
    Long-running access-log analytics service.

    Usage:
        settings = get_settings("config.yaml")
        WeblogService(settings).run()
    """

    def __init__(self, settings: Settings, configure_logging: bool = True):
        self.settings = settings
        self.token = CancellationToken()
        self._shutdown = threading.Event()
        self._http_server: Optional[uvicorn.Server] = None
        self._http_thread: Optional[threading.Thread] = None

        file_handler = None
        if configure_logging:
            file_handler = setup_logging(
                settings.log_level,
                settings.log_file,
                max_bytes=settings.log_max_bytes,
                backup_count=settings.log_backup_count,
            )
        self.log_rotator = LogRotator(file_handler, max_bytes=settings.log_max_bytes)

        self.backend: StorageBackend = get_backend(
            settings.storage_backend, db_path=settings.sqlite_db_path
        )
        self.enricher: Enricher = build_enricher(settings.geo_networks)
        self.state_store = ScanStateStore(settings.scan_state_path)
        self.scanner = FileScanner(self.backend, self.state_store, self.enricher)
        self.coordinator = IngestionCoordinator(
            settings.websites, self.scanner, self.state_store
        )
        self.scheduler = PeriodicTaskScheduler(
            self.coordinator,
            self.backend,
            log_rotator=self.log_rotator,
            interval=settings.task_interval_seconds,
            cleanup_tracker=CleanupTracker(
                maintenance_hour=settings.cleanup_hour,
                run_on_first_check=settings.cleanup_on_startup,
            ),
            token=self.token,
            retention_days=settings.retention_days,
        )

    def initialize(self) -> None:
        """
        Prepare storage and load the scan state.

        Raises:
            StorageError: If the database cannot be initialized
        """
        self.backend.initialize()
        self.state_store.load()

    def scan_once(self) -> list[ScanOutcome]:
        """Run one ingestion pass (no rotation or cleanup)."""
        return self.coordinator.run_pass()

    def run(self) -> None:
        """Run until SIGINT/SIGTERM."""
        logger.info("------ weblog-pipeline starting ------")
        logger.info(f"Monitoring {len(self.settings.websites)} website(s)")

        self.initialize()

        logger.info("Running startup scan")
        self.scheduler.run_tasks()

        self._start_http()
        self.scheduler.start()
        self._install_signal_handlers()

        try:
            while not self._shutdown.wait(1.0):
                pass
        finally:
            self.shutdown()

    def request_shutdown(self) -> None:
        """Ask run() to return (callable from any thread)."""
        self._shutdown.set()

    def shutdown(self) -> None:
        """Stop the scheduler and HTTP server and close storage."""
        logger.info("Shutting down ......")
        self.scheduler.stop(self.settings.shutdown_grace_seconds)

        if self._http_server is not None:
            self._http_server.should_exit = True
        if self._http_thread is not None:
            self._http_thread.join(5.0)

        self.backend.close()
        logger.info("------ weblog-pipeline stopped ------")

    def _start_http(self) -> None:
        stats = StatsQueries(
            self.backend, site_ids={site.id for site in self.settings.websites}
        )
        app = create_app(self.settings.websites, stats, self.backend)
        config = uvicorn.Config(
            app,
            host=self.settings.server_host,
            port=self.settings.server_port,
            log_config=None,
            access_log=False,
        )
        self._http_server = uvicorn.Server(config)
        self._http_thread = threading.Thread(
            target=self._http_server.run, name="http-server", daemon=True
        )
        self._http_thread.start()
        logger.info(
            f"HTTP server listening on "
            f"{self.settings.server_host}:{self.settings.server_port}"
        )

    def _install_signal_handlers(self) -> None:
        def handle(signum, _frame):
            logger.info(f"Received signal {signal.Signals(signum).name}")
            self.request_shutdown()

        signal.signal(signal.SIGINT, handle)
        signal.signal(signal.SIGTERM, handle)
