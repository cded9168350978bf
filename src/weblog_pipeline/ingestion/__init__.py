"""
Incremental access-log ingestion.

Scans configured log files for data appended since the previous pass,
decodes each line into a NormalizedRecord and stores the records in
batches.

Usage:
    from weblog_pipeline.ingestion import (
        FileScanner,
        IngestionCoordinator,
        ScanStateStore,
    )

    state_store = ScanStateStore(settings.scan_state_path)
    state_store.load()
    scanner = FileScanner(backend, state_store, enricher)
    coordinator = IngestionCoordinator(settings.websites, scanner, state_store)

    for outcome in coordinator.run_pass():
        print(outcome.site_name, outcome.total_entries)
"""

from .base import LineDecoder, NormalizedRecord
from .coordinator import IngestionCoordinator, PassSummary, ScanOutcome, summarize
from .exceptions import (
    DecoderNotFoundError,
    IngestionError,
    ParseError,
    SourceValidationError,
    StaleRecordError,
)
from .file_utils import is_glob_pattern, iter_complete_lines, resolve_log_paths
from .parsers import CombinedLogDecoder, JsonLogDecoder
from .registry import DecoderRegistry, get_decoder
from .scanner import FileScanner, FileScanResult
from .state import FileState, ScanState, ScanStateStore

__all__ = [
    # Records and decoders
    "NormalizedRecord",
    "LineDecoder",
    "CombinedLogDecoder",
    "JsonLogDecoder",
    # Registry
    "DecoderRegistry",
    "get_decoder",
    # Exceptions
    "IngestionError",
    "ParseError",
    "StaleRecordError",
    "SourceValidationError",
    "DecoderNotFoundError",
    # Scan state
    "FileState",
    "ScanState",
    "ScanStateStore",
    # Scanning
    "FileScanner",
    "FileScanResult",
    "IngestionCoordinator",
    "ScanOutcome",
    "PassSummary",
    "summarize",
    # File utilities
    "resolve_log_paths",
    "is_glob_pattern",
    "iter_complete_lines",
]
