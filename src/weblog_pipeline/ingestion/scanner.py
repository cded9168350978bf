"""
Incremental access-log file scanner.

Reads the bytes appended to a log file since the previous pass, decodes
them line by line and hands the records to the storage backend in
fixed-size batches.
"""

import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from ..config.constants import BATCH_SIZE
from ..enrichment import Enricher
from ..storage import StorageBackend, StorageError
from . import parsers  # noqa: F401  (registers the line decoders)
from .base import LineDecoder, NormalizedRecord
from .exceptions import ParseError, StaleRecordError
from .file_utils import iter_complete_lines
from .registry import DecoderRegistry
from .state import ScanStateStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FileScanResult:
    """
    Result of scanning one log file.

    Attributes:
        path: File that was scanned
        entries: Number of records decoded from the new data
        start_offset: Offset reading started from
        end_offset: Offset after the last complete line consumed
        current_size: File size observed when the scan started
        skipped_invalid: Lines rejected as malformed
        skipped_stale: Lines rejected as older than the age cutoff
        failed_batches: Batches the storage backend rejected
        rotated: True if the file shrank and was rescanned from 0
        error: Open/read error message; state is left untouched when set
    """

    path: str
    entries: int = 0
    start_offset: int = 0
    end_offset: int = 0
    current_size: int = 0
    skipped_invalid: int = 0
    skipped_stale: int = 0
    failed_batches: int = 0
    rotated: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def bytes_read(self) -> int:
        return self.end_offset - self.start_offset

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "entries": self.entries,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "current_size": self.current_size,
            "skipped_invalid": self.skipped_invalid,
            "skipped_stale": self.skipped_stale,
            "failed_batches": self.failed_batches,
            "rotated": self.rotated,
            "error": self.error,
        }


class FileScanner:
    """
    Scans log files incrementally using the persisted scan state.

    Only newline-terminated lines are consumed. A line still being
    written when the pass runs is left for the next pass, which picks it
    up once it is complete.

    Usage:
        scanner = FileScanner(backend, state_store, enricher)
        result = scanner.scan_file(site.id, "/var/log/nginx/access.log", "nginx")
    """

    def __init__(
        self,
        backend: StorageBackend,
        state_store: ScanStateStore,
        enricher: Enricher,
        batch_size: int = BATCH_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.backend = backend
        self.state_store = state_store
        self.enricher = enricher
        self.batch_size = batch_size
        self.clock = clock
        self._decoders: dict[str, LineDecoder] = {}

    def get_decoder(self, log_type: str) -> LineDecoder:
        """Return the (cached) decoder for a log type."""
        decoder = self._decoders.get(log_type)
        if decoder is None:
            decoder = DecoderRegistry.get_decoder(log_type, self.enricher)
            self._decoders[log_type] = decoder
        return decoder

    def scan_file(self, site_id: str, path: str, log_type: str) -> FileScanResult:
        """
        Scan the new data of one log file.

        Args:
            site_id: Site the file belongs to
            path: Log file path
            log_type: Configured log type ('nginx' or 'json')

        Returns:
            FileScanResult; `error` is set if the file could not be read,
            in which case the state entry is not changed.

        Raises:
            DecoderNotFoundError: If log_type has no registered decoder
        """
        decoder = self.get_decoder(log_type)
        result = FileScanResult(path=path)
        started = time.monotonic()

        try:
            with open(path, "rb") as handle:
                current_size = os.fstat(handle.fileno()).st_size
                result.current_size = current_size

                previous = self.state_store.get_file_state(site_id, path)
                start_offset = self.state_store.resolve_start_offset(
                    site_id, path, current_size
                )
                result.start_offset = start_offset
                result.end_offset = start_offset
                result.rotated = (
                    previous is not None and previous.last_size > current_size
                )

                handle.seek(start_offset)
                self._consume(
                    handle, site_id, decoder, current_size - start_offset, result
                )
        except OSError as e:
            logger.error(f"Failed to read log file {path}: {e}")
            result.error = str(e)
            return result

        self.state_store.update_file_state(
            site_id, path, result.end_offset, result.current_size
        )

        elapsed = time.monotonic() - started
        if result.entries or result.skipped_invalid or result.skipped_stale:
            logger.info(
                f"Scanned {path}: {result.entries} records, "
                f"{result.skipped_invalid} invalid, {result.skipped_stale} stale, "
                f"{result.bytes_read} bytes in {elapsed:.2f}s"
            )
        else:
            logger.debug(f"No new data in {path}")

        return result

    def _consume(
        self,
        handle,
        site_id: str,
        decoder: LineDecoder,
        limit: int,
        result: FileScanResult,
    ) -> None:
        """Decode complete lines up to `limit` bytes, flushing full batches."""
        now = self.clock()
        batch: list[NormalizedRecord] = []
        line_number = 0

        for raw_line in iter_complete_lines(handle, limit):
            line_number += 1
            result.end_offset += len(raw_line)

            line = raw_line.decode("utf-8", errors="replace").rstrip("\r\n")
            if not line.strip():
                continue

            try:
                record = decoder.decode(line, now=now)
            except StaleRecordError as e:
                result.skipped_stale += 1
                logger.debug(f"{result.path}:{line_number}: {e}")
                continue
            except ParseError as e:
                result.skipped_invalid += 1
                logger.debug(f"{result.path}:{line_number}: {e}")
                continue

            batch.append(record)
            result.entries += 1

            if len(batch) >= self.batch_size:
                self._flush(site_id, batch, result)
                batch = []

        if batch:
            self._flush(site_id, batch, result)

    def _flush(
        self, site_id: str, batch: list[NormalizedRecord], result: FileScanResult
    ) -> None:
        try:
            self.backend.batch_insert(site_id, batch)
        except StorageError as e:
            result.failed_batches += 1
            logger.error(
                f"Failed to store batch of {len(batch)} records from "
                f"{result.path} for site {site_id}: {e}"
            )
