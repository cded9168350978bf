"""
Shared fixtures for all test suites.

Provides:
- A fixed "now" used as the decoders' age-cutoff reference
- Builders for combined-format and JSON log lines
- A fake enricher and a recording storage backend
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest

from weblog_pipeline.enrichment import Enricher, GeoLocation, UserAgentInfo
from weblog_pipeline.storage import QueryError, StorageBackend

FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# TIME
# =============================================================================


@pytest.fixture
def fixed_now() -> datetime:
    """Reference time for age cutoffs (2024-06-15 12:00 UTC)."""
    return FIXED_NOW


# =============================================================================
# LINE BUILDERS
# =============================================================================


def build_combined_line(
    timestamp: datetime = FIXED_NOW,
    ip: str = "8.8.8.8",
    method: str = "GET",
    path: str = "/index.html",
    status: int = 200,
    bytes_sent: int = 512,
    referer: str = "-",
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
) -> str:
    """Build one combined-format line (no trailing newline)."""
    raw_time = timestamp.strftime("%d/%b/%Y:%H:%M:%S %z")
    return (
        f'{ip} - - [{raw_time}] "{method} {path} HTTP/1.1" '
        f'{status} {bytes_sent} "{referer}" "{user_agent}"'
    )


def build_json_line(timestamp: datetime = FIXED_NOW, **fields) -> str:
    """
    Build one JSON request-log line (no trailing newline).

    Keyword arguments use underscores for the aspnet-request-* fields,
    e.g. method="GET" -> "aspnet-request-method".
    """
    payload = {"@timestamp": timestamp.strftime("%Y/%m/%d %H:%M:%S.000")}
    for name, value in fields.items():
        payload[f"aspnet-request-{name}"] = value
    return json.dumps(payload, separators=(",", ":"))


def build_sized_json_line(size: int, timestamp: datetime = FIXED_NOW) -> str:
    """Build a JSON line that is exactly `size` bytes including the newline."""
    base = {"@timestamp": timestamp.strftime("%Y/%m/%d %H:%M:%S.000"), "pad": ""}
    base_len = len(json.dumps(base, separators=(",", ":"))) + 1
    if size < base_len:
        raise ValueError(f"size must be >= {base_len}")
    base["pad"] = "x" * (size - base_len)
    line = json.dumps(base, separators=(",", ":")) + "\n"
    assert len(line.encode("utf-8")) == size
    return line


@pytest.fixture
def combined_line():
    """Builder fixture for combined-format lines."""
    return build_combined_line


@pytest.fixture
def json_line():
    """Builder fixture for JSON request-log lines."""
    return build_json_line


@pytest.fixture
def sized_json_line():
    """Builder fixture for JSON lines of an exact byte size."""
    return build_sized_json_line


# =============================================================================
# COLLABORATORS
# =============================================================================


class FakeEnricher(Enricher):
    """Deterministic enricher: 200 responses are pageviews, fixed labels."""

    def classify_pageview(self, status: int, path: str, ip: str) -> bool:
        return status == 200

    def geo_locate(self, ip: str) -> GeoLocation:
        return GeoLocation(domestic="Test Region", global_="Test Country")

    def parse_user_agent(self, user_agent: str) -> UserAgentInfo:
        return UserAgentInfo(browser="TestBrowser", os="TestOS", device="Desktop")


class RecordingBackend(StorageBackend):
    """
    In-memory backend that records every batch it receives.

    Batches whose (0-based) index is in `fail_batches` raise QueryError.
    """

    def __init__(self, fail_batches: Optional[set[int]] = None):
        self.batches: list[tuple[str, list]] = []
        self.fail_batches = fail_batches or set()
        self.cleanup_calls: list[int] = []
        self.cleanup_error: Optional[Exception] = None
        self._calls = 0

    @property
    def backend_type(self) -> str:
        return "recording"

    def initialize(self) -> None:
        pass

    def close(self) -> None:
        pass

    def batch_insert(self, site_id: str, records: Sequence) -> int:
        index = self._calls
        self._calls += 1
        if index in self.fail_batches:
            raise QueryError(f"batch {index} rejected")
        self.batches.append((site_id, list(records)))
        return len(records)

    def cleanup_expired(self, retention_days: int) -> int:
        self.cleanup_calls.append(retention_days)
        if self.cleanup_error is not None:
            raise self.cleanup_error
        return 0

    def query(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        return []

    def execute(self, sql: str, params: Optional[dict] = None) -> int:
        return 0

    def table_exists(self, table_name: str) -> bool:
        return True

    def get_table_row_count(self, table_name: str) -> int:
        return self.record_count

    @property
    def records(self) -> list:
        return [record for _, batch in self.batches for record in batch]

    @property
    def record_count(self) -> int:
        return len(self.records)


@pytest.fixture
def fake_enricher() -> FakeEnricher:
    """Enricher with fixed labels."""
    return FakeEnricher()


@pytest.fixture
def recording_backend() -> RecordingBackend:
    """Storage backend that keeps batches in memory."""
    return RecordingBackend()


@pytest.fixture
def make_recording_backend():
    """Factory for recording backends with failing batches."""
    return RecordingBackend


@pytest.fixture
def days_ago(fixed_now):
    """Return a helper computing fixed_now minus N days."""

    def _days_ago(days: float) -> datetime:
        return fixed_now - timedelta(days=days)

    return _days_ago
