"""
Shared fixtures for integration tests.

Provides:
- Temporary SQLite database for isolated testing
- Fully wired ingestion stack (state store, scanner, coordinator)
- Sample record generator for reporting tests
"""

import random
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from weblog_pipeline.enrichment import build_enricher
from weblog_pipeline.ingestion import (
    FileScanner,
    IngestionCoordinator,
    NormalizedRecord,
    ScanStateStore,
)
from weblog_pipeline.storage import get_backend

# =============================================================================
# SAMPLE DATA
# =============================================================================


def generate_sample_records(
    num_records: int,
    start: datetime,
    span: timedelta,
    seed: int = 42,
) -> list[NormalizedRecord]:
    """
    Generate sample decoded records spread over [start, start + span).

    Args:
        num_records: Number of records to generate
        start: Earliest timestamp
        span: Time span to spread records over
        seed: Random seed for reproducibility (default: 42)
    """
    rng = random.Random(seed)
    urls = ["/", "/blog/post-1", "/blog/post-2", "/about", "/pricing"]
    ips = [f"8.8.{i}.{i + 1}" for i in range(10)]
    browsers = ["Chrome", "Firefox", "Safari"]

    records = []
    for _ in range(num_records):
        offset = timedelta(seconds=rng.randint(0, int(span.total_seconds()) - 1))
        records.append(
            NormalizedRecord(
                ip=rng.choice(ips),
                pageview_flag=True,
                timestamp=start + offset,
                method="GET",
                url=rng.choice(urls),
                status=200,
                bytes_sent=rng.randint(100, 5000),
                referer="",
                user_browser=rng.choice(browsers),
                user_os="Windows",
                user_device="Desktop",
                domestic_location="Unknown",
                global_location="Unknown",
            )
        )
    return records


def make_record(timestamp: datetime, **overrides) -> NormalizedRecord:
    """Build one record with sensible defaults."""
    fields = dict(
        ip="8.8.8.8",
        pageview_flag=True,
        timestamp=timestamp,
        method="GET",
        url="/",
        status=200,
        bytes_sent=100,
        referer="",
        user_browser="Chrome",
        user_os="Windows",
        user_device="Desktop",
        domestic_location="Unknown",
        global_location="Unknown",
    )
    fields.update(overrides)
    return NormalizedRecord(**fields)


@pytest.fixture
def record_factory():
    """Factory for single NormalizedRecord instances."""
    return make_record


@pytest.fixture
def sample_records_factory():
    """Factory for batches of generated records."""
    return generate_sample_records


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test_weblog.db"


@pytest.fixture
def sqlite_backend(temp_db_path: Path):
    """
    Create an initialized SQLite backend with temporary database.

    Automatically cleans up after test.
    """
    backend = get_backend("sqlite", db_path=temp_db_path)
    backend.initialize()
    yield backend
    backend.close()


# =============================================================================
# INGESTION FIXTURES
# =============================================================================


@pytest.fixture
def ingestion_stack(sqlite_backend, tmp_path: Path, fixed_now):
    """
    Build a state store, scanner and coordinator factory on SQLite.

    Returns a function taking the site list and returning the coordinator.
    """
    state_store = ScanStateStore(tmp_path / "data" / "nginx_scan_state.json")
    state_store.load()
    scanner = FileScanner(
        sqlite_backend,
        state_store,
        build_enricher(),
        clock=lambda: fixed_now,
    )

    def _build(sites) -> IngestionCoordinator:
        return IngestionCoordinator(sites, scanner, state_store)

    _build.state_store = state_store
    _build.scanner = scanner
    return _build

