"""
Pytest configuration and shared fixtures for unit tests.
"""

from pathlib import Path

import pytest

from weblog_pipeline.ingestion import FileScanner, ScanStateStore


@pytest.fixture
def state_store(tmp_path: Path) -> ScanStateStore:
    """Empty scan state store backed by a temporary file."""
    store = ScanStateStore(tmp_path / "state" / "nginx_scan_state.json")
    store.load()
    return store


@pytest.fixture
def scanner(recording_backend, state_store, fake_enricher, fixed_now) -> FileScanner:
    """FileScanner wired to the recording backend and a fixed clock."""
    return FileScanner(
        recording_backend,
        state_store,
        fake_enricher,
        clock=lambda: fixed_now,
    )


@pytest.fixture
def write_log(tmp_path: Path):
    """Return a helper writing lines (newline-terminated) to a log file."""

    def _write(name: str, lines: list[str], mode: str = "w") -> Path:
        path = tmp_path / name
        with open(path, mode, encoding="utf-8", newline="") as f:
            for line in lines:
                f.write(line if line.endswith("\n") else line + "\n")
        return path

    return _write
