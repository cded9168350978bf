"""
Persistent scan state for incremental ingestion.

Records, per site and per file, how far each log file has been read so
the next pass resumes where the last one stopped. The state file looks
like:

    {
      "<site_id>": {
        "files": {
          "/var/log/nginx/access.log": {"last_offset": 5120, "last_size": 5120}
        }
      }
    }

Deleting the state file makes the next pass rescan every file from the
start.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


@dataclass
class FileState:
    """Read position of one log file."""

    last_offset: int = 0
    last_size: int = 0

    def to_dict(self) -> dict:
        return {"last_offset": self.last_offset, "last_size": self.last_size}

    @classmethod
    def from_dict(cls, data: dict) -> "FileState":
        """
        Build from a serialized entry.

        Raises:
            ValueError: If either field is missing, not an integer or negative
        """
        values = {}
        for name in ("last_offset", "last_size"):
            value = data.get(name)
            # bool is an int subclass; reject it explicitly
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"invalid {name}: {value!r}")
            values[name] = value
        return cls(**values)


@dataclass
class ScanState:
    """Per-site map of file path to FileState."""

    files: dict[str, FileState] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"files": {path: fs.to_dict() for path, fs in self.files.items()}}

    @classmethod
    def from_dict(cls, data: dict) -> "ScanState":
        """Build from a serialized site entry, dropping invalid file entries."""
        files = {}
        raw_files = data.get("files") or {}
        if not isinstance(raw_files, dict):
            raise ValueError("'files' must be an object")
        for path, raw in raw_files.items():
            if not isinstance(raw, dict):
                logger.warning(f"Dropping malformed scan state entry for {path}")
                continue
            try:
                files[path] = FileState.from_dict(raw)
            except ValueError as e:
                logger.warning(f"Dropping scan state entry for {path}: {e}")
        return cls(files=files)


class ScanStateStore:
    """
    JSON-file backed store of ScanState per site.

    The whole map is held in memory and written back in full by save().
    A missing, unreadable or corrupt file loads as empty state, which
    means every file is rescanned from offset 0.

    Usage:
        store = ScanStateStore(data_dir / "nginx_scan_state.json")
        store.load()
        offset = store.resolve_start_offset(site_id, path, current_size)
        ...
        store.update_file_state(site_id, path, new_offset, current_size)
        store.save()
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._states: dict[str, ScanState] = {}
        self._lock = threading.Lock()

    @property
    def states(self) -> dict[str, ScanState]:
        """In-memory state map (live view)."""
        return self._states

    def load(self) -> dict[str, ScanState]:
        """
        Load state from disk, replacing the in-memory map.

        Returns:
            The loaded state map (empty on a missing or unusable file)
        """
        with self._lock:
            self._states = self._read()
            return self._states

    def _read(self) -> dict[str, ScanState]:
        if not self.path.exists():
            logger.info(f"No scan state at {self.path}, starting from scratch")
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read scan state {self.path}: {e}")
            return {}

        if not isinstance(raw, dict):
            logger.error(f"Scan state {self.path} is not a JSON object, ignoring it")
            return {}

        states = {}
        for site_id, site_data in raw.items():
            if not isinstance(site_data, dict):
                logger.error(f"Ignoring malformed scan state for site {site_id}")
                continue
            try:
                states[site_id] = ScanState.from_dict(site_data)
            except ValueError as e:
                logger.error(f"Ignoring scan state for site {site_id}: {e}")

        logger.debug(f"Loaded scan state for {len(states)} site(s) from {self.path}")
        return states

    def save(self, states: Optional[dict[str, ScanState]] = None) -> bool:
        """
        Write the full state map to disk atomically.

        Args:
            states: Map to persist; defaults to the in-memory map. When
                given, it also replaces the in-memory map.

        Returns:
            True if the file was written, False on an I/O error (logged)
        """
        with self._lock:
            if states is not None:
                self._states = states
            payload = {
                site_id: state.to_dict() for site_id, state in self._states.items()
            }

            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with tempfile.NamedTemporaryFile(
                    "w",
                    encoding="utf-8",
                    dir=str(self.path.parent),
                    prefix=f".{self.path.name}.",
                    delete=False,
                ) as handle:
                    json.dump(payload, handle, indent=2, sort_keys=True)
                    handle.flush()
                    os.fsync(handle.fileno())
                    temp_name = handle.name
                os.replace(temp_name, self.path)
            except OSError as e:
                logger.error(f"Failed to save scan state {self.path}: {e}")
                return False

        logger.debug(f"Saved scan state for {len(payload)} site(s) to {self.path}")
        return True

    def get_file_state(self, site_id: str, path: str) -> Optional[FileState]:
        """Return the recorded state of a file, or None if never scanned."""
        with self._lock:
            state = self._states.get(site_id)
            if state is None:
                return None
            return state.files.get(path)

    def resolve_start_offset(self, site_id: str, path: str, current_size: int) -> int:
        """
        Decide where to resume reading a file.

        Returns 0 for an unknown file, and 0 when the file shrank since the
        last pass (rotated or truncated). Otherwise the recorded offset.
        """
        file_state = self.get_file_state(site_id, path)
        if file_state is None:
            return 0

        if file_state.last_size > current_size:
            logger.info(
                f"Log file {path} shrank from {file_state.last_size} to "
                f"{current_size} bytes, assuming rotation and rescanning"
            )
            return 0

        if file_state.last_offset > current_size:
            logger.warning(
                f"Recorded offset {file_state.last_offset} for {path} is past "
                f"the end of the file ({current_size} bytes), rescanning"
            )
            return 0

        return file_state.last_offset

    def update_file_state(
        self, site_id: str, path: str, offset: int, size: int
    ) -> None:
        """Record the read position of a file after a scan."""
        with self._lock:
            state = self._states.setdefault(site_id, ScanState())
            state.files[path] = FileState(last_offset=offset, last_size=size)
