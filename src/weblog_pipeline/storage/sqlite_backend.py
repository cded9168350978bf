"""
SQLite storage backend implementation.

Stores decoded access-log records for every monitored site in a single
table keyed by site identifier.
"""

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..config.constants import TABLE_ACCESS_LOGS
from .base import QueryError, SchemaError, StorageBackend, StorageConnectionError

if TYPE_CHECKING:
    from ..ingestion.base import NormalizedRecord

logger = logging.getLogger(__name__)


# =============================================================================
# SQLite Schema Definitions
# =============================================================================

ACCESS_LOGS_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE_ACCESS_LOGS} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    site_id TEXT NOT NULL,
    ip TEXT NOT NULL,
    pageview_flag INTEGER NOT NULL,
    timestamp INTEGER NOT NULL,  -- epoch seconds (UTC)
    request_time TEXT NOT NULL,  -- ISO8601, original offset preserved
    method TEXT,
    url TEXT,
    status INTEGER NOT NULL,
    bytes_sent INTEGER NOT NULL,
    referer TEXT,
    user_browser TEXT,
    user_os TEXT,
    user_device TEXT,
    domestic_location TEXT,
    global_location TEXT,
    _ingestion_time TEXT NOT NULL
)
"""

# Index definitions for query performance
INDEX_DEFINITIONS = [
    f"CREATE INDEX IF NOT EXISTS idx_logs_site_time ON {TABLE_ACCESS_LOGS}(site_id, timestamp)",
    f"CREATE INDEX IF NOT EXISTS idx_logs_time ON {TABLE_ACCESS_LOGS}(timestamp)",
]

INSERT_SQL = f"""
    INSERT INTO {TABLE_ACCESS_LOGS} (
        site_id, ip, pageview_flag, timestamp, request_time, method, url,
        status, bytes_sent, referer, user_browser, user_os, user_device,
        domestic_location, global_location, _ingestion_time
    ) VALUES (
        :site_id, :ip, :pageview_flag, :timestamp, :request_time, :method, :url,
        :status, :bytes_sent, :referer, :user_browser, :user_os, :user_device,
        :domestic_location, :global_location, :_ingestion_time
    )
"""


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _to_sqlite_epoch(value: datetime) -> int:
    """Convert datetime to epoch seconds (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def _to_sqlite_bool(value: Any) -> Optional[int]:
    """Convert boolean to INTEGER (0/1) for SQLite."""
    if value is None:
        return None
    return 1 if value else 0


def from_sqlite_bool(value: Any) -> Optional[bool]:
    """Convert SQLite INTEGER to Python bool."""
    if value is None:
        return None
    return bool(value)


# =============================================================================
# SQLite Backend Implementation
# =============================================================================


class SQLiteBackend(StorageBackend):
    """
    SQLite storage backend.

    The connection is shared between the scheduler thread and HTTP worker
    threads, so every statement runs under a re-entrant lock.
    """

    def __init__(
        self,
        db_path: Path | str = "data/weblog.db",
        *,
        check_same_thread: bool = False,
        timeout: float = 30.0,
    ):
        """
        Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file
            check_same_thread: SQLite check_same_thread parameter
            timeout: Connection timeout in seconds
        """
        self.db_path = Path(db_path)
        self._check_same_thread = check_same_thread
        self._timeout = timeout
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> str:
        """Return backend type identifier."""
        return "sqlite"

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=self._check_same_thread,
                    timeout=self._timeout,
                )
                self._connection.row_factory = sqlite3.Row
                self._connection.execute("PRAGMA journal_mode = WAL")
                logger.debug(f"Connected to SQLite database: {self.db_path}")
            except sqlite3.Error as e:
                raise StorageConnectionError(
                    f"Failed to connect to SQLite database: {e}"
                ) from e
        return self._connection

    @contextmanager
    def _cursor(self):
        """Context manager for database cursor with automatic commit/rollback."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise QueryError(f"SQLite query failed: {e}") from e
            except (OverflowError, ValueError) as e:
                # Raised by parameter binding, e.g. integers outside int64
                conn.rollback()
                raise QueryError(f"SQLite rejected query parameters: {e}") from e
            finally:
                cursor.close()

    def initialize(self) -> None:
        """
        Initialize database with all required tables and indexes.

        Safe to call multiple times - uses IF NOT EXISTS.
        """
        logger.info(f"Initializing SQLite database: {self.db_path}")

        with self._cursor() as cursor:
            cursor.execute(ACCESS_LOGS_SCHEMA)
            for index_sql in INDEX_DEFINITIONS:
                cursor.execute(index_sql)

        logger.info("SQLite database initialized successfully")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.debug("SQLite connection closed")

    def batch_insert(
        self, site_id: str, records: Sequence["NormalizedRecord"]
    ) -> int:
        """
        Insert decoded records for a site into access_logs.

        Args:
            site_id: Site identifier
            records: Decoded records

        Returns:
            Number of records inserted
        """
        if not records:
            return 0

        now = datetime.now().astimezone().isoformat()
        converted_records = [
            {
                "site_id": site_id,
                "ip": record.ip,
                "pageview_flag": _to_sqlite_bool(record.pageview_flag),
                "timestamp": _to_sqlite_epoch(record.timestamp),
                "request_time": record.timestamp.isoformat(),
                "method": record.method,
                "url": record.url,
                "status": record.status,
                "bytes_sent": record.bytes_sent,
                "referer": record.referer,
                "user_browser": record.user_browser,
                "user_os": record.user_os,
                "user_device": record.user_device,
                "domestic_location": record.domestic_location,
                "global_location": record.global_location,
                "_ingestion_time": now,
            }
            for record in records
        ]

        with self._cursor() as cursor:
            cursor.executemany(INSERT_SQL, converted_records)
            # executemany may not set rowcount correctly; use len instead
            return len(converted_records)

    def cleanup_expired(self, retention_days: int) -> int:
        """Delete rows older than the retention window."""
        cutoff = int(time.time()) - retention_days * 86400
        deleted = self.execute(
            f"DELETE FROM {TABLE_ACCESS_LOGS} WHERE timestamp < :cutoff",
            {"cutoff": cutoff},
        )
        logger.info(
            f"Removed {deleted:,} rows older than {retention_days} days from {TABLE_ACCESS_LOGS}"
        )
        return deleted

    def query(
        self,
        sql: str,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """
        Execute query and return results as list of dictionaries.

        Args:
            sql: SQL query (use :param_name for parameters)
            params: Optional parameter dictionary

        Returns:
            List of result rows as dictionaries
        """
        with self._cursor() as cursor:
            cursor.execute(sql, params or {})
            columns = [desc[0] for desc in cursor.description or []]
            rows = cursor.fetchall()
            return [dict(zip(columns, row)) for row in rows]

    def execute(
        self,
        sql: str,
        params: Optional[dict] = None,
    ) -> int:
        """Execute statement (INSERT, UPDATE, DELETE, DDL)."""
        with self._cursor() as cursor:
            cursor.execute(sql, params or {})
            return cursor.rowcount

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        sql = """
            SELECT name FROM sqlite_master
            WHERE type='table' AND name=:table_name
        """
        result = self.query(sql, {"table_name": table_name})
        return len(result) > 0

    def get_table_row_count(self, table_name: str) -> int:
        """Get total row count for a table."""
        if not self.table_exists(table_name):
            raise SchemaError(f"Table '{table_name}' does not exist")

        # Use f-string here - table_name is validated by table_exists
        sql = f"SELECT COUNT(*) as count FROM {table_name}"
        result = self.query(sql)
        return result[0]["count"] if result else 0

    def health_check(self) -> dict:
        """Extended health check with SQLite-specific info."""
        base_check = super().health_check()

        if base_check["healthy"]:
            db_size = self.db_path.stat().st_size if self.db_path.exists() else 0
            base_check["details"] = {
                "db_path": str(self.db_path),
                "db_size_bytes": db_size,
                "row_count": (
                    self.get_table_row_count(TABLE_ACCESS_LOGS)
                    if self.table_exists(TABLE_ACCESS_LOGS)
                    else 0
                ),
            }

        return base_check
