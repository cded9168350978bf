"""
Abstract base class for storage backends.

Provides a unified interface for persisting decoded access-log records
and serving the queries the reporting layer runs against them.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from ..ingestion.base import NormalizedRecord


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    All storage implementations must implement this interface so the
    ingestion core and the reporting layer stay backend-agnostic.
    """

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Return the backend type identifier (e.g., 'sqlite')."""
        pass

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the storage backend.

        Creates tables and indexes if they don't exist.
        Should be idempotent - safe to call multiple times.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Close connections and release resources.

        Should be called when the backend is no longer needed.
        """
        pass

    @abstractmethod
    def batch_insert(
        self, site_id: str, records: Sequence["NormalizedRecord"]
    ) -> int:
        """
        Insert a batch of decoded records for one site.

        The call blocks until the batch is durably accepted. Duplicate
        records are accepted as-is (delivery is at-least-once).

        Args:
            site_id: Identifier of the site the records belong to
            records: Decoded records

        Returns:
            Number of records inserted.

        Raises:
            StorageError: If insertion fails.
        """
        pass

    @abstractmethod
    def cleanup_expired(self, retention_days: int) -> int:
        """
        Delete stored records older than the retention window.

        Args:
            retention_days: Records with a timestamp earlier than
                            now - retention_days are removed

        Returns:
            Number of rows deleted.

        Raises:
            StorageError: If deletion fails.
        """
        pass

    @abstractmethod
    def query(
        self,
        sql: str,
        params: Optional[dict] = None,
    ) -> list[dict]:
        """
        Execute a query and return results as a list of dictionaries.

        Args:
            sql: SQL query string (may contain :param_name placeholders)
            params: Optional dictionary of query parameters

        Returns:
            List of dictionaries, one per row.

        Raises:
            StorageError: If query execution fails.
        """
        pass

    @abstractmethod
    def execute(
        self,
        sql: str,
        params: Optional[dict] = None,
    ) -> int:
        """
        Execute a statement (INSERT, UPDATE, DELETE, DDL).

        Returns:
            Number of affected rows (0 for DDL statements).

        Raises:
            StorageError: If execution fails.
        """
        pass

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """
        Check if a table exists in the storage backend.

        Args:
            table_name: Name of the table to check

        Returns:
            True if table exists, False otherwise.
        """
        pass

    @abstractmethod
    def get_table_row_count(self, table_name: str) -> int:
        """
        Get the total row count for a table.

        Raises:
            StorageError: If table doesn't exist or query fails.
        """
        pass

    def health_check(self) -> dict:
        """
        Perform a health check on the storage backend.

        Returns:
            Dictionary with health status information:
            {
                "healthy": bool,
                "backend_type": str,
                "message": str,
                "details": dict
            }
        """
        try:
            self.query("SELECT 1 as test")
            return {
                "healthy": True,
                "backend_type": self.backend_type,
                "message": "Backend is operational",
                "details": {},
            }
        except StorageError as e:
            return {
                "healthy": False,
                "backend_type": self.backend_type,
                "message": f"Health check failed: {str(e)}",
                "details": {"error": str(e)},
            }

    def __enter__(self) -> "StorageBackend":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - ensures resources are released."""
        self.close()


class StorageError(Exception):
    """Base exception for storage backend errors."""

    pass


class StorageConnectionError(StorageError):
    """Raised when connection to storage backend fails."""

    pass


class QueryError(StorageError):
    """Raised when a query fails to execute."""

    pass


class SchemaError(StorageError):
    """Raised when there's a schema-related error."""

    pass
