"""
Storage abstraction layer for decoded access-log records.

Usage:
    from weblog_pipeline.storage import get_backend

    # Explicitly specify backend
    backend = get_backend('sqlite', db_path='data/weblog.db')

    # Use as context manager
    with get_backend('sqlite', db_path='data/weblog.db') as backend:
        backend.initialize()
        backend.batch_insert(site_id, records)
"""

from .base import (
    QueryError,
    SchemaError,
    StorageBackend,
    StorageConnectionError,
    StorageError,
)
from .factory import BACKENDS, get_backend
from .sqlite_backend import SQLiteBackend, from_sqlite_bool

__all__ = [
    # Base classes and exceptions
    "StorageBackend",
    "StorageError",
    "StorageConnectionError",
    "QueryError",
    "SchemaError",
    # Implementations
    "SQLiteBackend",
    "from_sqlite_bool",
    # Factory functions
    "get_backend",
    "BACKENDS",
]
