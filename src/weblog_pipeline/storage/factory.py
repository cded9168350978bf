"""
Storage backend factory.

Maps the `storage.backend` setting to a StorageBackend class.
"""

import logging

from .base import StorageBackend, StorageError
from .sqlite_backend import SQLiteBackend

logger = logging.getLogger(__name__)

BACKENDS: dict[str, type[StorageBackend]] = {
    "sqlite": SQLiteBackend,
}


def get_backend(backend_type: str, **kwargs) -> StorageBackend:
    """
    Build a storage backend (not yet initialized).

    Args:
        backend_type: Backend identifier from the settings ('sqlite')
        **kwargs: Backend constructor arguments (SQLite: db_path)

    Raises:
        StorageError: If the type is unknown or construction fails
    """
    backend_class = BACKENDS.get(backend_type.lower())
    if backend_class is None:
        raise StorageError(
            f"Unknown storage backend: '{backend_type}'. "
            f"Available backends: {', '.join(sorted(BACKENDS))}"
        )

    try:
        backend = backend_class(**kwargs)
    except (OSError, TypeError) as e:
        raise StorageError(f"Failed to create {backend_type} backend: {e}") from e

    logger.info(f"Created {backend_type} storage backend")
    return backend
