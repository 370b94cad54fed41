"""
Storage abstraction layer for synced container logs.

Provides a unified interface for persisting log records using SQLite.

Usage:
    from podlog_pipeline.storage import get_backend

    # Get backend from configuration
    backend = get_backend()

    # Or explicitly specify backend
    backend = get_backend('sqlite', db_path='data/podlogs.db')

    # Use as context manager
    with get_backend() as backend:
        backend.initialize()
        records = backend.query_logs(profile, group, "api", begin, end)
"""

from .base import (
    QueryError,
    RecordSink,
    SchemaError,
    StorageBusyError,
    StorageConnectionError,
    StorageError,
    StorageExhaustedError,
)
from .factory import (
    get_backend,
    list_available_backends,
    register_backend,
)

__all__ = [
    # Base classes and exceptions
    "RecordSink",
    "StorageError",
    "StorageConnectionError",
    "QueryError",
    "SchemaError",
    "StorageBusyError",
    "StorageExhaustedError",
    # Factory functions
    "get_backend",
    "register_backend",
    "list_available_backends",
]
