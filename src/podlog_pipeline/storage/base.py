"""
Abstract base class for log record sinks.

Provides a unified interface for persisting synced log records and reading
them back, so the sync engine does not depend on a concrete database.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..schemas import LogRecord


class RecordSink(ABC):
    """
    Abstract base class for log record storage.

    Implementations must serialize concurrent writers internally or surface
    lock contention as ``StorageBusyError`` so callers can tell it apart from
    fatal failures.
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

        Safe to call more than once.
        """
        pass

    @abstractmethod
    async def add_log(self, record: LogRecord) -> None:
        """
        Durably append one log record.

        Lock contention is retried with a bounded exponential backoff.

        Raises:
            StorageExhaustedError: If every attempt failed with a busy error.
            StorageError: On any other failure (not retried).
        """
        pass

    @abstractmethod
    def query_logs(
        self,
        profile: str,
        group: str,
        pod_substring: str,
        begin: datetime,
        end: datetime,
    ) -> list[LogRecord]:
        """
        Return records matching the filter, ordered by event time.

        Args:
            profile: Exact profile name
            group: Exact log group name
            pod_substring: Substring of the pod name ('' matches all)
            begin: Start of the window (inclusive)
            end: End of the window (inclusive)
        """
        pass

    @abstractmethod
    def purge_all(self) -> int:
        """Delete every record. Returns number of rows deleted."""
        pass

    @abstractmethod
    def purge_window(
        self,
        profile: str,
        group: str,
        pod_substring: str,
        begin: datetime,
        end: datetime,
    ) -> int:
        """Delete records matching the filter within the window (inclusive)."""
        pass

    @abstractmethod
    def purge_pod_logs(self, profile: str, group: str, pod_substring: str) -> int:
        """Delete all records of matching pods, regardless of time."""
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
            sql: SQL query string (use :param_name for parameters)
            params: Optional dictionary of query parameters

        Raises:
            StorageError: If query execution fails.
        """
        pass

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the storage backend."""
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

    def __enter__(self) -> "RecordSink":
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


class StorageBusyError(QueryError):
    """Raised when the database is locked by another writer."""

    pass


class StorageExhaustedError(StorageError):
    """
    Raised when a busy operation kept failing after every retry.

    Attributes:
        attempts: Number of attempts made
        last_error: The failure of the final attempt
    """

    def __init__(self, message: str, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{message} after {attempts} attempts: {last_error}")
