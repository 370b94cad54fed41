"""
SQLite storage backend implementation.

Provides local SQLite storage for synced container logs. SQLite permits a
single writer at a time: this backend serializes its own connection with a
lock, and contention with other processes surfaces as ``StorageBusyError``
which is retried with a bounded exponential backoff.
"""

import asyncio
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..config.constants import DEFAULT_SQLITE_TIMEOUT_SECONDS, TABLE_LOGS
from ..monitoring.retry_handler import (
    ErrorCategory,
    ErrorClassifier,
    RetryConfig,
    RetryManager,
    RetryResult,
)
from ..schemas import (
    LOGS_INDEXES,
    LOGS_SQLITE_SCHEMA,
    LogRecord,
    from_sqlite_timestamp,
    to_sqlite_timestamp,
)
from .base import (
    QueryError,
    RecordSink,
    SchemaError,
    StorageBusyError,
    StorageConnectionError,
    StorageExhaustedError,
)

logger = logging.getLogger(__name__)


# Valid table names in our schema
VALID_TABLES = frozenset([TABLE_LOGS])

_FILTER_CLAUSE = """
    profile = :profile
    AND loggroup = :loggroup
    AND pod_name LIKE :pod_pattern ESCAPE '\\'
"""

_WINDOW_CLAUSE = """
    AND event_time >= :begin
    AND event_time <= :end
"""


def _like_pattern(substring: str) -> str:
    """Build a LIKE pattern matching ``substring`` literally anywhere."""
    escaped = (
        substring.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    return f"%{escaped}%"


def _map_sqlite_error(error: sqlite3.Error) -> QueryError:
    """Translate a sqlite3 error into a storage exception."""
    if ErrorClassifier.classify(error) == ErrorCategory.BUSY:
        return StorageBusyError(f"SQLite database is busy: {error}")
    return QueryError(f"SQLite query failed: {error}")


def _row_to_record(row: dict[str, Any]) -> LogRecord:
    return LogRecord(
        profile=row["profile"],
        group=row["loggroup"],
        pod=row["pod_name"],
        container=row["container_name"],
        namespace=row["namespace_name"],
        event_time=from_sqlite_timestamp(row["event_time"]),
        message=row["log"],
    )


# =============================================================================
# SQLite Backend Implementation
# =============================================================================


class SQLiteBackend(RecordSink):
    """
    SQLite record sink for synced container logs.

    One connection is shared by every caller; access to it is serialized by
    an internal lock so it can be used from ``asyncio.to_thread`` workers.
    """

    def __init__(
        self,
        db_path: Path | str = "podlogs.db",
        *,
        timeout: float = DEFAULT_SQLITE_TIMEOUT_SECONDS,
        retry_config: Optional[RetryConfig] = None,
    ):
        """
        Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file
            timeout: Seconds SQLite waits on a locked database before
                     reporting it busy
            retry_config: Busy retry policy (3 attempts, 10ms doubling
                          backoff by default)
        """
        self.db_path = Path(db_path)
        self._timeout = timeout
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._retry = RetryManager(config=retry_config or RetryConfig())

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> str:
        """Return backend type identifier."""
        return "sqlite"

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry.config

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection. Caller must hold the lock."""
        if self._connection is None:
            try:
                connection = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=False,
                    timeout=self._timeout,
                )
                connection.row_factory = sqlite3.Row
                connection.execute("PRAGMA journal_mode = WAL")
                connection.execute("PRAGMA synchronous = NORMAL")
            except sqlite3.Error as e:
                raise StorageConnectionError(
                    f"Failed to connect to SQLite database: {e}"
                ) from e
            self._connection = connection
            logger.debug(f"Connected to SQLite database: {self.db_path}")
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
                raise _map_sqlite_error(e) from e
            finally:
                cursor.close()

    def _raise_for_result(self, result: RetryResult, action: str) -> Any:
        """Return the result value, or raise the failure it recorded."""
        if result.success:
            return result.result
        if result.exhausted:
            raise StorageExhaustedError(
                f"Failed to {action}", result.attempts, result.last_error
            ) from result.last_error
        raise result.last_error

    def initialize(self) -> None:
        """
        Initialize database with the logs table and its indexes.

        Safe to call multiple times - uses IF NOT EXISTS.
        """
        logger.info(f"Initializing SQLite database: {self.db_path}")

        with self._cursor() as cursor:
            cursor.execute(LOGS_SQLITE_SCHEMA)
            for index_sql in LOGS_INDEXES:
                cursor.execute(index_sql)

        logger.info("SQLite database initialized successfully")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.debug("SQLite connection closed")

    # =========================================================================
    # Writes
    # =========================================================================

    def _insert_log(self, record: LogRecord) -> None:
        """Insert one record. Blocking; runs in a worker thread."""
        sql = """
            INSERT INTO logs (
                event_time, profile, loggroup, pod_name, container_name,
                namespace_name, log, _ingestion_time
            ) VALUES (
                :event_time, :profile, :loggroup, :pod_name, :container_name,
                :namespace_name, :log, :_ingestion_time
            )
        """
        params = {
            "event_time": to_sqlite_timestamp(record.event_time),
            "profile": record.profile,
            "loggroup": record.group,
            "pod_name": record.pod,
            "container_name": record.container,
            "namespace_name": record.namespace,
            "log": record.message,
            "_ingestion_time": datetime.now().astimezone().isoformat(),
        }
        with self._cursor() as cursor:
            cursor.execute(sql, params)

    async def _write_log(self, record: LogRecord) -> None:
        await asyncio.to_thread(self._insert_log, record)

    async def add_log(self, record: LogRecord) -> None:
        """
        Append one record, retrying while the database is busy.

        Raises:
            StorageExhaustedError: If every attempt hit a locked database
            StorageError: Any other failure, on the first attempt
        """
        result = await self._retry.execute_with_retry_async(self._write_log, record)
        self._raise_for_result(result, "insert log")

    def execute(
        self,
        sql: str,
        params: Optional[dict] = None,
    ) -> int:
        """
        Execute statement (INSERT, UPDATE, DELETE, DDL).

        Returns:
            Number of affected rows
        """
        with self._cursor() as cursor:
            cursor.execute(sql, params or {})
            return cursor.rowcount

    def _execute_with_retry(self, sql: str, params: dict, action: str) -> int:
        result = self._retry.execute_with_retry(self.execute, sql, params)
        return self._raise_for_result(result, action)

    def purge_all(self) -> int:
        """Delete every stored record."""
        deleted = self._execute_with_retry("DELETE FROM logs", {}, "purge all logs")
        logger.info(f"Purged {deleted:,} log records")
        return deleted

    def purge_window(
        self,
        profile: str,
        group: str,
        pod_substring: str,
        begin: datetime,
        end: datetime,
    ) -> int:
        """Delete matching records between begin and end (inclusive)."""
        sql = f"DELETE FROM logs WHERE {_FILTER_CLAUSE} {_WINDOW_CLAUSE}"
        params = {
            "profile": profile,
            "loggroup": group,
            "pod_pattern": _like_pattern(pod_substring),
            "begin": to_sqlite_timestamp(begin),
            "end": to_sqlite_timestamp(end),
        }
        deleted = self._execute_with_retry(sql, params, "purge specific period")
        logger.info(
            f"Purged {deleted:,} records of {group} ({profile or 'default'}) "
            f"between {begin.isoformat()} and {end.isoformat()}"
        )
        return deleted

    def purge_pod_logs(self, profile: str, group: str, pod_substring: str) -> int:
        """Delete every record of matching pods."""
        sql = f"DELETE FROM logs WHERE {_FILTER_CLAUSE}"
        params = {
            "profile": profile,
            "loggroup": group,
            "pod_pattern": _like_pattern(pod_substring),
        }
        deleted = self._execute_with_retry(sql, params, "purge pod logs")
        logger.info(f"Purged {deleted:,} records of pods matching '{pod_substring}'")
        return deleted

    # =========================================================================
    # Reads
    # =========================================================================

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

    def query_logs(
        self,
        profile: str,
        group: str,
        pod_substring: str,
        begin: datetime,
        end: datetime,
    ) -> list[LogRecord]:
        """Return matching records ordered by event time, oldest first."""
        sql = f"""
            SELECT event_time, profile, loggroup, pod_name, container_name,
                   namespace_name, log
            FROM logs
            WHERE {_FILTER_CLAUSE} {_WINDOW_CLAUSE}
            ORDER BY event_time ASC, id ASC
        """
        params = {
            "profile": profile,
            "loggroup": group,
            "pod_pattern": _like_pattern(pod_substring),
            "begin": to_sqlite_timestamp(begin),
            "end": to_sqlite_timestamp(end),
        }
        result = self._retry.execute_with_retry(self.query, sql, params)
        rows = self._raise_for_result(result, "get logs")
        return [_row_to_record(row) for row in rows]

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
        if table_name not in VALID_TABLES or not self.table_exists(table_name):
            raise SchemaError(f"Table '{table_name}' does not exist")

        # table_name is validated against VALID_TABLES
        result = self.query(f"SELECT COUNT(*) as count FROM {table_name}")
        return result[0]["count"] if result else 0

    def health_check(self) -> dict:
        """Extended health check with SQLite-specific info."""
        base_check = super().health_check()

        if base_check["healthy"]:
            db_size = self.db_path.stat().st_size if self.db_path.exists() else 0
            base_check["details"] = {
                "db_path": str(self.db_path),
                "db_size_bytes": db_size,
                "log_rows": (
                    self.get_table_row_count("logs")
                    if self.table_exists("logs")
                    else 0
                ),
            }

        return base_check
