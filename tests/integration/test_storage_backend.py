"""
Integration tests for SQLite storage backend.

Tests:
- Database initialization and table creation
- Record insertion with busy retry
- Inclusive window queries and ordering
- Purge operations
- Health check and factory
"""

import sqlite3
from datetime import timedelta
from unittest.mock import Mock

import pytest
from fakes import BASE_TIME, GROUP, make_record

from podlog_pipeline.monitoring import RetryConfig
from podlog_pipeline.storage import (
    QueryError,
    StorageBusyError,
    StorageError,
    StorageExhaustedError,
    get_backend,
    list_available_backends,
)
from podlog_pipeline.storage.sqlite_backend import SQLiteBackend

T1 = BASE_TIME
T2 = BASE_TIME + timedelta(minutes=10)


class TestSQLiteBackendInitialization:
    """Tests for backend initialization."""

    def test_backend_creates_database(self, sqlite_backend, temp_db_path):
        """Backend should create database file."""
        assert temp_db_path.exists()

    def test_backend_creates_tables(self, sqlite_backend):
        """Backend should create the logs table."""
        assert sqlite_backend.table_exists("logs")

    def test_backend_type_is_sqlite(self, sqlite_backend):
        """Backend type should be sqlite."""
        assert sqlite_backend.backend_type == "sqlite"

    def test_initialize_is_idempotent(self, sqlite_backend):
        sqlite_backend.initialize()
        assert sqlite_backend.table_exists("logs")

    def test_uses_wal_journal(self, sqlite_backend):
        result = sqlite_backend.query("PRAGMA journal_mode")
        assert result[0]["journal_mode"] == "wal"

    def test_close_is_idempotent(self, sqlite_backend):
        sqlite_backend.close()
        sqlite_backend.close()

    def test_creates_parent_directory(self, tmp_path):
        backend = SQLiteBackend(tmp_path / "nested" / "dir" / "logs.db")
        backend.initialize()
        backend.close()

        assert (tmp_path / "nested" / "dir" / "logs.db").exists()


class TestAddLog:
    """Tests for record insertion and busy retry."""

    @pytest.mark.asyncio
    async def test_add_log_persists_record(self, sqlite_backend):
        await sqlite_backend.add_log(make_record("stored"))

        assert sqlite_backend.get_table_row_count("logs") == 1
        row = sqlite_backend.query("SELECT * FROM logs")[0]
        assert row["log"] == "stored"
        assert row["loggroup"] == GROUP
        assert row["_ingestion_time"] is not None

    @pytest.mark.asyncio
    async def test_busy_twice_then_success(self, sqlite_backend):
        """Two busy failures then success: one row after three attempts."""
        real_insert = sqlite_backend._insert_log
        outcomes = [StorageBusyError("database is locked")] * 2

        def flaky_insert(record):
            if outcomes:
                raise outcomes.pop(0)
            real_insert(record)

        sqlite_backend._insert_log = Mock(side_effect=flaky_insert)

        await sqlite_backend.add_log(make_record())

        assert sqlite_backend._insert_log.call_count == 3
        assert sqlite_backend.get_table_row_count("logs") == 1

    @pytest.mark.asyncio
    async def test_non_busy_failure_not_retried(self, sqlite_backend):
        sqlite_backend.execute("DROP TABLE logs")
        sqlite_backend._insert_log = Mock(wraps=sqlite_backend._insert_log)

        with pytest.raises(QueryError, match="no such table"):
            await sqlite_backend.add_log(make_record())

        assert sqlite_backend._insert_log.call_count == 1

    @pytest.mark.asyncio
    async def test_busy_exhaustion_wraps_last_error(self, sqlite_backend):
        sqlite_backend._insert_log = Mock(
            side_effect=StorageBusyError("database is locked")
        )

        with pytest.raises(StorageExhaustedError) as exc_info:
            await sqlite_backend.add_log(make_record())

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, StorageBusyError)
        assert exc_info.value.__cause__ is exc_info.value.last_error
        assert sqlite_backend._insert_log.call_count == 3

    @pytest.mark.asyncio
    async def test_locked_database_surfaces_as_busy(self, temp_db_path):
        """A writer holding the lock in another connection exhausts the retries."""
        backend = SQLiteBackend(
            temp_db_path,
            timeout=0.01,
            retry_config=RetryConfig(base_delay_seconds=0.001),
        )
        backend.initialize()
        other = sqlite3.connect(str(temp_db_path), isolation_level=None)
        try:
            other.execute("BEGIN EXCLUSIVE")

            with pytest.raises(StorageExhaustedError) as exc_info:
                await backend.add_log(make_record())
            assert isinstance(exc_info.value.last_error, StorageBusyError)

            other.execute("ROLLBACK")
            await backend.add_log(make_record())
            assert backend.get_table_row_count("logs") == 1
        finally:
            other.close()
            backend.close()


class TestQueryLogs:
    """Tests for filtered, inclusive, ordered queries."""

    @pytest.mark.asyncio
    async def test_inclusive_bounds_and_ordering(self, sqlite_backend):
        t1_plus = T1 + timedelta(milliseconds=1)
        for message, at in [("t2", T2), ("t1", T1), ("t1+1ms", t1_plus)]:
            await sqlite_backend.add_log(make_record(message, event_time=at))

        records = sqlite_backend.query_logs("staging", GROUP, "", T1, T2)

        assert [r.message for r in records] == ["t1", "t1+1ms", "t2"]
        assert records[0].event_time == T1

    @pytest.mark.asyncio
    async def test_window_excludes_outside_records(self, sqlite_backend):
        await sqlite_backend.add_log(make_record("before", event_time=T1 - timedelta(milliseconds=1)))
        await sqlite_backend.add_log(make_record("inside", event_time=T1))
        await sqlite_backend.add_log(make_record("after", event_time=T2 + timedelta(milliseconds=1)))

        records = sqlite_backend.query_logs("staging", GROUP, "", T1, T2)

        assert [r.message for r in records] == ["inside"]

    @pytest.mark.asyncio
    async def test_filters_profile_group_and_pod(self, sqlite_backend):
        await sqlite_backend.add_log(make_record("match", pod="api-7d9f"))
        await sqlite_backend.add_log(make_record("other pod", pod="worker-1"))
        await sqlite_backend.add_log(make_record("other profile", profile="prod"))
        await sqlite_backend.add_log(make_record("other group", group="/aws/other"))

        records = sqlite_backend.query_logs("staging", GROUP, "api", T1, T2)

        assert [r.message for r in records] == ["match"]

    @pytest.mark.asyncio
    async def test_pod_wildcards_match_literally(self, sqlite_backend):
        await sqlite_backend.add_log(make_record("underscore", pod="api_1"))
        await sqlite_backend.add_log(make_record("letter", pod="apix1"))

        records = sqlite_backend.query_logs("staging", GROUP, "api_", T1, T2)

        assert [r.message for r in records] == ["underscore"]

    @pytest.mark.asyncio
    async def test_round_trips_record(self, sqlite_backend):
        original = make_record("full", event_time=T1 + timedelta(milliseconds=123))
        await sqlite_backend.add_log(original)

        [record] = sqlite_backend.query_logs("staging", GROUP, "", T1, T2)

        assert record == original

    def test_empty_result(self, sqlite_backend):
        assert sqlite_backend.query_logs("staging", GROUP, "", T1, T2) == []


class TestPurge:
    """Tests for purge operations."""

    @pytest.mark.asyncio
    async def test_purge_all(self, sqlite_backend_with_data):
        backend, rows = sqlite_backend_with_data

        assert backend.purge_all() == rows
        assert backend.get_table_row_count("logs") == 0

    @pytest.mark.asyncio
    async def test_purge_window_is_scoped(self, sqlite_backend_with_data):
        """Only the matching pod's records inside the window are deleted."""
        backend, rows = sqlite_backend_with_data
        begin = BASE_TIME
        end = BASE_TIME + timedelta(seconds=9)

        deleted = backend.purge_window("staging", GROUP, "api", begin, end)

        # api pods at even seconds 0..8
        assert deleted == 5
        assert backend.get_table_row_count("logs") == rows - 5
        assert backend.query_logs("staging", GROUP, "api", begin, end) == []

    @pytest.mark.asyncio
    async def test_purge_pod_logs(self, sqlite_backend_with_data):
        backend, rows = sqlite_backend_with_data

        deleted = backend.purge_pod_logs("staging", GROUP, "worker")

        assert deleted == rows // 2
        remaining = backend.query_logs(
            "staging", GROUP, "", BASE_TIME, BASE_TIME + timedelta(hours=1)
        )
        assert all(r.pod.startswith("api") for r in remaining)


class TestHealthAndFactory:
    """Tests for health check and backend factory."""

    @pytest.mark.asyncio
    async def test_health_check_reports_rows(self, sqlite_backend_with_data):
        backend, rows = sqlite_backend_with_data

        health = backend.health_check()

        assert health["healthy"] is True
        assert health["details"]["log_rows"] == rows

    def test_unknown_table_row_count_raises(self, sqlite_backend):
        with pytest.raises(StorageError):
            sqlite_backend.get_table_row_count("sessions")

    def test_factory_rejects_unknown_backend(self):
        with pytest.raises(StorageError, match="Unknown storage backend"):
            get_backend("postgres")

    def test_factory_lists_sqlite(self):
        assert "sqlite" in list_available_backends()

    def test_factory_defaults_from_settings(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PODLOGS_DB_PATH", str(tmp_path / "from-env.db"))

        backend = get_backend()

        assert isinstance(backend, SQLiteBackend)
        assert backend.db_path == tmp_path / "from-env.db"
        assert backend.retry_config.base_delay_seconds == pytest.approx(0.010)
