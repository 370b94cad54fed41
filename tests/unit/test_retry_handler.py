"""
Unit tests for busy-error classification and retry with backoff.
"""

import asyncio
import sqlite3

import pytest

from podlog_pipeline.monitoring import (
    ErrorCategory,
    ErrorClassifier,
    RetryConfig,
    RetryManager,
)
from podlog_pipeline.storage import QueryError, StorageBusyError


def busy_error() -> StorageBusyError:
    try:
        raise sqlite3.OperationalError("database is locked")
    except sqlite3.OperationalError as e:
        try:
            raise StorageBusyError(f"SQLite database is busy: {e}") from e
        except StorageBusyError as wrapped:
            return wrapped


class TestRetryConfig:
    """Tests for backoff delays."""

    def test_delays_double_from_base(self):
        config = RetryConfig()
        assert config.calculate_delay(0) == pytest.approx(0.010)
        assert config.calculate_delay(1) == pytest.approx(0.020)
        assert config.calculate_delay(2) == pytest.approx(0.040)

    def test_delay_capped(self):
        config = RetryConfig(base_delay_seconds=1.0, max_delay_seconds=1.5)
        assert config.calculate_delay(5) == 1.5


class TestErrorClassifier:
    """Tests for busy vs permanent classification."""

    def test_storage_busy_error_is_busy(self):
        assert ErrorClassifier.classify(StorageBusyError("x")) == ErrorCategory.BUSY

    def test_locked_message_is_busy(self):
        error = sqlite3.OperationalError("database is locked")
        assert ErrorClassifier.classify(error) == ErrorCategory.BUSY

    def test_busy_cause_is_busy(self):
        """A generic wrapper around a locked error is still busy."""
        try:
            try:
                raise sqlite3.OperationalError("database table is locked: logs")
            except sqlite3.OperationalError as e:
                raise QueryError("insert failed") from e
        except QueryError as wrapped:
            assert ErrorClassifier.classify(wrapped) == ErrorCategory.BUSY

    @pytest.mark.parametrize(
        "error",
        [
            QueryError("no such table: logs"),
            sqlite3.IntegrityError("NOT NULL constraint failed"),
            ValueError("bad value"),
        ],
    )
    def test_other_errors_are_permanent(self, error):
        assert ErrorClassifier.classify(error) == ErrorCategory.PERMANENT


class TestRetryManagerSync:
    """Tests for execute_with_retry()."""

    def test_success_first_attempt(self):
        result = RetryManager().execute_with_retry(lambda: 42)

        assert result.success
        assert result.result == 42
        assert result.attempts == 1

    def test_busy_twice_then_success(self):
        outcomes = [busy_error(), busy_error(), "ok"]

        def flaky():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        result = RetryManager().execute_with_retry(flaky)

        assert result.success
        assert result.attempts == 3
        assert len(result.errors) == 2
        assert result.total_delay_seconds == pytest.approx(0.030)

    def test_permanent_error_not_retried(self):
        calls = []

        def broken():
            calls.append(1)
            raise QueryError("no such table: logs")

        result = RetryManager().execute_with_retry(broken)

        assert not result.success
        assert not result.exhausted
        assert result.attempts == 1
        assert len(calls) == 1
        assert isinstance(result.last_error, QueryError)

    def test_exhausted_after_max_attempts(self):
        calls = []

        def always_busy():
            calls.append(1)
            raise busy_error()

        result = RetryManager(RetryConfig(max_attempts=3)).execute_with_retry(
            always_busy
        )

        assert not result.success
        assert result.exhausted
        assert result.attempts == 3
        assert len(calls) == 3

    def test_to_dict(self):
        result = RetryManager().execute_with_retry(lambda: None)
        data = result.to_dict()

        assert data["success"] is True
        assert data["attempts"] == 1
        assert data["error_count"] == 0


class TestRetryManagerAsync:
    """Tests for execute_with_retry_async()."""

    @pytest.mark.asyncio
    async def test_busy_then_success(self):
        outcomes = [busy_error(), None]

        async def flaky():
            outcome = outcomes.pop(0)
            if outcome is not None:
                raise outcome
            return "saved"

        result = await RetryManager().execute_with_retry_async(flaky)

        assert result.success
        assert result.result == "saved"
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_backoff_sleep_is_cancellable(self):
        attempts = []

        async def always_busy():
            attempts.append(1)
            raise busy_error()

        manager = RetryManager(RetryConfig(base_delay_seconds=10, max_delay_seconds=10))
        task = asyncio.create_task(manager.execute_with_retry_async(always_busy))
        await asyncio.sleep(0.02)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(attempts) == 1
