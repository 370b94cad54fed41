"""
Unit tests for log record schemas and timestamp helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from podlog_pipeline.schemas import (
    LogRecord,
    Window,
    datetime_to_ms,
    from_sqlite_timestamp,
    ms_to_datetime,
    to_sqlite_timestamp,
)

CET = timezone(timedelta(hours=1))


class TestWindow:
    """Tests for the closed sync window."""

    def test_normalizes_to_utc(self):
        window = Window(
            datetime(2024, 1, 15, 11, 0, tzinfo=CET),
            datetime(2024, 1, 15, 12, 0, tzinfo=CET),
        )

        assert window.start == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        assert window.start.tzinfo == timezone.utc

    def test_rejects_start_after_end(self):
        end = datetime(2024, 1, 15, tzinfo=timezone.utc)
        with pytest.raises(ValueError, match="must be <="):
            Window(end + timedelta(seconds=1), end)

    def test_rejects_naive_datetimes(self):
        with pytest.raises(ValueError, match="no timezone"):
            Window(datetime(2024, 1, 15), datetime(2024, 1, 16))

    def test_single_instant_window(self):
        instant = datetime(2024, 1, 15, tzinfo=timezone.utc)
        window = Window(instant, instant)

        assert window.contains(instant)
        assert not window.contains(instant + timedelta(milliseconds=1))

    def test_millisecond_bounds(self):
        start = datetime(2024, 1, 15, tzinfo=timezone.utc)
        window = Window(start, start + timedelta(seconds=2))

        assert window.end_ms - window.start_ms == 2000


class TestTimestamps:
    """Tests for timestamp conversion."""

    def test_ms_to_datetime_keeps_milliseconds(self):
        dt = ms_to_datetime(1_705_312_800_123)

        assert dt == datetime(2024, 1, 15, 10, 0, 0, 123000, tzinfo=timezone.utc)
        assert datetime_to_ms(dt) == 1_705_312_800_123

    def test_sqlite_timestamps_are_fixed_width(self):
        whole = to_sqlite_timestamp(datetime(2024, 1, 15, 10, tzinfo=timezone.utc))
        fractional = to_sqlite_timestamp(
            datetime(2024, 1, 15, 10, 0, 0, 1000, tzinfo=timezone.utc)
        )

        assert len(whole) == len(fractional)
        assert whole < fractional

    def test_sqlite_timestamp_parses_back(self):
        dt = datetime(2024, 1, 15, 11, 0, 0, 5000, tzinfo=CET)

        assert from_sqlite_timestamp(to_sqlite_timestamp(dt)) == dt


class TestLogRecord:
    """Tests for LogRecord."""

    def test_to_dict(self):
        record = LogRecord(
            profile="p",
            group="g",
            pod="pod",
            container="c",
            namespace="ns",
            event_time=datetime(2024, 1, 15, tzinfo=timezone.utc),
            message="hello",
        )

        data = record.to_dict()

        assert data["pod"] == "pod"
        assert data["event_time"] == "2024-01-15T00:00:00+00:00"

    def test_is_immutable(self):
        record = LogRecord("p", "g", "pod", "c", "ns", datetime.now(timezone.utc), "m")
        with pytest.raises(AttributeError):
            record.message = "changed"
