"""Schemas for container log data."""

from .logs import (
    LOGS_INDEXES,
    LOGS_SQLITE_SCHEMA,
    LogRecord,
    Page,
    RawEvent,
    StreamDescriptor,
    Window,
    datetime_to_ms,
    ensure_utc,
    from_sqlite_timestamp,
    ms_to_datetime,
    to_sqlite_timestamp,
)

__all__ = [
    # SQLite schema
    "LOGS_SQLITE_SCHEMA",
    "LOGS_INDEXES",
    # Records
    "LogRecord",
    "StreamDescriptor",
    "RawEvent",
    "Window",
    "Page",
    # Timestamp helpers
    "ensure_utc",
    "ms_to_datetime",
    "datetime_to_ms",
    "to_sqlite_timestamp",
    "from_sqlite_timestamp",
]
