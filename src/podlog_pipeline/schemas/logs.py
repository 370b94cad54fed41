"""
Log record schema for container logs synced from CloudWatch.

Defines the in-memory records that flow through the sync engine and the
SQLite table they are persisted to.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# SQLite Schema
# =============================================================================

LOGS_SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_time TEXT NOT NULL,
    profile TEXT NOT NULL,
    loggroup TEXT NOT NULL,
    pod_name TEXT NOT NULL,
    container_name TEXT NOT NULL,
    namespace_name TEXT NOT NULL,
    log TEXT NOT NULL,
    _ingestion_time TEXT NOT NULL
)
"""

LOGS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_logs_scope_time ON logs(profile, loggroup, event_time)",
    "CREATE INDEX IF NOT EXISTS idx_logs_pod ON logs(pod_name)",
]


# =============================================================================
# Timestamp helpers
# =============================================================================


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure datetime has UTC timezone.

    Raises:
        ValueError: If datetime is naive (no timezone info)
    """
    if dt.tzinfo is None:
        raise ValueError(
            f"Datetime {dt} has no timezone. Please provide timezone-aware datetime "
            f"(e.g., datetime(..., tzinfo=timezone.utc))"
        )
    return dt.astimezone(timezone.utc)


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Convert a CloudWatch millisecond epoch timestamp to a UTC datetime."""
    return _EPOCH + timedelta(milliseconds=timestamp_ms)


def datetime_to_ms(dt: datetime) -> int:
    """Convert an aware datetime to a millisecond epoch timestamp."""
    return (ensure_utc(dt) - _EPOCH) // timedelta(milliseconds=1)


def to_sqlite_timestamp(dt: datetime) -> str:
    """
    Format a datetime for the event_time column.

    Always UTC with microseconds so stored values have a fixed width and
    compare correctly as text.
    """
    return ensure_utc(dt).isoformat(timespec="microseconds")


def from_sqlite_timestamp(value: str) -> datetime:
    """Parse an event_time column value back into a UTC datetime."""
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(
        timezone.utc
    )


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class LogRecord:
    """A single container log line, as stored locally."""

    profile: str
    group: str
    pod: str
    container: str
    namespace: str
    event_time: datetime
    message: str

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "profile": self.profile,
            "group": self.group,
            "pod": self.pod,
            "container": self.container,
            "namespace": self.namespace,
            "event_time": self.event_time.isoformat(),
            "message": self.message,
        }


@dataclass(frozen=True)
class StreamDescriptor:
    """A log stream discovered in a group. Never persisted."""

    name: str
    last_event_time: Optional[datetime] = None


@dataclass(frozen=True)
class RawEvent:
    """An event as returned by the log API, before envelope parsing."""

    timestamp_ms: int
    message: str


@dataclass(frozen=True)
class Window:
    """Closed UTC time interval used to select streams and events."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "start", ensure_utc(self.start))
        object.__setattr__(self, "end", ensure_utc(self.end))
        if self.start > self.end:
            raise ValueError(
                f"Window start ({self.start}) must be <= end ({self.end})"
            )

    @property
    def start_ms(self) -> int:
        return datetime_to_ms(self.start)

    @property
    def end_ms(self) -> int:
        return datetime_to_ms(self.end)

    def contains(self, dt: datetime) -> bool:
        return self.start <= ensure_utc(dt) <= self.end


@dataclass
class Page(Generic[T]):
    """One page of a cursor-paginated listing."""

    items: list[T] = field(default_factory=list)
    next_cursor: Optional[str] = None
