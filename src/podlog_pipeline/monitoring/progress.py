"""
Progress reporting for sync runs.

The engine reports advisory counters through a ``ProgressSink``. Calls are
fire-and-forget: implementations must return immediately and must not raise,
since they sit on the engine's critical path.
"""

import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class ProgressSink:
    """No-op progress sink. Subclass and override what you need."""

    def stream_seen(self) -> None:
        pass

    def stream_matched(self) -> None:
        pass

    def stream_scanned(self) -> None:
        pass

    def record_saved(self) -> None:
        pass

    def record_skipped(self) -> None:
        pass


class CompositeProgress(ProgressSink):
    """
    Forwards every event to each of several sinks.

    A sink that raises is logged and skipped; the other sinks still receive
    the event.
    """

    def __init__(self, *sinks: ProgressSink):
        self.sinks = sinks

    def _forward(self, event: str) -> None:
        for sink in self.sinks:
            try:
                getattr(sink, event)()
            except Exception as e:
                logger.warning(f"Progress sink {sink!r} failed on {event}: {e}")

    def stream_seen(self) -> None:
        self._forward("stream_seen")

    def stream_matched(self) -> None:
        self._forward("stream_matched")

    def stream_scanned(self) -> None:
        self._forward("stream_scanned")

    def record_saved(self) -> None:
        self._forward("record_saved")

    def record_skipped(self) -> None:
        self._forward("record_skipped")


@dataclass
class ProgressCounters(ProgressSink):
    """In-memory counters, safe to share between asyncio workers."""

    streams_seen: int = 0
    streams_matched: int = 0
    streams_scanned: int = 0
    records_saved: int = 0
    records_skipped: int = 0
    started_at: float = field(default_factory=time.monotonic)

    def stream_seen(self) -> None:
        self.streams_seen += 1

    def stream_matched(self) -> None:
        self.streams_matched += 1

    def stream_scanned(self) -> None:
        self.streams_scanned += 1
        logger.debug(
            f"Scanned {self.streams_scanned}/{self.streams_matched} streams, "
            f"{self.records_saved:,} records saved"
        )

    def record_saved(self) -> None:
        self.records_saved += 1

    def record_skipped(self) -> None:
        self.records_skipped += 1

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.started_at

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "streams_seen": self.streams_seen,
            "streams_matched": self.streams_matched,
            "streams_scanned": self.streams_scanned,
            "records_saved": self.records_saved,
            "records_skipped": self.records_skipped,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
        }
