"""
Event fetching and fluentd envelope parsing.

Container Insights ships container output through fluentd, which wraps each
line in a JSON envelope:

    {"log": "...", "stream": "stdout",
     "kubernetes": {"pod_name": "...", "container_name": "...",
                    "namespace_name": "...", ...}}
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from ..config.constants import MAX_PAGINATION_DEPTH
from ..monitoring.progress import ProgressSink
from ..schemas import LogRecord, RawEvent, StreamDescriptor, Window, ms_to_datetime
from ..storage.base import RecordSink
from .client import LogSource
from .exceptions import EnvelopeParseError, PaginationExceededError
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Envelope:
    """The parts of a fluentd docker envelope that are stored."""

    log: str
    pod_name: str = ""
    container_name: str = ""
    namespace_name: str = ""


def parse_envelope(message: str) -> Envelope:
    """
    Parse a fluentd docker envelope.

    The envelope must be a JSON object with a string ``log`` and a
    ``kubernetes`` object; missing kubernetes fields are stored as ''.

    Raises:
        EnvelopeParseError: If the message is not such an envelope
    """
    try:
        data = json.loads(message)
    except (json.JSONDecodeError, TypeError) as e:
        raise EnvelopeParseError(f"Invalid JSON: {e}", raw=message) from e

    if not isinstance(data, dict):
        raise EnvelopeParseError("Envelope is not a JSON object", raw=message)

    log = data.get("log")
    if not isinstance(log, str):
        raise EnvelopeParseError("Missing or non-string 'log' field", raw=message)

    kubernetes = data.get("kubernetes")
    if not isinstance(kubernetes, dict):
        raise EnvelopeParseError("Missing 'kubernetes' object", raw=message)

    fields = {}
    for key in ("pod_name", "container_name", "namespace_name"):
        value = kubernetes.get(key, "")
        if not isinstance(value, str):
            raise EnvelopeParseError(f"Non-string kubernetes.{key}", raw=message)
        fields[key] = value

    return Envelope(log=log, **fields)


class EventFetcher:
    """
    Copies the events of one stream within a window into a record sink.

    Events are stored in the order the API delivers them. A malformed event
    is logged and skipped; a storage failure aborts the fetch.
    """

    def __init__(
        self,
        source: LogSource,
        sink: RecordSink,
        limiter: RateLimiter,
        profile: str = "",
        progress: Optional[ProgressSink] = None,
        max_depth: int = MAX_PAGINATION_DEPTH,
    ):
        self.source = source
        self.sink = sink
        self.limiter = limiter
        self.profile = profile
        self.progress = progress or ProgressSink()
        self.max_depth = max_depth

    def to_record(self, group: str, event: RawEvent) -> LogRecord:
        envelope = parse_envelope(event.message)
        return LogRecord(
            profile=self.profile,
            group=group,
            pod=envelope.pod_name,
            container=envelope.container_name,
            namespace=envelope.namespace_name,
            event_time=ms_to_datetime(event.timestamp_ms),
            message=envelope.log,
        )

    async def fetch(self, group: str, stream: str, window: Window) -> None:
        """
        Store every parseable event of ``stream`` within ``window``.

        Raises:
            PaginationExceededError: If the stream is still paging after
                                     ``max_depth`` pages
            StorageError: If a record cannot be stored
        """
        cursor: Optional[str] = None
        seen: set[str] = set()
        depth = 0
        saved = 0
        skipped = 0

        while True:
            await self.limiter.acquire()
            page = await self.source.list_events(group, stream, window, cursor)
            depth += 1

            for event in page.items:
                try:
                    record = self.to_record(group, event)
                except EnvelopeParseError as e:
                    logger.warning(f"Skipping event of {stream}: {e}")
                    self.progress.record_skipped()
                    skipped += 1
                    continue
                await self.sink.add_log(record)
                self.progress.record_saved()
                saved += 1

            next_cursor = page.next_cursor
            # GetLogEvents hands back the caller's token once the stream is drained
            if (
                not page.items
                or next_cursor is None
                or next_cursor == cursor
                or next_cursor in seen
            ):
                break
            if depth >= self.max_depth:
                raise PaginationExceededError(
                    max_depth=self.max_depth, operation="GetLogEvents"
                )

            seen.add(next_cursor)
            cursor = next_cursor

        logger.debug(
            f"Fetched {stream}: {saved} records saved, {skipped} skipped, "
            f"{depth} pages"
        )

    async def fetch_stream(
        self, group: str, stream: StreamDescriptor, window: Window
    ) -> None:
        """Fetch a discovered stream and report it scanned."""
        await self.fetch(group, stream.name, window)
        self.progress.stream_scanned()
