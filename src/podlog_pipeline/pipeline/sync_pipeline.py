"""
CloudWatch to SQLite sync pipeline.

Copies container log events of one log group and time window into the local
record store:

1. Resolve the log group (auto-detect the Container Insights group if none given)
2. Discover streams active within the window
3. Purge the window's existing records (replace mode)
4. Fetch every stream's events with a bounded worker pool
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..cloudwatch import (
    CloudWatchLogsSource,
    EventFetcher,
    LogGroupNotFoundError,
    LogSource,
    PaginatedLister,
    RateBudget,
    StreamDiscovery,
)
from ..config.constants import CONTAINER_INSIGHTS_GROUP_PATTERN
from ..config.settings import Settings, SyncSettings, get_settings
from ..monitoring.progress import CompositeProgress, ProgressCounters, ProgressSink
from ..monitoring.retry_handler import RetryConfig
from ..schemas import StreamDescriptor, Window
from ..storage import RecordSink, get_backend
from .worker_pool import WorkerPool

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure root logging for scripts and interactive use."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@dataclass
class SyncResult:
    """Result of a sync run."""

    success: bool
    profile: str
    group: str
    name_filter: str
    window: Window
    started_at: datetime = field(default_factory=lambda: datetime.now().astimezone())
    completed_at: Optional[datetime] = None
    # Stats
    streams_seen: int = 0
    streams_matched: int = 0
    streams_scanned: int = 0
    records_saved: int = 0
    records_skipped: int = 0
    records_purged: int = 0

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get sync duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "success": self.success,
            "profile": self.profile,
            "group": self.group,
            "name_filter": self.name_filter,
            "window_start": self.window.start.isoformat(),
            "window_end": self.window.end.isoformat(),
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "duration_seconds": self.duration_seconds,
            "streams_seen": self.streams_seen,
            "streams_matched": self.streams_matched,
            "streams_scanned": self.streams_scanned,
            "records_saved": self.records_saved,
            "records_skipped": self.records_skipped,
            "records_purged": self.records_purged,
        }


class SyncPipeline:
    """
    Syncs one log group and window from a LogSource into a RecordSink.

    The rate budget is owned by the pipeline and shared by every run, so
    concurrent runs on one pipeline draw from the same quotas.
    """

    def __init__(
        self,
        source: LogSource,
        sink: RecordSink,
        settings: Optional[SyncSettings] = None,
        budget: Optional[RateBudget] = None,
        progress: Optional[ProgressSink] = None,
    ):
        """
        Args:
            source: Remote log API
            sink: Initialized record store
            settings: Sync engine settings (defaults if None)
            budget: Rate limiters (built from settings if None)
            progress: Extra progress sink notified alongside the run's counters
        """
        self.source = source
        self.sink = sink
        self.settings = settings or SyncSettings()
        self.budget = budget or RateBudget.from_settings(self.settings)
        self.progress = progress
        self.lister = PaginatedLister(
            self.budget.listing,
            max_depth=self.settings.max_pagination_depth,
            max_results=self.settings.max_listing_results,
        )
        self.pool = WorkerPool(self.settings.max_workers, name="stream-fetcher")

    def _discovery(self, progress: ProgressSink) -> StreamDiscovery:
        return StreamDiscovery(self.source, self.lister, progress)

    async def resolve_group(self, group: Optional[str], profile: str = "") -> str:
        """
        Return ``group``, or the auto-detected Container Insights group.

        Raises:
            LogGroupNotFoundError: If no group was given and none can be detected
        """
        if group:
            return group
        detected = await self._discovery(ProgressSink()).find_group_auto()
        if detected is None:
            raise LogGroupNotFoundError(CONTAINER_INSIGHTS_GROUP_PATTERN, profile)
        return detected

    async def run(
        self,
        group: Optional[str],
        name_filter: str,
        window: Window,
        profile: str = "",
    ) -> SyncResult:
        """
        Sync one log group and window.

        Args:
            group: Log group name (None to auto-detect)
            name_filter: Substring selecting streams. In replace mode it also
                         selects the stored records purged before fetching,
                         matched against their pod name. A filter that only
                         matches the namespace or container part of a stream
                         name purges nothing, so re-syncing with it appends.
            window: Time window to sync
            profile: AWS profile name stamped on every record

        Returns:
            SyncResult with run statistics

        Raises:
            LogGroupNotFoundError: If the group does not exist
            PaginationExceededError: If a listing never ends
            LogSourceError: If the log API fails
            StorageError: If records cannot be stored
        """
        counters = ProgressCounters()
        progress: ProgressSink = (
            CompositeProgress(counters, self.progress) if self.progress else counters
        )

        group = await self.resolve_group(group, profile)
        result = SyncResult(
            success=False,
            profile=profile,
            group=group,
            name_filter=name_filter,
            window=window,
        )

        logger.info(
            f"Starting sync of {group} ({profile or 'default profile'}): "
            f"{window.start.isoformat()} to {window.end.isoformat()}, "
            f"filter '{name_filter}'"
        )

        try:
            logger.info("[1/3] Discovering streams...")
            streams = await self._discovery(progress).find(group, name_filter, window)
            logger.info(f"  Found {len(streams)} streams to fetch")

            # Only purge once the group and its streams are known
            logger.info("[2/3] Purging existing records...")
            if self.settings.replace_existing:
                result.records_purged = await asyncio.to_thread(
                    self.sink.purge_window,
                    profile,
                    group,
                    name_filter,
                    window.start,
                    window.end,
                )
            else:
                logger.info("  Replace mode disabled - keeping existing records")

            logger.info("[3/3] Fetching events...")
            fetcher = EventFetcher(
                self.source,
                self.sink,
                self.budget.events,
                profile=profile,
                progress=progress,
                max_depth=self.settings.max_pagination_depth,
            )

            async def handle(stream: StreamDescriptor) -> None:
                await fetcher.fetch_stream(group, stream, window)

            await self.pool.run(streams, handle)
            result.success = True
        finally:
            result.completed_at = datetime.now().astimezone()
            result.streams_seen = counters.streams_seen
            result.streams_matched = counters.streams_matched
            result.streams_scanned = counters.streams_scanned
            result.records_saved = counters.records_saved
            result.records_skipped = counters.records_skipped

        logger.info(
            f"Sync completed in {result.duration_seconds:.1f}s: "
            f"{result.records_saved:,} records saved from "
            f"{result.streams_scanned} streams, {result.records_skipped:,} skipped"
        )
        return result


async def sync_logs(
    group: Optional[str],
    name_filter: str,
    window: Window,
    profile: Optional[str] = None,
    settings: Optional[Settings] = None,
    source: Optional[LogSource] = None,
    db_path: Optional[Path | str] = None,
) -> SyncResult:
    """
    Sync logs into the configured SQLite database.

    Opens the store, runs the pipeline and closes the store on every path,
    including cancellation.

    Args:
        group: Log group name (None to auto-detect)
        name_filter: Substring selecting streams / pods
        window: Time window to sync
        profile: AWS profile (uses settings if None)
        settings: Application settings (uses default if None)
        source: LogSource to read from (CloudWatch for ``profile`` if None)
        db_path: SQLite database path (uses settings if None)

    Example:
        result = asyncio.run(sync_logs(None, "api", Window(begin, end), "staging"))
    """
    if settings is None:
        settings = get_settings()
    if profile is None:
        profile = settings.aws_profile

    if source is None:
        source = CloudWatchLogsSource.from_profile(profile, settings=settings)

    sink = get_backend(
        "sqlite",
        db_path=Path(db_path or settings.sqlite_db_path).expanduser(),
        retry_config=RetryConfig(
            max_attempts=settings.sync.storage_max_attempts,
            base_delay_seconds=settings.sync.storage_base_delay_ms / 1000,
        ),
    )
    try:
        await asyncio.to_thread(sink.initialize)
        pipeline = SyncPipeline(source, sink, settings=settings.sync)
        return await pipeline.run(group, name_filter, window, profile)
    finally:
        sink.close()
