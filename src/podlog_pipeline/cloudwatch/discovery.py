"""
Log group and stream discovery.

Streams are listed most recently active first, so discovery can stop at the
first stream whose last event predates the sync window: every stream after it
is older still.
"""

import logging
import re
from contextlib import aclosing
from functools import partial
from typing import Optional

from ..config.constants import CONTAINER_INSIGHTS_GROUP_PATTERN
from ..monitoring.progress import ProgressSink
from ..schemas import StreamDescriptor, Window
from .client import LogSource
from .exceptions import LogGroupNotFoundError
from .pagination import PaginatedLister

logger = logging.getLogger(__name__)


class StreamDiscovery:
    """Finds the streams of a log group that may hold events of a window."""

    def __init__(
        self,
        source: LogSource,
        lister: PaginatedLister,
        progress: Optional[ProgressSink] = None,
    ):
        self.source = source
        self.lister = lister
        self.progress = progress or ProgressSink()

    async def list_groups(self) -> list[str]:
        """Return the names of all log groups."""
        return await self.lister.collect(self.source.list_groups, "DescribeLogGroups")

    async def group_exists(self, group: str) -> bool:
        operation = partial(self.source.list_groups, name_prefix=group)
        async with aclosing(
            self.lister.iter_items(operation, "DescribeLogGroups")
        ) as groups:
            async for name in groups:
                if name == group:
                    return True
        return False

    async def find_group_auto(self) -> Optional[str]:
        """
        Return the Container Insights application log group, if unambiguous.

        Returns:
            The only group named like ``/aws/containerinsights/<cluster>/application``,
            or None when there is no such group or more than one.
        """
        pattern = re.compile(CONTAINER_INSIGHTS_GROUP_PATTERN)
        candidates = [g for g in await self.list_groups() if pattern.fullmatch(g)]

        if len(candidates) == 1:
            logger.info(f"Detected log group: {candidates[0]}")
            return candidates[0]
        if candidates:
            logger.warning(
                f"Found {len(candidates)} Container Insights log groups, "
                f"specify one explicitly: {', '.join(candidates)}"
            )
        else:
            logger.warning("No Container Insights application log group found")
        return None

    async def find(
        self, group: str, name_filter: str, window: Window
    ) -> list[StreamDescriptor]:
        """
        List streams of ``group`` active within ``window``.

        Args:
            group: Exact log group name
            name_filter: Substring the stream name must contain ('' matches all)
            window: Sync window; streams idle since before its start are dropped

        Returns:
            Matching streams, most recently active first (may be empty)

        Raises:
            LogGroupNotFoundError: If the group does not exist
        """
        if not await self.group_exists(group):
            logger.error(f"Log group {group} not found")
            raise LogGroupNotFoundError(group)

        matched: list[StreamDescriptor] = []
        operation = partial(self.source.list_streams, group)
        async with aclosing(
            self.lister.iter_items(operation, "DescribeLogStreams")
        ) as streams:
            async for stream in streams:
                self.progress.stream_seen()

                if stream.last_event_time is None:
                    logger.debug(f"Stream {stream.name} has no events, skipped")
                    continue
                if stream.last_event_time < window.start:
                    logger.debug(
                        f"Stream {stream.name} last event "
                        f"{stream.last_event_time.isoformat()} precedes window, "
                        f"stopping discovery"
                    )
                    break

                if not name_filter or name_filter in stream.name:
                    self.progress.stream_matched()
                    matched.append(stream)

        logger.info(
            f"Found {len(matched)} streams in {group} matching '{name_filter}'"
        )
        return matched
