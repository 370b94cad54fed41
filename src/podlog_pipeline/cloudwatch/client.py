"""
CloudWatch Logs API access.

``LogSource`` is the narrow interface the sync engine needs from a remote log
API: three cursor-paginated listings. ``CloudWatchLogsSource`` implements it
over a boto3 ``logs`` client; the blocking boto3 calls run in worker threads
so the event loop stays free while a request is in flight.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config.constants import API_TIMEOUT_SECONDS, API_TRANSPORT_MAX_ATTEMPTS
from ..config.settings import Settings, get_settings
from ..schemas import Page, RawEvent, StreamDescriptor, Window, ms_to_datetime
from .exceptions import LogGroupNotFoundError, LogSourceError

logger = logging.getLogger(__name__)


def map_cloudwatch_error(
    error: ClientError,
    operation: str,
    group: Optional[str] = None,
    profile: Optional[str] = None,
) -> Exception:
    """
    Map a CloudWatch Logs ClientError to a domain exception.

    Args:
        error: The boto3 ClientError
        operation: The operation that failed (e.g., "DescribeLogStreams")
        group: Log group the call targeted, if any
        profile: AWS profile in use, for context

    Returns:
        LogGroupNotFoundError for a missing group, LogSourceError otherwise
    """
    error_info = error.response.get("Error", {})
    error_code = error_info.get("Code", "Unknown")
    error_message = error_info.get("Message", str(error))

    if error_code == "ResourceNotFoundException" and group:
        return LogGroupNotFoundError(group, profile=profile)

    if group:
        error_message = f"{error_message} (group: {group})"
    return LogSourceError(error_message, operation=operation, error_code=error_code)


# =============================================================================
# Interface
# =============================================================================


class LogSource(ABC):
    """Remote, cursor-paginated source of container log events."""

    @abstractmethod
    async def list_groups(
        self, cursor: Optional[str] = None, name_prefix: Optional[str] = None
    ) -> Page[str]:
        """Return one page of log group names."""
        pass

    @abstractmethod
    async def list_streams(
        self, group: str, cursor: Optional[str] = None
    ) -> Page[StreamDescriptor]:
        """Return one page of streams in ``group``, most recent events first."""
        pass

    @abstractmethod
    async def list_events(
        self,
        group: str,
        stream: str,
        window: Window,
        cursor: Optional[str] = None,
    ) -> Page[RawEvent]:
        """Return one page of events of ``stream`` within ``window``, oldest first."""
        pass


# =============================================================================
# boto3 implementation
# =============================================================================


def get_cloudwatch_client(
    profile: Optional[str] = None,
    region: Optional[str] = None,
    settings: Optional[Settings] = None,
):
    """
    Create a CloudWatch Logs client.

    Args:
        profile: AWS profile name (uses settings if None, '' for the default chain)
        region: AWS region (uses settings / profile default if None)
        settings: Application settings (uses default if None)

    Returns:
        boto3 ``logs`` client

    Raises:
        LogSourceError: If the session or client cannot be created
    """
    if settings is None:
        settings = get_settings()
    if profile is None:
        profile = settings.aws_profile
    if region is None:
        region = settings.aws_region

    try:
        session = boto3.Session(
            profile_name=profile or None,
            region_name=region or None,
        )
        boto_config = Config(
            retries={"max_attempts": API_TRANSPORT_MAX_ATTEMPTS, "mode": "standard"},
            connect_timeout=API_TIMEOUT_SECONDS,
            read_timeout=API_TIMEOUT_SECONDS,
        )
        return session.client("logs", config=boto_config)
    except BotoCoreError as e:
        logger.error(f"Failed to create CloudWatch Logs client: {e}")
        raise LogSourceError(
            f"Failed to create CloudWatch Logs client: {e}", operation="CreateClient"
        ) from e


class CloudWatchLogsSource(LogSource):
    """
    LogSource backed by a boto3 CloudWatch Logs client.

    Example:
        source = CloudWatchLogsSource.from_profile("staging")
        page = await source.list_streams("/aws/containerinsights/c1/application")
    """

    def __init__(self, client: Any, profile: str = ""):
        """
        Args:
            client: boto3 ``logs`` client (or a compatible stub)
            profile: AWS profile the client was created for, for error context
        """
        self.client = client
        self.profile = profile

    @classmethod
    def from_profile(
        cls,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> "CloudWatchLogsSource":
        """Create a source with a client for the given AWS profile."""
        client = get_cloudwatch_client(profile=profile, region=region, settings=settings)
        return cls(client, profile=profile or "")

    def _call(self, method: str, operation: str, group: Optional[str], **params) -> dict:
        """Invoke one client method, mapping botocore failures. Blocking."""
        try:
            return getattr(self.client, method)(**params)
        except ClientError as e:
            raise map_cloudwatch_error(e, operation, group, self.profile) from e
        except BotoCoreError as e:
            raise LogSourceError(str(e), operation=operation) from e

    async def _request(
        self, method: str, operation: str, group: Optional[str] = None, **params
    ) -> dict:
        return await asyncio.to_thread(self._call, method, operation, group, **params)

    async def list_groups(
        self, cursor: Optional[str] = None, name_prefix: Optional[str] = None
    ) -> Page[str]:
        params: dict[str, Any] = {}
        if name_prefix:
            params["logGroupNamePrefix"] = name_prefix
        if cursor:
            params["nextToken"] = cursor

        response = await self._request(
            "describe_log_groups", "DescribeLogGroups", **params
        )
        names = [g["logGroupName"] for g in response.get("logGroups", [])]
        return Page(items=names, next_cursor=response.get("nextToken"))

    async def list_streams(
        self, group: str, cursor: Optional[str] = None
    ) -> Page[StreamDescriptor]:
        params: dict[str, Any] = {
            "logGroupName": group,
            "orderBy": "LastEventTime",
            "descending": True,
        }
        if cursor:
            params["nextToken"] = cursor

        response = await self._request(
            "describe_log_streams", "DescribeLogStreams", group, **params
        )
        streams = []
        for stream in response.get("logStreams", []):
            last_event_ms = stream.get("lastEventTimestamp")
            streams.append(
                StreamDescriptor(
                    name=stream["logStreamName"],
                    last_event_time=(
                        ms_to_datetime(last_event_ms)
                        if last_event_ms is not None
                        else None
                    ),
                )
            )
        return Page(items=streams, next_cursor=response.get("nextToken"))

    async def list_events(
        self,
        group: str,
        stream: str,
        window: Window,
        cursor: Optional[str] = None,
    ) -> Page[RawEvent]:
        # endTime is exclusive on the API side, the window is closed
        params: dict[str, Any] = {
            "logGroupName": group,
            "logStreamName": stream,
            "startTime": window.start_ms,
            "endTime": window.end_ms + 1,
            "startFromHead": True,
        }
        if cursor:
            params["nextToken"] = cursor

        response = await self._request(
            "get_log_events", "GetLogEvents", group, **params
        )
        events = [
            RawEvent(timestamp_ms=e["timestamp"], message=e.get("message", ""))
            for e in response.get("events", [])
        ]
        return Page(items=events, next_cursor=response.get("nextForwardToken"))
