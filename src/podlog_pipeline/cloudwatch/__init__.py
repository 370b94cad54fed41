"""CloudWatch Logs integration module.

This module provides rate-limited, bounded access to CloudWatch Logs for
syncing container logs into SQLite storage.
"""

from .client import (
    CloudWatchLogsSource,
    LogSource,
    get_cloudwatch_client,
    map_cloudwatch_error,
)
from .discovery import StreamDiscovery
from .events import Envelope, EventFetcher, parse_envelope
from .exceptions import (
    EnvelopeParseError,
    LogGroupNotFoundError,
    LogSourceError,
    PaginationExceededError,
    PodLogError,
)
from .pagination import PaginatedLister
from .rate_limiter import RateBudget, RateLimiter

__all__ = [
    # API access
    "LogSource",
    "CloudWatchLogsSource",
    "get_cloudwatch_client",
    "map_cloudwatch_error",
    # Rate limiting and pagination
    "RateLimiter",
    "RateBudget",
    "PaginatedLister",
    # Discovery and fetching
    "StreamDiscovery",
    "EventFetcher",
    "Envelope",
    "parse_envelope",
    # Exceptions
    "PodLogError",
    "LogGroupNotFoundError",
    "PaginationExceededError",
    "EnvelopeParseError",
    "LogSourceError",
]
