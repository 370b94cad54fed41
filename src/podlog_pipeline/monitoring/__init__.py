"""Monitoring module: storage retry handling and sync progress."""

from .progress import CompositeProgress, ProgressCounters, ProgressSink
from .retry_handler import (
    ErrorCategory,
    ErrorClassifier,
    RetryConfig,
    RetryManager,
    RetryResult,
)

__all__ = [
    # Retry
    "ErrorCategory",
    "ErrorClassifier",
    "RetryConfig",
    "RetryManager",
    "RetryResult",
    # Progress
    "ProgressSink",
    "ProgressCounters",
    "CompositeProgress",
]
