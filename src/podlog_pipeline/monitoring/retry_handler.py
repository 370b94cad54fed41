"""
Retry handling with exponential backoff for storage operations.

SQLite allows a single writer. When another connection holds the lock, an
operation fails with "database is locked" / SQLITE_BUSY; those failures are
transient and worth a short, bounded retry. Everything else is returned to
the caller on the first attempt.

Provides:
- Error classification (busy vs. permanent)
- Exponential backoff without jitter
- Sync and asyncio execution; async backoff sleeps are cancellable
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional

from ..storage.base import StorageBusyError

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of errors for retry decisions."""

    BUSY = "busy"  # Lock contention, retry after backoff
    PERMANENT = "permanent"  # Do not retry


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay_seconds: float = 0.010
    max_delay_seconds: float = 1.0
    exponential_base: float = 2.0

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay before next retry attempt.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        return min(
            self.base_delay_seconds * (self.exponential_base**attempt),
            self.max_delay_seconds,
        )


@dataclass
class RetryResult:
    """Result of a retry operation."""

    success: bool
    result: Any = None
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[Exception] = None
    exhausted: bool = False
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "attempts": self.attempts,
            "total_delay_seconds": round(self.total_delay_seconds, 4),
            "last_error": str(self.last_error) if self.last_error else None,
            "exhausted": self.exhausted,
            "error_count": len(self.errors),
        }


class ErrorClassifier:
    """
    Classifies errors to determine retry behavior.

    Looks at the exception and its cause chain, so a storage error raised
    ``from`` a ``sqlite3.OperationalError`` is classified by its cause.
    """

    BUSY_PATTERNS = [
        "database is locked",
        "database table is locked",
        "database lock",
        "sqlite_busy",
        "sqlite_locked",
    ]

    BUSY_ERROR_NAMES = frozenset(["SQLITE_BUSY", "SQLITE_LOCKED"])

    @classmethod
    def _chain(cls, error: BaseException) -> Iterable[BaseException]:
        seen: set[int] = set()
        current: Optional[BaseException] = error
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            yield current
            current = current.__cause__

    @classmethod
    def classify(cls, error: Exception) -> ErrorCategory:
        """
        Classify an error to determine retry behavior.

        Args:
            error: The exception to classify

        Returns:
            ErrorCategory for retry decisions
        """
        for exc in cls._chain(error):
            if isinstance(exc, StorageBusyError):
                return ErrorCategory.BUSY
            if getattr(exc, "sqlite_errorname", None) in cls.BUSY_ERROR_NAMES:
                return ErrorCategory.BUSY
            message = str(exc).lower()
            if any(pattern in message for pattern in cls.BUSY_PATTERNS):
                return ErrorCategory.BUSY

        return ErrorCategory.PERMANENT


class RetryManager:
    """
    Manages retry logic for operations with exponential backoff.

    Only errors whose category is in ``retry_on`` are retried; the first
    error of any other category ends the operation immediately.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        retry_on: Optional[list[ErrorCategory]] = None,
    ):
        """
        Initialize retry manager.

        Args:
            config: Retry configuration
            retry_on: Error categories to retry on (default: busy only)
        """
        self.config = config or RetryConfig()
        self.retry_on = retry_on if retry_on is not None else [ErrorCategory.BUSY]

    def _record_failure(
        self, result: RetryResult, attempt: int, error: Exception
    ) -> Optional[float]:
        """
        Record a failed attempt and decide what happens next.

        Returns:
            Delay before the next attempt, or None to stop.
        """
        category = ErrorClassifier.classify(error)
        result.errors.append(
            {
                "attempt": attempt + 1,
                "error": str(error),
                "error_type": type(error).__name__,
                "category": category.value,
            }
        )
        result.last_error = error

        if category not in self.retry_on:
            logger.debug(f"Not retrying: error category {category.value}")
            return None

        if attempt + 1 >= self.config.max_attempts:
            result.exhausted = True
            logger.error(
                f"Max attempts ({self.config.max_attempts}) exhausted: {error}"
            )
            return None

        delay = self.config.calculate_delay(attempt)
        logger.warning(
            f"Attempt {attempt + 1} failed: {error} (category: {category.value}), "
            f"retrying in {delay * 1000:.0f}ms"
        )
        result.total_delay_seconds += delay
        return delay

    def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        **kwargs,
    ) -> RetryResult:
        """
        Execute a blocking function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            RetryResult with outcome and statistics
        """
        result = RetryResult(success=False)

        for attempt in range(self.config.max_attempts):
            result.attempts = attempt + 1
            try:
                result.result = func(*args, **kwargs)
                result.success = True
                break
            except Exception as e:
                delay = self._record_failure(result, attempt, e)
                if delay is None:
                    break
                time.sleep(delay)

        return result

    async def execute_with_retry_async(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        **kwargs,
    ) -> RetryResult:
        """
        Await a coroutine function with retry logic.

        Backoff sleeps are plain ``asyncio.sleep`` calls, so cancelling the
        calling task interrupts them and propagates ``CancelledError``.

        Args:
            func: Coroutine function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            RetryResult with outcome and statistics
        """
        result = RetryResult(success=False)

        for attempt in range(self.config.max_attempts):
            result.attempts = attempt + 1
            try:
                result.result = await func(*args, **kwargs)
                result.success = True
                break
            except Exception as e:
                delay = self._record_failure(result, attempt, e)
                if delay is None:
                    break
                await asyncio.sleep(delay)

        return result
