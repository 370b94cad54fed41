"""
Token-bucket rate limiting for CloudWatch Logs requests.

CloudWatch applies a separate requests-per-second quota to each API
category, so the engine holds one bucket per category (``RateBudget``) and
every concurrent fetcher draws from the same buckets.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from ..config.constants import EVENT_REQUESTS_PER_SECOND, LISTING_REQUESTS_PER_SECOND
from ..config.settings import SyncSettings

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Async token bucket.

    Refills at ``rate`` tokens per second up to ``capacity`` (default: one
    second's worth). ``acquire()`` takes one token, sleeping until one is
    available. A waiter cancelled before its token is granted consumes
    nothing.
    """

    def __init__(self, rate: float, capacity: Optional[float] = None, name: str = ""):
        if rate <= 0:
            raise ValueError(f"rate must be > 0, got {rate}")
        self.rate = float(rate)
        self.capacity = float(capacity) if capacity is not None else self.rate
        if self.capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {self.capacity}")
        self.name = name
        self._tokens = self.capacity
        self._updated_at = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._updated_at
        self._updated_at = now
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)

    @property
    def available_tokens(self) -> float:
        """Tokens currently in the bucket."""
        self._refill()
        return self._tokens

    async def acquire(self) -> None:
        """Wait for and consume one token."""
        # Waiters queue on the lock; only the head of the queue sleeps on the bucket
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                delay = (1 - self._tokens) / self.rate
                logger.debug(
                    f"Rate limit reached for {self.name or 'bucket'}, "
                    f"sleeping {delay * 1000:.0f}ms"
                )
                await asyncio.sleep(delay)


@dataclass
class RateBudget:
    """Independent per-category buckets shared by every fetcher of a run."""

    listing: RateLimiter = field(
        default_factory=lambda: RateLimiter(LISTING_REQUESTS_PER_SECOND, name="listing")
    )
    events: RateLimiter = field(
        default_factory=lambda: RateLimiter(EVENT_REQUESTS_PER_SECOND, name="events")
    )

    def __post_init__(self) -> None:
        if self.listing is self.events:
            raise ValueError("listing and events must use separate rate limiters")

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> "RateBudget":
        """Create a budget with the configured per-category rates."""
        return cls(
            listing=RateLimiter(settings.listing_rate, name="listing"),
            events=RateLimiter(settings.event_rate, name="events"),
        )
