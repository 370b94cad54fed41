"""
Bounded walks over cursor-paginated listings.
"""

import logging
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from ..config.constants import MAX_LISTING_RESULTS, MAX_PAGINATION_DEPTH
from ..schemas import Page
from .exceptions import PaginationExceededError
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageOperation = Callable[[Optional[str]], Awaitable[Page[T]]]


class PaginatedLister:
    """
    Walks a listing page by page under the listing rate limit.

    A walk ends when the server stops returning a cursor, returns a cursor it
    already returned, or the result cap is hit (with a warning). A walk still
    going after ``max_depth`` pages raises ``PaginationExceededError``.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        max_depth: int = MAX_PAGINATION_DEPTH,
        max_results: int = MAX_LISTING_RESULTS,
    ):
        self.limiter = limiter
        self.max_depth = max_depth
        self.max_results = max_results

    async def iter_items(
        self, operation: PageOperation, name: str = "listing"
    ) -> AsyncIterator[T]:
        """
        Yield items across pages.

        Pages are requested lazily, so a consumer that stops iterating stops
        the walk. Use ``contextlib.aclosing`` to release the walk promptly.

        Args:
            operation: Coroutine function taking a cursor (None for the first
                       page) and returning a ``Page``
            name: Operation name for logs and errors
        """
        cursor: Optional[str] = None
        seen: set[str] = set()
        depth = 0
        yielded = 0

        while True:
            await self.limiter.acquire()
            page = await operation(cursor)
            depth += 1
            logger.debug(
                f"{name}: page {depth} returned {len(page.items)} items "
                f"(more={page.next_cursor is not None})"
            )

            for item in page.items:
                if yielded >= self.max_results:
                    self._warn_truncated(name)
                    return
                yield item
                yielded += 1

            next_cursor = page.next_cursor
            if next_cursor is None:
                return
            if yielded >= self.max_results:
                self._warn_truncated(name)
                return
            if next_cursor in seen:
                logger.debug(f"{name}: cursor repeated after {depth} pages, stopping")
                return
            if depth >= self.max_depth:
                raise PaginationExceededError(max_depth=self.max_depth, operation=name)

            seen.add(next_cursor)
            cursor = next_cursor

    async def collect(self, operation: PageOperation, name: str = "listing") -> list:
        """Run the walk to completion and return every item."""
        return [item async for item in self.iter_items(operation, name)]

    def _warn_truncated(self, name: str) -> None:
        logger.warning(
            f"{name}: result limit of {self.max_results:,} items reached, "
            f"remaining pages ignored"
        )
