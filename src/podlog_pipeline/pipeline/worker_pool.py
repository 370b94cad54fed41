"""
Bounded asyncio worker pool with first-error-wins semantics.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from ..config.constants import DEFAULT_MAX_WORKERS

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkerPool:
    """
    Runs a handler over items with at most ``max_workers`` in flight.

    All items are queued before any worker starts. When a handler raises,
    the remaining workers are cancelled and awaited, queued items are never
    started, and the first error is re-raised. Errors raised by other
    handlers before they were cancelled are logged.

    Cancelling the task awaiting ``run()`` cancels every worker the same way
    and propagates ``CancelledError``.
    """

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS, name: str = "worker"):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self.name = name

    async def run(
        self, items: Iterable[T], handler: Callable[[T], Awaitable[Any]]
    ) -> int:
        """
        Process every item.

        Returns:
            Number of items processed

        Raises:
            Exception: The first error raised by ``handler``
        """
        queue: asyncio.Queue = asyncio.Queue()
        for item in items:
            queue.put_nowait(item)

        if queue.empty():
            return 0

        errors: list[Exception] = []
        processed = 0

        async def worker() -> None:
            nonlocal processed
            while True:
                try:
                    item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    await handler(item)
                except Exception as e:
                    errors.append(e)
                    raise
                processed += 1

        worker_count = min(self.max_workers, queue.qsize())
        logger.debug(
            f"Starting {worker_count} workers for {queue.qsize()} items"
        )
        tasks = [
            asyncio.create_task(worker(), name=f"{self.name}-{i}")
            for i in range(worker_count)
        ]

        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if errors:
            for error in errors[1:]:
                logger.warning(f"Additional worker failure: {error!r}")
            logger.error(
                f"Worker failed after {processed} items processed: {errors[0]}"
            )
            raise errors[0]

        return processed
