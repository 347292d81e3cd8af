import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from config import settings
from exceptions import BackpressureError

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R]:
    """Run worker over items with at most `limit` in flight.

    Results are returned in input order regardless of completion order.
    The first exception raised by a worker propagates. Once it is raised,
    queued workers never start and in-flight ones are cancelled.
    """
    if limit < 1:
        raise ValueError(f"Concurrency limit must be >= 1, got {limit}")

    semaphore = asyncio.Semaphore(limit)
    failed = asyncio.Event()

    async def _run(item: T) -> R | None:
        async with semaphore:
            # A sibling failed while this one was queued
            if failed.is_set():
                return None
            try:
                return await worker(item)
            except BaseException:
                failed.set()
                raise

    tasks = [asyncio.ensure_future(_run(item)) for item in items]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class CompressionGate:
    """Controls concurrent upload batches with backpressure.

    - Semaphore limits active batches to CPU count (configurable)
    - Queue depth limit prevents OOM from queued payloads (up to
      max_files * max_file_size each)
    - When queue is full, fails immediately with 503
    """

    def __init__(self, size: int | None = None, max_queue: int | None = None):
        self._size = size or settings.compression_semaphore_size
        self._semaphore = asyncio.Semaphore(self._size)
        self._queue_depth = 0
        self._max_queue = max_queue or settings.max_queue_depth
        self._lock = asyncio.Lock()

    async def acquire(self):
        """Acquire a batch slot.

        Raises BackpressureError (503) if queue is full.
        """
        async with self._lock:
            if self._queue_depth >= self._max_queue:
                raise BackpressureError(
                    "Upload queue full. Try again shortly.",
                    retry_after=5,
                )
            self._queue_depth += 1

        try:
            await self._semaphore.acquire()
        except BaseException:
            self._queue_depth -= 1
            raise

    def release(self):
        """Release a batch slot."""
        self._semaphore.release()
        self._queue_depth -= 1

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release()

    @property
    def active_jobs(self) -> int:
        return self._size - self._semaphore._value

    @property
    def queued_jobs(self) -> int:
        return max(0, self._queue_depth - self.active_jobs)


# Module-level singleton
compression_gate = CompressionGate()
