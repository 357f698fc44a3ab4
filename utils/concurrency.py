import asyncio

from exceptions import BackpressureError


class CompressionGate:
    """Bounds concurrent codec work with backpressure.

    - Semaphore limits active encodes to CPU count (configurable)
    - Queue depth limit keeps queued uploads (up to 10MB each) from piling up
    - When the queue is full, fails immediately with 503

    One gate per application instance (see main.create_app).
    """

    def __init__(self, max_active: int, max_queue: int):
        self._max_active = max_active
        self._semaphore = asyncio.Semaphore(max_active)
        self._queue_depth = 0
        self._max_queue = max_queue

    async def acquire(self):
        """Acquire a compression slot.

        Raises BackpressureError (503) if the queue is full.
        """
        if self._queue_depth >= self._max_queue:
            raise BackpressureError(
                "Compression queue full. Try again shortly.",
                retry_after=5,
            )
        self._queue_depth += 1
        try:
            await self._semaphore.acquire()
        except BaseException:
            self._queue_depth -= 1
            raise

    def release(self):
        """Release a compression slot."""
        self._semaphore.release()
        self._queue_depth -= 1

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release()

    @property
    def active_jobs(self) -> int:
        return self._max_active - self._semaphore._value

    @property
    def queued_jobs(self) -> int:
        return max(0, self._queue_depth - self.active_jobs)
