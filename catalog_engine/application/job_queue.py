"""In-memory job queue.

An unbounded FIFO hand-off of job IDs from request handlers to
background workers. The queue carries no payload: the persisted job
record is the source of truth, so nothing is lost that a restart cannot
rebuild from job statuses.
"""

import asyncio
from collections.abc import AsyncIterator

import structlog

logger = structlog.get_logger()


class JobQueue:
    """Unbounded FIFO queue of job IDs.

    Example usage:
        queue = JobQueue("imports")
        queue.enqueue(job.id)

        async for job_id in queue.consume():
            await handle(job_id)
    """

    def __init__(self, name: str) -> None:
        """Initialize queue.

        Args:
            name: Queue name used in logs.
        """
        self.name = name
        self._queue: asyncio.Queue[str] = asyncio.Queue()

    def enqueue(self, job_id: str) -> None:
        """Add a job ID. Never blocks.

        Args:
            job_id: Job to process.
        """
        self._queue.put_nowait(job_id)
        logger.debug("Job enqueued", queue=self.name, job_id=job_id, size=self.size)

    async def dequeue(self) -> str:
        """Wait for and remove the next job ID."""
        job_id = await self._queue.get()
        self._queue.task_done()
        return job_id

    async def consume(self) -> AsyncIterator[str]:
        """Yield job IDs in enqueue order until cancelled."""
        while True:
            yield await self.dequeue()

    @property
    def size(self) -> int:
        """Number of job IDs waiting."""
        return self._queue.qsize()
