"""Background job workers.

A worker drains one job queue and hands every job ID to a handler. A
failing job is logged and the worker moves on to the next one; only
task cancellation stops the loop.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from catalog_engine.application.job_queue import JobQueue

logger = structlog.get_logger()

JobHandler = Callable[[str], Awaitable[None]]


class JobWorker:
    """Consumes a job queue in a background task.

    Example usage:
        worker = JobWorker("import-1", import_queue, process_import_job)
        worker.start()
        ...
        await worker.stop()
    """

    def __init__(self, name: str, queue: JobQueue, handler: JobHandler) -> None:
        """Initialize worker.

        Args:
            name: Worker name used in logs.
            queue: Queue to drain.
            handler: Coroutine function processing one job ID.
        """
        self.name = name
        self.queue = queue
        self.handler = handler
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        """Check whether the worker task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the worker task on the running loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self.run(), name=self.name)

    async def stop(self) -> None:
        """Cancel the worker task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run(self) -> None:
        """Process job IDs until cancelled."""
        logger.info("Worker started", worker=self.name, queue=self.queue.name)
        try:
            async for job_id in self.queue.consume():
                await self._process(job_id)
        finally:
            logger.info("Worker stopped", worker=self.name, queue=self.queue.name)

    async def _process(self, job_id: str) -> None:
        log = logger.bind(worker=self.name, job_id=job_id)
        log.info("Job picked up")
        try:
            await self.handler(job_id)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Job handler failed")
        else:
            log.info("Job handled")


def start_workers(
    prefix: str,
    queue: JobQueue,
    handler: JobHandler,
    count: int,
) -> list[JobWorker]:
    """Start several workers on one queue.

    Args:
        prefix: Worker name prefix.
        queue: Queue to drain.
        handler: Job handler.
        count: Number of workers (at least one is started).

    Returns:
        Started workers.
    """
    workers = [
        JobWorker(f"{prefix}-{index}", queue, handler) for index in range(1, max(count, 1) + 1)
    ]
    for worker in workers:
        worker.start()
    return workers
