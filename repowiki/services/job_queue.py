"""In-memory bounded FIFO of repository job ids.

The database is the durable record: a job stays Pending until the worker
takes it, and ``restore_pending`` re-enqueues every Pending job after a
restart. The queue itself only orders work and applies backpressure.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.orm import Session

from ..core.config import settings
from ..repositories.job_repository import JobRepository

logger = logging.getLogger(__name__)


class JobQueue:
    """Bounded channel between submission and the pipeline worker.

    ``submit`` waits while the queue is full instead of dropping work.
    ``close`` wakes every waiting producer and consumer: producers get
    False, consumers get None.
    """

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity or settings.queue_capacity
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self.capacity)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def qsize(self) -> int:
        return self._queue.qsize()

    async def _race_close(self, operation):
        """Await *operation* unless the queue closes first.

        Returns ``(finished, result)``. Cancelling the caller cancels both
        waiters and re-raises.
        """
        op_task = asyncio.ensure_future(operation)
        close_task = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({op_task, close_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            op_task.cancel()
            close_task.cancel()
            raise
        close_task.cancel()
        if op_task.done():
            return True, op_task.result()
        op_task.cancel()
        return False, None

    async def submit(self, job_id: str) -> bool:
        """Enqueue *job_id*, waiting for space. False if the queue is closed."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(job_id)
            return True
        except asyncio.QueueFull:
            logger.warning("Job queue full (%d), waiting to enqueue %s", self.capacity, job_id)
        finished, _ = await self._race_close(self._queue.put(job_id))
        return finished

    async def take(self) -> str | None:
        """Next job id, or None once the queue is closed."""
        if self.closed:
            return None
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        finished, job_id = await self._race_close(self._queue.get())
        return job_id if finished else None

    def close(self) -> None:
        """Stop accepting and handing out jobs. Idempotent."""
        if not self.closed:
            logger.info("Closing job queue (%d job(s) left queued)", self.qsize())
        self._closed.set()

    async def restore_pending(self, db: Session) -> int:
        """Re-enqueue every Pending job, oldest first. Returns the count."""
        pending = JobRepository(db).list_pending()
        restored = 0
        for job in pending:
            if await self.submit(job.id):
                restored += 1
        if restored:
            logger.info("Restored %d pending job(s) to the queue", restored)
        return restored
