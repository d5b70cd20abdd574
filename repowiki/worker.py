"""
Pipeline worker: consumes the job queue and runs one job at a time.

Hosted by the API process (see main.py) when WORKER_ENABLED is true.
Can also run on its own to drain jobs already Pending in the database:

    python -m repowiki.worker            # every Pending job, then exit
    python -m repowiki.worker --job ID   # a single job
"""

import argparse
import asyncio
import logging
from typing import Callable, Optional

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from .core.config import settings
from .core.logging_config import job_id_var, setup_logging
from .database import SessionLocal, init_db
from .models import RepositoryStatus
from .services.documentation_pipeline import DocumentationPipeline
from .services.job_queue import JobQueue
from .services.repository_service import RepositoryService

logger = logging.getLogger(__name__)


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"


class PipelineOrchestrator:
    """
    Single consumer of the job queue.

    Drives each job Pending -> Processing -> Completed | Failed. A failed
    job never stops the loop. Cancelling the task running ``run`` fails the
    in-flight job, removes its partial rows and propagates the cancellation.

    Args:
        queue: Source of job ids.
        pipeline: Stage sequence run per job.
        session_factory: Creates one database session per job.
    """

    def __init__(
        self,
        queue: JobQueue,
        pipeline: Optional[DocumentationPipeline] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.queue = queue
        self.pipeline = pipeline or DocumentationPipeline()
        self.session_factory = session_factory

    async def run(self) -> None:
        """Process jobs until the queue is closed."""
        logger.info("Pipeline worker started")
        while True:
            job_id = await self.queue.take()
            if job_id is None:
                break
            try:
                await self.process(job_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Unhandled error while processing job {job_id}")
        logger.info("Pipeline worker stopped")

    async def process(self, job_id: str) -> None:
        token = job_id_var.set(job_id)
        db = self.session_factory()
        try:
            service = RepositoryService(db)
            job = service.jobs.find(job_id)
            if job is None:
                logger.warning(f"Job {job_id} no longer exists, skipping")
                return
            if job.status != RepositoryStatus.PENDING.value:
                logger.warning(f"Job {job_id} is {job.status}, not Pending; skipping")
                return

            job = service.mark_processing(job_id)
            logger.info(f"Processing job {job_id}: {job.address}")
            try:
                result = await self.pipeline.run(job, db)
                service.complete(job_id)
            except asyncio.CancelledError:
                service.fail(job_id, "CancelledError: job cancelled during processing")
                raise
            except Exception as e:
                logger.exception(f"Job {job_id} failed")
                service.fail(job_id, _describe(e))
                return

            if result.dropped:
                logger.warning(
                    f"Job {job_id} completed without {len(result.dropped)} topic(s): "
                    + ", ".join(result.dropped)
                )
        finally:
            db.close()
            job_id_var.reset(token)


async def _drain(job_id: Optional[str]) -> int:
    db = SessionLocal()
    try:
        service = RepositoryService(db)
        service.fail_interrupted()
        job_ids = [job_id] if job_id else [job.id for job in service.jobs.list_pending()]
    finally:
        db.close()

    orchestrator = PipelineOrchestrator(JobQueue())
    for pending_id in job_ids:
        await orchestrator.process(pending_id)
    return len(job_ids)


def main() -> None:
    """Process Pending jobs from the database, then exit."""
    parser = argparse.ArgumentParser(description="Run the repowiki pipeline worker")
    parser.add_argument("--job", help="Process only this job id")
    args = parser.parse_args()

    # Provider keys (OPENAI_API_KEY, ...) are read by LiteLLM from os.environ.
    load_dotenv()
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    init_db()

    processed = asyncio.run(_drain(args.job))
    logger.info(f"Worker finished: {processed} job(s) processed")


if __name__ == "__main__":
    main()
