"""Main FastAPI application."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import __version__
from .api import repositories_router
from .core.config import settings, ConfigurationError, Environment
from .core.logging_config import setup_logging
from .database import SessionLocal, get_db, init_db, is_postgresql
from .exceptions import RepoWikiException
from .middleware.exception_handler import repowiki_exception_handler
from .services.job_queue import JobQueue
from .services.repository_service import RepositoryService
from .worker import PipelineOrchestrator

# Provider keys (OPENAI_API_KEY, ...) are read by LiteLLM from os.environ.
load_dotenv()

# Setup logging first
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle: schema, queue restore, pipeline worker."""
    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    if settings.environment == Environment.DEVELOPMENT and not settings.chat_api_key:
        logger.warning(
            "CHAT_API_KEY is empty. Jobs will fail unless the provider key is "
            "available to LiteLLM through its own environment variable."
        )

    init_db()

    queue = JobQueue()
    app.state.job_queue = queue

    db = SessionLocal()
    try:
        interrupted = RepositoryService(db).fail_interrupted()
        if interrupted:
            logger.warning(f"Failed {interrupted} job(s) interrupted by the last shutdown")

        # The worker consumes while restore fills the queue, so a backlog
        # larger than the queue capacity cannot block startup.
        worker_task = None
        if settings.worker_enabled:
            worker_task = asyncio.create_task(PipelineOrchestrator(queue).run())

        # Restored jobs are queued ahead of any new submission.
        await queue.restore_pending(db)
    finally:
        db.close()

    yield  # App runs here

    queue.close()
    if worker_task is not None:
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            logger.info("Pipeline worker cancelled")


# Create FastAPI app
app = FastAPI(
    title="repowiki API",
    description=(
        "Submit source repositories for AI-generated documentation and read "
        "back the status of each documentation job."
    ),
    version=__version__,
    lifespan=lifespan,
)

# Register exception handlers
app.add_exception_handler(RepoWikiException, repowiki_exception_handler)

logger.info(
    "repowiki API started | env=%s | db=%s | worker=%s | model=%s",
    settings.environment.value,
    "PostgreSQL" if is_postgresql() else "SQLite",
    "enabled" if settings.worker_enabled else "disabled",
    settings.chat_model,
)

app.include_router(repositories_router)


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check returning database status, uptime and queue depth.

    Never raises: returns degraded status on DB failure so load balancers
    can still probe without receiving 5xx.
    """
    db_status = "ok"
    job_count = 0
    try:
        db.execute(text("SELECT 1"))
        job_count = db.execute(text("SELECT COUNT(*) FROM repository_jobs")).scalar() or 0
    except Exception as e:
        logger.warning(f"Health check database probe failed: {e}")
        db_status = "error"

    queue = getattr(app.state, "job_queue", None)
    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "version": __version__,
        "job_count": job_count,
        "queued": queue.qsize() if queue is not None else 0,
    }
