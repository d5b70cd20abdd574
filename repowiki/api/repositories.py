"""Repository submission and job status endpoints."""

import logging
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..exceptions import QueueClosedError
from ..models import RepositoryStatus
from ..schemas.repository import RepositoryJobResponse, RepositorySubmit
from ..services.repository_service import RepositoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/repositories", tags=["repositories"])


@router.post("", response_model=RepositoryJobResponse, status_code=201)
async def submit_repository(
    data: RepositorySubmit,
    request: Request,
    db: Session = Depends(get_db),
):
    """Submit a repository for documentation.

    Creates a Pending job and enqueues it for the pipeline worker.
    Rejected with 409 while a Pending, Processing or Completed job exists
    for the same address; a Failed job is replaced.
    """
    service = RepositoryService(db)
    job = service.submit(data)

    queue = request.app.state.job_queue
    if not await queue.submit(job.id):
        # Stays Pending in the database and is restored on the next start.
        raise QueueClosedError(job.id)
    return job


@router.get("", response_model=List[RepositoryJobResponse])
def list_repositories(
    status: Optional[RepositoryStatus] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """List recent repository jobs, optionally filtered by status."""
    return RepositoryService(db).list(
        limit=limit, status=status.value if status else None
    )


@router.get("/{job_id}", response_model=RepositoryJobResponse)
def get_repository(job_id: str, db: Session = Depends(get_db)):
    """Get a repository job's status."""
    return RepositoryService(db).get(job_id)
