"""Repository job submission and lifecycle transitions."""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlsplit

from sqlalchemy.orm import Session

from ..core.logging_config import redact
from ..exceptions import RepositoryAlreadyExistsError, ValidationError
from ..generation.git_service import RepositorySnapshot
from ..models import ACTIVE_STATUSES, RepositoryJob, RepositoryStatus
from ..repositories import DocumentRepository, JobRepository
from ..schemas.repository import RepositorySubmit

logger = logging.getLogger(__name__)

# Error text stored on a failed job is capped to keep rows and API responses small.
MAX_ERROR_CHARS = 2000


def normalize_address(address: str) -> str:
    """Trim, drop a trailing slash and ensure the address ends with ``.git``."""
    address = address.strip().rstrip("/")
    if not address.endswith(".git"):
        address += ".git"
    return address


def _validate_address(address: str) -> None:
    parts = urlsplit(address)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValidationError("Repository address must be an http(s) URL", field="address")
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) < 2:
        raise ValidationError(
            "Repository address must include an organization and a name", field="address"
        )


class RepositoryService:
    """
    Owns every write to repository_jobs.

    Submission applies the duplicate rules; the pipeline worker drives
    Pending -> Processing -> Completed | Failed through the other methods.
    """

    def __init__(self, db: Session):
        self.db = db
        self.jobs = JobRepository(db)
        self.documents = DocumentRepository(db)

    def submit(self, data: RepositorySubmit) -> RepositoryJob:
        """
        Create a Pending job for a repository address.

        Raises:
            RepositoryAlreadyExistsError: a Pending, Processing or Completed job
                exists for the address.
            ValidationError: the address is not a usable repository URL.
        """
        address = normalize_address(data.address)
        _validate_address(address)

        existing = self.jobs.get_by_address(address)
        if existing is not None:
            if existing.status in ACTIVE_STATUSES:
                raise RepositoryAlreadyExistsError(address, existing.status)
            # Failed: replace the old job and everything it produced.
            logger.info(f"Replacing failed job {existing.id} for {address}")
            self.documents.delete_for_job(existing.id)
            self.jobs.delete_by_address(address)

        job = RepositoryJob(
            id=uuid.uuid4().hex,
            address=address,
            git_user_name=data.git_user_name,
            git_password=data.git_password,
            email=data.email,
            status=RepositoryStatus.PENDING.value,
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)

        logger.info(f"Submitted job {job.id} for {address}")
        return job

    def get(self, job_id: str) -> RepositoryJob:
        return self.jobs.get_by_id(job_id)

    def list(self, limit: int = 20, status: Optional[str] = None) -> List[RepositoryJob]:
        return self.jobs.list_recent(limit=limit, status=status)

    def mark_processing(self, job_id: str) -> RepositoryJob:
        job = self.jobs.get_by_id(job_id)
        job.status = RepositoryStatus.PROCESSING.value
        job.error = ''
        job.started_at = datetime.now(timezone.utc)
        job.completed_at = None
        self.db.commit()
        self.db.refresh(job)
        return job

    def update_snapshot(self, job_id: str, snapshot: RepositorySnapshot) -> RepositoryJob:
        """Record the checkout's name, organization, branch and HEAD on the job."""
        job = self.jobs.get_by_id(job_id)
        job.name = snapshot.repository_name
        job.organization_name = snapshot.organization
        job.branch = snapshot.branch
        job.version = snapshot.commit_sha
        self.db.commit()
        self.db.refresh(job)
        return job

    def complete(self, job_id: str) -> RepositoryJob:
        job = self.jobs.get_by_id(job_id)
        job.status = RepositoryStatus.COMPLETED.value
        job.completed_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(job)
        logger.info(f"Job {job_id} completed")
        return job

    def fail(self, job_id: str, error: str) -> RepositoryJob:
        """Mark a job Failed and remove every per-job row written so far."""
        self.db.rollback()
        self.documents.delete_for_job(job_id)
        job = self.jobs.get_by_id(job_id)
        job.status = RepositoryStatus.FAILED.value
        job.error = redact(error)[:MAX_ERROR_CHARS]
        job.completed_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(job)
        logger.warning(f"Job {job_id} failed: {job.error[:200]}")
        return job

    def fail_interrupted(self) -> int:
        """Fail jobs left Processing by a previous process that stopped mid-run."""
        stale = self.jobs.list_by_status(RepositoryStatus.PROCESSING.value)
        for job in stale:
            self.fail(job.id, "Interrupted: the worker stopped while this job was processing")
        return len(stale)
