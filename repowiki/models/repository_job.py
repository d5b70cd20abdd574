"""Repository job model: one documentation request for one repository."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, DateTime, Index, String, Text
from sqlalchemy.sql import func
from ..database import Base


class RepositoryStatus(str, Enum):
    """Job lifecycle. Transitions only move forward:
    Pending -> Processing -> Completed | Failed."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


# Statuses that block a new submission for the same address.
ACTIVE_STATUSES = (
    RepositoryStatus.PENDING.value,
    RepositoryStatus.PROCESSING.value,
    RepositoryStatus.COMPLETED.value,
)


class RepositoryJob(Base):
    """
    A submitted repository and the state of its documentation run.

    Created by submission, mutated only by the pipeline worker, and replaced
    (never edited back to Pending) when a failed address is resubmitted.
    """

    __tablename__ = "repository_jobs"
    __table_args__ = (
        Index("ix_repository_jobs_address", "address"),
        Index("ix_repository_jobs_status", "status"),
    )

    # Primary key (uuid4 hex)
    id = Column(String(50), primary_key=True)

    # Source address, always normalised to end with ".git"
    address = Column(Text, nullable=False)

    # Optional credentials for private repositories
    git_user_name = Column(String(255), nullable=True)
    git_password = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)

    # Filled in from the checkout on each run
    name = Column(String(255), default='')
    organization_name = Column(String(255), default='')
    branch = Column(String(255), default='')
    version = Column(String(64), default='')  # HEAD commit SHA
    description = Column(Text, default='')

    # Job lifecycle
    # Allowed values: RepositoryStatus members
    status = Column(String(20), nullable=False, default=RepositoryStatus.PENDING.value)
    error = Column(Text, default='')

    # Timestamps
    # Set client-side: restore order needs sub-second resolution.
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
