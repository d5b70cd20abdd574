"""Repository job data access."""

from typing import List, Optional

from ..exceptions import JobNotFoundError
from ..models import RepositoryJob, RepositoryStatus
from .base import BaseRepository


class JobRepository(BaseRepository[RepositoryJob]):
    """Queries over the repository_jobs table."""

    model_class = RepositoryJob
    not_found_error = JobNotFoundError

    def get_by_address(self, address: str) -> Optional[RepositoryJob]:
        """Newest job for a normalised address."""
        return (
            self.query()
            .filter(RepositoryJob.address == address)
            .order_by(RepositoryJob.created_at.desc())
            .first()
        )

    def list_by_status(self, status: str) -> List[RepositoryJob]:
        """Jobs in one status, oldest first."""
        return (
            self.query()
            .filter(RepositoryJob.status == status)
            .order_by(RepositoryJob.created_at.asc())
            .all()
        )

    def list_pending(self) -> List[RepositoryJob]:
        return self.list_by_status(RepositoryStatus.PENDING.value)

    def list_recent(self, limit: int = 20, status: Optional[str] = None) -> List[RepositoryJob]:
        query = self.query()
        if status:
            query = query.filter(RepositoryJob.status == status)
        return query.order_by(RepositoryJob.created_at.desc()).limit(limit).all()

    def delete_by_address(self, address: str) -> int:
        return self.delete_where(RepositoryJob.address == address)
