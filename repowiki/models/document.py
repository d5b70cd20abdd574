"""Document scope model: the root every per-run artifact hangs off."""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.sql import func
from ..database import Base


class Document(Base):
    """One generation run's document scope for a repository job.

    Deleted and re-created at the start of every run, so a job never has
    more than one.
    """

    __tablename__ = "documents"

    id = Column(String(50), primary_key=True)
    repository_id = Column(
        String(50), ForeignKey("repository_jobs.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )

    # Local checkout the run read from
    git_path = Column(Text, nullable=False)

    status = Column(String(20), nullable=False, default="Pending")
    description = Column(Text, default='')

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_update = Column(DateTime(timezone=True), nullable=True)
