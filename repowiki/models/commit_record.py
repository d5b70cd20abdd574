"""Commit summary model: the generated changelog for a repository job."""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.sql import func
from ..database import Base


class DocumentCommitRecord(Base):
    """Changelog text plus the most recent committer, one per job run."""

    __tablename__ = "document_commit_records"

    id = Column(String(50), primary_key=True)
    repository_id = Column(
        String(50), ForeignKey("repository_jobs.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )

    commit_id = Column(String(64), default='')  # HEAD at generation time
    commit_message = Column(Text, nullable=False)  # generated changelog
    author = Column(String(255), default='')

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_update = Column(DateTime(timezone=True), server_default=func.now())
