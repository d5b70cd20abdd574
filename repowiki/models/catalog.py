"""Document catalog model: one persisted node of the topic tree."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func
from ..database import Base


class DocumentCatalog(Base):
    """A topic in a job's table of contents.

    ``parent_id`` is NULL for top-level topics. ``order`` is the 0-based
    position among siblings, fixed before any content is generated.
    """

    __tablename__ = "document_catalogs"

    id = Column(String(50), primary_key=True)
    repository_id = Column(
        String(50), ForeignKey("repository_jobs.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    document_id = Column(
        String(50), ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    parent_id = Column(String(50), nullable=True, index=True)

    name = Column(String(255), nullable=False)
    url = Column(String(255), default='')  # lowercase, hyphenated slug
    description = Column(Text, default='')
    prompt = Column(Text, default='')
    order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
