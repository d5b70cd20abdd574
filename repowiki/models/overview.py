"""Project overview model."""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.sql import func
from ..database import Base


class DocumentOverview(Base):
    """Narrative overview of the project, at most one per document scope."""

    __tablename__ = "document_overviews"

    id = Column(String(50), primary_key=True)
    document_id = Column(
        String(50), ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    title = Column(String(255), default='')
    content = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
