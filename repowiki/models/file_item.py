"""Generated document models: topic bodies and their source attribution."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class DocumentFileItem(Base):
    """Generated body for one catalog node."""

    __tablename__ = "document_file_items"

    id = Column(String(50), primary_key=True)
    catalog_id = Column(
        String(50), ForeignKey("document_catalogs.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, default='')
    content = Column(Text, nullable=False)
    size = Column(Integer, default=0)

    # Usage counters from the completion service
    request_token = Column(Integer, default=0)
    response_token = Column(Integer, default=0)
    elapsed_ms = Column(Integer, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sources = relationship(
        "DocumentFileItemSource",
        back_populates="file_item",
        cascade="all, delete-orphan",
    )


class DocumentFileItemSource(Base):
    """A repository file the model read while generating a file item."""

    __tablename__ = "document_file_item_sources"

    id = Column(String(50), primary_key=True)
    file_item_id = Column(
        String(50), ForeignKey("document_file_items.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    address = Column(Text, nullable=False)  # repository-relative path
    name = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    file_item = relationship("DocumentFileItem", back_populates="sources")
