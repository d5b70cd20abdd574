"""Database models."""

from .repository_job import RepositoryJob, RepositoryStatus, ACTIVE_STATUSES
from .document import Document
from .catalog import DocumentCatalog
from .file_item import DocumentFileItem, DocumentFileItemSource
from .commit_record import DocumentCommitRecord
from .overview import DocumentOverview

__all__ = [
    "RepositoryJob", "RepositoryStatus", "ACTIVE_STATUSES",
    "Document", "DocumentCatalog",
    "DocumentFileItem", "DocumentFileItemSource",
    "DocumentCommitRecord", "DocumentOverview",
]
