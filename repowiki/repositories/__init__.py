"""Data access repositories."""

from .base import BaseRepository
from .job_repository import JobRepository
from .document_repository import DocumentRepository

__all__ = [
    "BaseRepository",
    "JobRepository",
    "DocumentRepository",
]
