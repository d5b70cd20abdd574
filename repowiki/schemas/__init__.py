"""Pydantic schemas for request/response validation."""

from .repository import RepositorySubmit, RepositoryJobResponse

__all__ = ["RepositorySubmit", "RepositoryJobResponse"]
