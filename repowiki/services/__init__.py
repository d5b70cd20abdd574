"""Business logic services."""

from .job_queue import JobQueue
from .repository_service import RepositoryService
from .documentation_pipeline import DocumentationPipeline, PipelineResult

__all__ = ["JobQueue", "RepositoryService", "DocumentationPipeline", "PipelineResult"]
