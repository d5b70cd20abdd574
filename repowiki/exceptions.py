"""Errors surfaced through the HTTP API.

Each subclass fixes its error code and HTTP status; the exception handler
in ``middleware/exception_handler.py`` renders any of them as
``{"error": ..., "message": ..., "details": {...}}``. Pipeline-side
failures (git, planner parsing, retries) use plain exception classes
next to the code that raises them and end up as the job's error text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable codes returned in the ``error`` field."""

    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    REPOSITORY_ALREADY_EXISTS = "REPOSITORY_ALREADY_EXISTS"
    QUEUE_CLOSED = "QUEUE_CLOSED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RepoWikiException(Exception):
    """Base class: a message plus optional structured details."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class JobNotFoundError(RepoWikiException):
    error_code = ErrorCode.JOB_NOT_FOUND
    status_code = 404

    def __init__(self, job_id: str):
        super().__init__(f"Repository job not found: {job_id}", {"job_id": job_id})


class RepositoryAlreadyExistsError(RepoWikiException):
    """A Pending, Processing or Completed job already exists for the address."""

    error_code = ErrorCode.REPOSITORY_ALREADY_EXISTS
    status_code = 409

    def __init__(self, address: str, status: str):
        super().__init__(
            f"Repository already submitted: {address} ({status})",
            {"address": address, "status": status},
        )


class QueueClosedError(RepoWikiException):
    """Submission arrived while the service was shutting down."""

    error_code = ErrorCode.QUEUE_CLOSED
    status_code = 503

    def __init__(self, job_id: str):
        super().__init__(
            "Job queue is closed; the job stays Pending and is restored on restart",
            {"job_id": job_id},
        )


class ValidationError(RepoWikiException):
    error_code = ErrorCode.VALIDATION_ERROR
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)
