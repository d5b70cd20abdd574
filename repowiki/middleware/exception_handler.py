"""Renders RepoWikiException subclasses as JSON error responses."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ..exceptions import RepoWikiException

logger = logging.getLogger(__name__)


async def repowiki_exception_handler(request: Request, exc: RepoWikiException) -> JSONResponse:
    """Log the error with request context and return ``exc.to_dict()``.

    Client errors (4xx) are logged as warnings, everything else as errors.
    """
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        level,
        f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code.value}: {exc.message}",
        extra={
            "error_code": exc.error_code.value,
            "status_code": exc.status_code,
            "details": exc.details,
        },
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
