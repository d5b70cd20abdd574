"""API routes."""

from .repositories import router as repositories_router
