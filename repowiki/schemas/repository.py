"""Repository submission and job status schemas."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional


class RepositorySubmit(BaseModel):
    """Request to document a repository."""
    address: str = Field(..., min_length=1, max_length=2000)
    git_user_name: Optional[str] = Field(None, max_length=255)
    git_password: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)

    @field_validator('address')
    @classmethod
    def address_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("address must not be blank")
        return v.strip()


class RepositoryJobResponse(BaseModel):
    """Schema for repository job status. Credentials are never returned."""
    id: str
    address: str
    name: Optional[str] = None
    organization_name: Optional[str] = None
    branch: Optional[str] = None
    version: Optional[str] = None
    status: str
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
