"""Project and project member schemas."""
from pydantic import Field

from app.schemas.base import CamelModel


class ProjectCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)


class ProjectResponse(CamelModel):
    id: str
    name: str
    status: str
    account_id: str | None
    created_at: str


class ProjectMemberCreate(CamelModel):
    project_id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, max_length=255)
    title: str | None = Field(None, max_length=255)


class ProjectMemberUpdate(CamelModel):
    project_id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, max_length=255)
    title: str | None = Field(None, max_length=255)


class ProjectMemberResponse(CamelModel):
    email: str
    title: str | None
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    added_by_account: str | None = None
    created_at: str | None = None
