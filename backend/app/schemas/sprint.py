"""Sprint draft schemas."""
from datetime import date
from typing import Any, Literal

from pydantic import Field, field_validator

from app.schemas.base import CamelModel


class DeliverableSelectionInput(CamelModel):
    deliverable_id: str = Field(..., min_length=1)
    quantity: int | None = None
    complexity_score: float | None = Field(None, gt=0, le=10)
    notes: str | None = None


class SprintDraftCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    sprint_package_id: str | None = None
    deliverables: list[DeliverableSelectionInput] = []
    status: str | None = None
    project_id: str | None = None
    start_date: date | None = None
    due_date: date | None = None
    weeks: int | None = Field(None, ge=1, le=12)
    custom_content: dict[str, Any] | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class SprintDeliverablesReplace(CamelModel):
    deliverables: list[DeliverableSelectionInput] = []


class DailyUpdateCreate(CamelModel):
    sprint_day: int = Field(..., ge=1)
    total_days: int | None = Field(None, ge=1)
    frame: str | None = Field(None, max_length=255)
    body: str = Field(..., min_length=1)


class SprintLinkCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    link_type: Literal["url", "file"] = "url"
    url: str | None = None
    file_url: str | None = None
    file_name: str | None = None
    mimetype: str | None = None
    description: str | None = None
    sort_order: int = 0


class DailySummaryRequest(CamelModel):
    mode: str | None = "preview"
