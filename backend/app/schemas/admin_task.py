"""Admin task board schemas. The board speaks snake_case."""
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


class TaskCreate(BaseModel):
    name: str = Field(..., max_length=500)
    note: str | None = None
    idea_id: str | None = None
    parent_task_id: str | None = None
    milestone_id: str | None = None
    focus: str = ""
    position: Literal["top", "bottom"] | None = None


class ReorderItem(BaseModel):
    id: str
    sort_order: int | None = None
    sub_sort_order: int | None = None


class TaskUpdate(BaseModel):
    id: str | None = None
    name: str | None = None
    note: str | None = None
    completed: bool | None = None
    focus: str | None = None
    milestone_id: str | None = None
    reorder: list[ReorderItem] | None = None


class IdeaCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    summary: str | None = None


class MilestoneCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    target_date: date | None = None
