"""Internal studio task board models."""
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONType, new_id

FOCUS_NOW = "now"
FOCUS_TODAY = "today"


class AdminIdea(Base):
    """Grouping for tasks (an initiative or product idea)."""

    __tablename__ = "admin_ideas"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AdminMilestone(Base):
    __tablename__ = "admin_milestones"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    target_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AdminTask(Base):
    """Task board row. At most one task studio-wide holds focus 'now'."""

    __tablename__ = "admin_tasks"
    __table_args__ = (
        Index(
            "uq_admin_tasks_focus_now",
            "focus",
            unique=True,
            postgresql_where=text("focus = 'now'"),
            sqlite_where=text("focus = 'now'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    idea_id: Mapped[str | None] = mapped_column(
        ForeignKey("admin_ideas.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    parent_task_id: Mapped[str | None] = mapped_column(
        ForeignKey("admin_tasks.id", ondelete="CASCADE"),
        nullable=True,
    )
    milestone_id: Mapped[str | None] = mapped_column(
        ForeignKey("admin_milestones.id", ondelete="SET NULL"),
        nullable=True,
    )
    focus: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sub_sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AdminTaskEvent(Base):
    """Append-only task history. task_id is null once the task is deleted."""

    __tablename__ = "admin_task_events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    task_id: Mapped[str | None] = mapped_column(
        ForeignKey("admin_tasks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    idea_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    event_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
