"""Sprint draft models: the sprint, its deliverable snapshots and its activity."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONType, new_id


class SprintDraft(Base):
    """Sprint instantiated for a client. Totals are derived from its deliverable rows."""

    __tablename__ = "sprint_drafts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    document_id: Mapped[str | None] = mapped_column(
        ForeignKey("documents.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    project_id: Mapped[str | None] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    sprint_package_id: Mapped[str | None] = mapped_column(
        ForeignKey("sprint_packages.id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    draft: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    weeks: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_estimate_points: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total_fixed_hours: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total_fixed_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    deliverable_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    deliverables: Mapped[list["SprintDeliverable"]] = relationship(
        "SprintDeliverable",
        back_populates="sprint_draft",
        order_by="SprintDeliverable.sort_order",
    )


class SprintDeliverable(Base):
    """Deliverable as selected for one sprint. Catalog fields are snapshotted."""

    __tablename__ = "sprint_deliverables"
    __table_args__ = (
        UniqueConstraint("sprint_draft_id", "deliverable_id", name="uq_sprint_deliverables_draft_deliverable"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    sprint_draft_id: Mapped[str] = mapped_column(
        ForeignKey("sprint_drafts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    deliverable_id: Mapped[str | None] = mapped_column(
        ForeignKey("deliverables.id", ondelete="SET NULL"),
        nullable=True,
    )
    deliverable_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deliverable_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    deliverable_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    deliverable_scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    base_points: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    complexity_score: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False, default=Decimal("2.5"))
    custom_estimate_points: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    custom_hours: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    custom_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    sprint_draft: Mapped["SprintDraft"] = relationship("SprintDraft", back_populates="deliverables")


class SprintDraftChangelog(Base):
    """Append-only audit of edits to a sprint draft."""

    __tablename__ = "sprint_draft_changelog"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    sprint_draft_id: Mapped[str] = mapped_column(
        ForeignKey("sprint_drafts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SprintDailyUpdate(Base):
    """Studio progress note for one business day of a sprint."""

    __tablename__ = "sprint_daily_updates"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    sprint_draft_id: Mapped[str] = mapped_column(
        ForeignKey("sprint_drafts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    sprint_day: Mapped[int] = mapped_column(Integer, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    frame: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SprintLink(Base):
    """External link or uploaded file attached to a sprint."""

    __tablename__ = "sprint_links"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    sprint_draft_id: Mapped[str] = mapped_column(
        ForeignKey("sprint_drafts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    link_type: Mapped[str] = mapped_column(String(10), nullable=False, default="url")  # url | file
    url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    file_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mimetype: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
