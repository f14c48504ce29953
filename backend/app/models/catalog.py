"""Deliverable catalog and sprint package models."""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, new_id


class Deliverable(Base):
    """Catalog template for one unit of design/dev output."""

    __tablename__ = "deliverables"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_estimate_points: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    fixed_hours: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    fixed_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class SprintPackage(Base):
    """Curated bundle of deliverables sold as a unit."""

    __tablename__ = "sprint_packages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tagline: Mapped[str | None] = mapped_column(String(500), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    flat_fee: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    flat_hours: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    discount_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items: Mapped[list["SprintPackageDeliverable"]] = relationship(
        "SprintPackageDeliverable",
        back_populates="package",
        cascade="all, delete-orphan",
        order_by="SprintPackageDeliverable.sort_order",
    )


class SprintPackageDeliverable(Base):
    """Deliverable line within a package. complexity_score 2.5 is standard."""

    __tablename__ = "sprint_package_deliverables"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    sprint_package_id: Mapped[str] = mapped_column(
        ForeignKey("sprint_packages.id", ondelete="CASCADE"),
        nullable=False,
    )
    deliverable_id: Mapped[str] = mapped_column(
        ForeignKey("deliverables.id", ondelete="CASCADE"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    complexity_score: Mapped[Decimal | None] = mapped_column(Numeric(4, 2), nullable=True, default=Decimal("2.5"))

    package: Mapped["SprintPackage"] = relationship("SprintPackage", back_populates="items")
    deliverable: Mapped["Deliverable"] = relationship("Deliverable", lazy="joined")
