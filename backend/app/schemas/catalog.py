"""Deliverable catalog and sprint package schemas."""
from decimal import Decimal

from pydantic import Field, field_validator

from app.schemas.base import CamelModel


class DeliverableCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str | None = None
    scope: str | None = None
    default_estimate_points: Decimal | None = Field(None, ge=0)
    fixed_hours: Decimal | None = Field(None, ge=0)
    fixed_price: Decimal | None = Field(None, ge=0)
    active: bool = True

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip() if v else v


class DeliverableUpdate(CamelModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    scope: str | None = None
    default_estimate_points: Decimal | None = Field(None, ge=0)
    fixed_hours: Decimal | None = Field(None, ge=0)
    fixed_price: Decimal | None = Field(None, ge=0)
    active: bool | None = None


class DeliverableResponse(CamelModel):
    id: str
    name: str
    description: str | None
    category: str | None
    scope: str | None
    default_estimate_points: float | None
    fixed_hours: float | None
    fixed_price: float | None
    active: bool


class PackageItemInput(CamelModel):
    deliverable_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)
    complexity_score: Decimal | None = Field(None, gt=0, le=10)
    notes: str | None = None


class SprintPackageCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: str | None = None
    tagline: str | None = None
    category: str | None = None
    flat_fee: Decimal | None = Field(None, ge=0)
    flat_hours: Decimal | None = Field(None, ge=0)
    discount_percentage: Decimal | None = Field(None, ge=0, le=100)
    active: bool = True
    featured: bool = False
    sort_order: int = 0
    deliverables: list[PackageItemInput] = []


class SprintPackageUpdate(CamelModel):
    name: str | None = None
    slug: str | None = Field(None, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: str | None = None
    tagline: str | None = None
    category: str | None = None
    flat_fee: Decimal | None = Field(None, ge=0)
    flat_hours: Decimal | None = Field(None, ge=0)
    discount_percentage: Decimal | None = Field(None, ge=0, le=100)
    active: bool | None = None
    featured: bool | None = None
    sort_order: int | None = None
    deliverables: list[PackageItemInput] | None = None
