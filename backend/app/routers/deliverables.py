"""Deliverable catalog API routes."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_optional_user, require_admin
from app.database import get_db
from app.models.account import Account
from app.models.catalog import Deliverable
from app.schemas.catalog import DeliverableCreate, DeliverableResponse, DeliverableUpdate

router = APIRouter(prefix="/deliverables", tags=["deliverables"])


def _to_response(d: Deliverable) -> dict:
    return DeliverableResponse.model_validate(d).model_dump(by_alias=True, mode="json")


@router.get("")
async def list_deliverables(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account | None, Depends(get_optional_user)],
    include_inactive: Annotated[bool, Query(alias="includeInactive")] = False,
    category: str | None = None,
):
    stmt = select(Deliverable).order_by(Deliverable.category, Deliverable.name)
    if not (include_inactive and user and user.is_admin):
        stmt = stmt.where(Deliverable.active.is_(True))
    if category:
        stmt = stmt.where(Deliverable.category == category)
    result = await db.execute(stmt)
    return {"deliverables": [_to_response(d) for d in result.scalars().all()]}


@router.get("/{deliverable_id}")
async def get_deliverable(
    deliverable_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    deliverable = await db.get(Deliverable, deliverable_id)
    if not deliverable:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deliverable not found")
    return {"deliverable": _to_response(deliverable)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_deliverable(
    data: DeliverableCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Account, Depends(require_admin)],
):
    deliverable = Deliverable(**data.model_dump())
    db.add(deliverable)
    await db.flush()
    await db.refresh(deliverable)
    return {"deliverable": _to_response(deliverable)}


@router.patch("/{deliverable_id}")
async def update_deliverable(
    deliverable_id: str,
    data: DeliverableUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Account, Depends(require_admin)],
):
    deliverable = await db.get(Deliverable, deliverable_id)
    if not deliverable:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deliverable not found")
    for k, v in data.model_dump(exclude_unset=True).items():
        setattr(deliverable, k, v)
    await db.flush()
    await db.refresh(deliverable)
    return {"deliverable": _to_response(deliverable)}
