"""Sprint package API routes: catalog, detail with pricing, admin curation, purchase."""
import logging
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth.deps import get_optional_user, require_admin
from app.database import get_db
from app.engine.pricing import PricingEngine
from app.models.account import Account
from app.models.catalog import Deliverable, SprintPackage, SprintPackageDeliverable
from app.schemas.catalog import PackageItemInput, SprintPackageCreate, SprintPackageUpdate
from app.services import sprint_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sprint-packages", tags=["sprint-packages"])


def _num(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def serialize_package(package: SprintPackage, engine: PricingEngine, include_inactive: bool = False) -> dict:
    items = sprint_service.resolve_package_items(package, active_only=not include_inactive)
    totals = sprint_service.price_items(items, engine)
    quote = engine.quote_package(totals, package.flat_fee, package.flat_hours, package.discount_percentage)
    deliverables = []
    for item in items:
        multiplier = engine.complexity_multiplier(item.complexity_score)
        points = item.points * item.quantity
        adjusted = points * multiplier
        d = item.deliverable
        deliverables.append({
            "deliverableId": d.id,
            "name": d.name,
            "description": d.description,
            "category": d.category,
            "scope": d.scope,
            "quantity": item.quantity,
            "notes": item.notes,
            "complexityScore": float(item.complexity_score),
            "complexityMultiplier": float(multiplier),
            "basePoints": float(item.points),
            # line price excludes the once-per-sprint base fee
            "points": float(engine._round(points, 1)),
            "hours": int(engine._round(engine.hours_from_points(adjusted), 0)),
            "price": int(engine._round(adjusted * engine.price_per_point, 0)),
        })
    return {
        "id": package.id,
        "name": package.name,
        "slug": package.slug,
        "description": package.description,
        "tagline": package.tagline,
        "category": package.category,
        "flatFee": _num(package.flat_fee),
        "flatHours": _num(package.flat_hours),
        "discountPercentage": _num(package.discount_percentage),
        "active": package.active,
        "featured": package.featured,
        "sortOrder": package.sort_order,
        "deliverables": deliverables,
        "pricing": quote.display(),
        "formula": engine.formula_text(),
    }


async def _build_items(db: AsyncSession, inputs: list[PackageItemInput]) -> list[SprintPackageDeliverable]:
    ids = [i.deliverable_id for i in inputs]
    found = set((await db.execute(select(Deliverable.id).where(Deliverable.id.in_(ids)))).scalars().all())
    missing = [i for i in ids if i not in found]
    if missing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown deliverable: {missing[0]}")
    seen: set[str] = set()
    items = []
    for idx, item in enumerate(inputs):
        if item.deliverable_id in seen:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Deliverable listed twice: {item.deliverable_id}",
            )
        seen.add(item.deliverable_id)
        items.append(
            SprintPackageDeliverable(
                deliverable_id=item.deliverable_id,
                quantity=item.quantity,
                complexity_score=item.complexity_score if item.complexity_score is not None else Decimal("2.5"),
                notes=item.notes,
                sort_order=idx,
            )
        )
    return items


async def _slug_taken(db: AsyncSession, slug: str, exclude_id: str | None = None) -> bool:
    stmt = select(SprintPackage.id).where(SprintPackage.slug == slug)
    if exclude_id:
        stmt = stmt.where(SprintPackage.id != exclude_id)
    return (await db.execute(stmt.limit(1))).scalar_one_or_none() is not None


async def _reload(db: AsyncSession, package_id: str) -> SprintPackage:
    db.expire_all()
    package = await sprint_service.get_package(db, package_id, active_only=False)
    if package is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Package not found")
    return package


@router.get("")
async def list_packages(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account | None, Depends(get_optional_user)],
    include_inactive: Annotated[bool, Query(alias="includeInactive")] = False,
):
    show_all = include_inactive and user is not None and user.is_admin
    stmt = (
        select(SprintPackage)
        .options(selectinload(SprintPackage.items).joinedload(SprintPackageDeliverable.deliverable))
        .order_by(SprintPackage.featured.desc(), SprintPackage.sort_order, SprintPackage.name)
    )
    if not show_all:
        stmt = stmt.where(SprintPackage.active.is_(True))
    result = await db.execute(stmt)
    engine = PricingEngine()
    return {"packages": [serialize_package(p, engine, show_all) for p in result.unique().scalars().all()]}


@router.get("/{id_or_slug}")
async def get_package(
    id_or_slug: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account | None, Depends(get_optional_user)],
):
    is_admin = user is not None and user.is_admin
    package = await sprint_service.get_package(db, id_or_slug, active_only=not is_admin)
    if package is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Package not found")
    return {"package": serialize_package(package, PricingEngine(), include_inactive=is_admin)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_package(
    data: SprintPackageCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Account, Depends(require_admin)],
):
    if await _slug_taken(db, data.slug):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug already exists")
    fields = data.model_dump(exclude={"deliverables"})
    package = SprintPackage(**fields)
    package.items = await _build_items(db, data.deliverables)
    db.add(package)
    await db.flush()
    logger.info("Created sprint package", extra={"package_id": package.id})
    package = await _reload(db, package.id)
    return {"package": serialize_package(package, PricingEngine(), include_inactive=True)}


@router.patch("/{package_id}")
async def update_package(
    package_id: str,
    data: SprintPackageUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Account, Depends(require_admin)],
):
    package = await sprint_service.get_package(db, package_id, active_only=False)
    if package is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Package not found")
    updates = data.model_dump(exclude_unset=True)
    if updates.get("slug") and await _slug_taken(db, updates["slug"], exclude_id=package.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug already exists")
    deliverables = updates.pop("deliverables", None)
    for k, v in updates.items():
        setattr(package, k, v)
    if deliverables is not None:
        package.items.clear()
        await db.flush()
        package.items.extend(await _build_items(db, data.deliverables or []))
    await db.flush()
    package = await _reload(db, package.id)
    return {"package": serialize_package(package, PricingEngine(), include_inactive=True)}


@router.delete("/{package_id}")
async def delete_package(
    package_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Account, Depends(require_admin)],
):
    package = await sprint_service.get_package(db, package_id, active_only=False)
    if package is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Package not found")
    await db.delete(package)
    await db.flush()
    return {"success": True}


@router.post("/{id_or_slug}/purchase", status_code=status.HTTP_201_CREATED)
async def purchase_package(
    id_or_slug: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account | None, Depends(get_optional_user)],
):
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required. Please log in to continue.",
        )
    package = await sprint_service.get_package(db, id_or_slug, active_only=True)
    if package is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Package not found or is not available")
    created = await sprint_service.purchase_package(db, user, package)
    return created.response()
