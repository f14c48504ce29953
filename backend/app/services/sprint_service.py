"""Sprint composition: catalog or package rows -> pricing selections -> sprint rows and totals."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import get_settings
from app.engine.pricing import PackageQuote, PricingEngine, PricingTotals
from app.models.account import Account
from app.models.catalog import Deliverable, SprintPackage, SprintPackageDeliverable
from app.models.project import Document, Project
from app.models.sprint import (
    SprintDailyUpdate,
    SprintDeliverable,
    SprintDraft,
    SprintDraftChangelog,
    SprintLink,
)

logger = logging.getLogger(__name__)

STANDARD_COMPLEXITY = Decimal("2.5")


@dataclass
class ResolvedItem:
    """A catalog deliverable with the quantity/complexity chosen for one sprint."""

    deliverable: Deliverable
    quantity: int = 1
    complexity_score: Decimal = STANDARD_COMPLEXITY
    notes: str | None = None
    base_points: Decimal | None = None

    @property
    def points(self) -> Decimal:
        if self.base_points is not None:
            return self.base_points
        return self.deliverable.default_estimate_points or Decimal(0)


@dataclass
class CreatedSprint:
    draft: SprintDraft
    document: Document
    totals: PricingTotals
    project: Project | None = None
    final_price: Decimal | None = None
    final_hours: Decimal | None = None

    def response(self) -> dict[str, Any]:
        price = self.final_price if self.final_price is not None else self.totals.price
        hours = self.final_hours if self.final_hours is not None else self.totals.hours
        body = {
            "sprintDraftId": self.draft.id,
            "documentId": self.document.id,
            "totalComplexity": float(PricingEngine._round(self.totals.points, 1)),
            "totalPrice": int(PricingEngine._round(price, 0)),
            "totalHours": int(PricingEngine._round(hours, 0)),
        }
        if self.project is not None:
            body["projectId"] = self.project.id
        return body


def _clamp_quantity(quantity: Any) -> int:
    try:
        qty = int(quantity) if quantity is not None else 1
    except (TypeError, ValueError):
        qty = 1
    return max(qty, 1)


def merge_selections(selections: Iterable[Any]) -> list[dict[str, Any]]:
    """Collapse repeated deliverable ids into one entry with summed quantity, keeping first-seen order."""
    merged: dict[str, dict[str, Any]] = {}
    for sel in selections:
        deliverable_id = (getattr(sel, "deliverable_id", None) or "").strip()
        if not deliverable_id:
            continue
        qty = _clamp_quantity(getattr(sel, "quantity", None))
        if deliverable_id in merged:
            merged[deliverable_id]["quantity"] += qty
            continue
        merged[deliverable_id] = {
            "deliverable_id": deliverable_id,
            "quantity": qty,
            "complexity_score": getattr(sel, "complexity_score", None),
            "notes": getattr(sel, "notes", None),
        }
    return list(merged.values())


async def resolve_catalog_selections(db: AsyncSession, selections: Iterable[Any]) -> list[ResolvedItem]:
    """Look up each selected deliverable; unknown ids are skipped."""
    merged = merge_selections(selections)
    if not merged:
        return []
    ids = [m["deliverable_id"] for m in merged]
    result = await db.execute(select(Deliverable).where(Deliverable.id.in_(ids)))
    by_id = {d.id: d for d in result.scalars().all()}
    items: list[ResolvedItem] = []
    for m in merged:
        deliverable = by_id.get(m["deliverable_id"])
        if deliverable is None:
            logger.info("Skipping unknown deliverable %s", m["deliverable_id"])
            continue
        score = m["complexity_score"]
        items.append(
            ResolvedItem(
                deliverable=deliverable,
                quantity=m["quantity"],
                complexity_score=Decimal(str(score)) if score else STANDARD_COMPLEXITY,
                notes=m["notes"],
            )
        )
    return items


def resolve_package_items(package: SprintPackage, active_only: bool = True) -> list[ResolvedItem]:
    items: list[ResolvedItem] = []
    for line in package.items:
        if line.deliverable is None or (active_only and not line.deliverable.active):
            continue
        items.append(
            ResolvedItem(
                deliverable=line.deliverable,
                quantity=_clamp_quantity(line.quantity),
                complexity_score=line.complexity_score or STANDARD_COMPLEXITY,
                notes=line.notes,
            )
        )
    return items


def price_items(items: Iterable[ResolvedItem], engine: PricingEngine | None = None) -> PricingTotals:
    engine = engine or PricingEngine()
    return engine.calculate(
        engine.selection(item.points, item.quantity, item.complexity_score) for item in items
    )


def price_rows(rows: Iterable[SprintDeliverable], engine: PricingEngine | None = None) -> PricingTotals:
    """Totals from stored sprint rows. A custom point estimate overrides the snapshot."""
    engine = engine or PricingEngine()
    return engine.calculate(
        engine.selection(
            row.custom_estimate_points if row.custom_estimate_points is not None else row.base_points,
            row.quantity,
            row.complexity_score,
        )
        for row in rows
    )


def _snapshot_row(draft_id: str, item: ResolvedItem, sort_order: int) -> SprintDeliverable:
    d = item.deliverable
    return SprintDeliverable(
        sprint_draft_id=draft_id,
        deliverable_id=d.id,
        deliverable_name=d.name,
        deliverable_description=d.description,
        deliverable_category=d.category,
        deliverable_scope=d.scope,
        base_points=item.points,
        quantity=item.quantity,
        complexity_score=item.complexity_score,
        notes=item.notes,
        sort_order=sort_order,
    )


async def write_deliverable_rows(db: AsyncSession, draft: SprintDraft, items: list[ResolvedItem]) -> list[SprintDeliverable]:
    rows = [_snapshot_row(draft.id, item, idx) for idx, item in enumerate(items)]
    db.add_all(rows)
    await db.flush()
    return rows


def apply_totals(draft: SprintDraft, totals: PricingTotals) -> None:
    draft.total_estimate_points = totals.points
    draft.total_fixed_hours = totals.hours
    draft.total_fixed_price = totals.price
    draft.deliverable_count = totals.deliverable_count


def quote_for_package(engine: PricingEngine, totals: PricingTotals, package: SprintPackage) -> PackageQuote:
    return engine.quote_package(totals, package.flat_fee, package.flat_hours, package.discount_percentage)


def apply_quote(draft: SprintDraft, quote: PackageQuote) -> None:
    # package overrides are what the client pays
    draft.total_fixed_price = quote.final_price
    draft.total_fixed_hours = quote.hours


async def recalculate_totals(db: AsyncSession, draft: SprintDraft, engine: PricingEngine | None = None) -> PricingTotals:
    """Recompute stored totals from the rows; a linked package keeps its flat fee / discount."""
    engine = engine or PricingEngine()
    result = await db.execute(select(SprintDeliverable).where(SprintDeliverable.sprint_draft_id == draft.id))
    totals = price_rows(result.scalars().all(), engine)
    apply_totals(draft, totals)
    if draft.sprint_package_id:
        package = await db.get(SprintPackage, draft.sprint_package_id)
        if package is not None:
            apply_quote(draft, quote_for_package(engine, totals, package))
    await db.flush()
    return totals


async def log_change(
    db: AsyncSession,
    draft_id: str,
    account_id: str | None,
    action: str,
    summary: str,
    details: dict[str, Any] | None = None,
) -> None:
    """Append a changelog row in a savepoint. A failure is logged and does not abort the edit."""
    try:
        async with db.begin_nested():
            db.add(
                SprintDraftChangelog(
                    sprint_draft_id=draft_id,
                    account_id=account_id,
                    action=action,
                    summary=summary,
                    details=details,
                )
            )
    except SQLAlchemyError:
        logger.exception("Failed to write sprint changelog", extra={"sprint_draft_id": draft_id})


def _due_date(start: date | None, weeks: int) -> date | None:
    if start is None:
        return None
    # business-day sprint ending on the Friday of the last week
    return start + timedelta(days=weeks * 7 - 3)


async def create_manual_draft(db: AsyncSession, user: Account, data) -> CreatedSprint:
    """Admin-built sprint from a package id or an explicit deliverable list."""
    settings = get_settings()
    title = data.title.strip()
    document = Document(
        content={"source": "manual", "title": title, "created_at": datetime.now(timezone.utc).isoformat()},
        filename="manual-sprint",
        project_id=data.project_id,
    )
    db.add(document)
    await db.flush()

    package = None
    if data.sprint_package_id:
        package = await get_package(db, data.sprint_package_id.strip(), active_only=False)
    if package is not None:
        items = resolve_package_items(package, active_only=False)
    else:
        items = await resolve_catalog_selections(db, data.deliverables)

    weeks = data.weeks or settings.default_sprint_weeks
    draft = SprintDraft(
        document_id=document.id,
        project_id=data.project_id,
        sprint_package_id=package.id if package else None,
        title=title,
        status=(data.status or "").strip() or "draft",
        draft={"sprintTitle": title, "source": "manual", **(data.custom_content or {})},
        weeks=weeks,
        start_date=data.start_date,
        due_date=data.due_date or _due_date(data.start_date, weeks),
    )
    db.add(draft)
    await db.flush()

    await write_deliverable_rows(db, draft, items)
    engine = PricingEngine()
    totals = price_items(items, engine)
    apply_totals(draft, totals)
    quote = None
    if package is not None:
        quote = quote_for_package(engine, totals, package)
        apply_quote(draft, quote)
    await db.flush()
    await log_change(
        db,
        draft.id,
        user.id,
        "created",
        f"Created sprint with {totals.deliverable_count} deliverable(s)",
        {"source": "manual", "sprintPackageId": draft.sprint_package_id},
    )
    logger.info("Created manual sprint draft", extra={"sprint_draft_id": draft.id})
    return CreatedSprint(
        draft=draft,
        document=document,
        totals=totals,
        final_price=quote.final_price if quote else None,
        final_hours=quote.hours if quote else None,
    )


async def get_package(db: AsyncSession, id_or_slug: str, active_only: bool = True) -> SprintPackage | None:
    stmt = (
        select(SprintPackage)
        .where(or_(SprintPackage.id == id_or_slug, SprintPackage.slug == id_or_slug))
        .options(selectinload(SprintPackage.items).joinedload(SprintPackageDeliverable.deliverable))
    )
    if active_only:
        stmt = stmt.where(SprintPackage.active.is_(True))
    result = await db.execute(stmt)
    return result.unique().scalar_one_or_none()


def build_package_draft_content(package: SprintPackage, items: list[ResolvedItem], weeks: int) -> dict[str, Any]:
    deliverables = [
        {
            "deliverableId": item.deliverable.id,
            "name": item.deliverable.name,
            "reason": f"Included in {package.name} package",
        }
        for item in items
    ]
    half = (len(deliverables) + 1) // 2
    return {
        "sprintTitle": package.name,
        "sprintPackageId": package.id,
        "approach": package.description or f"Complete {package.name} in a {weeks}-week sprint",
        "deliverables": deliverables,
        "goals": [
            f"Complete all deliverables in {package.name}",
            f"Deliver high-quality results within {weeks} weeks",
        ],
        "week1": {
            "overview": "Week 1 focuses on alignment, exploration, and direction setting",
            "goals": [
                "Kickoff workshop and alignment",
                "Initial exploration and concepts",
                "Feedback incorporation and direction lock",
            ],
            "deliverables": deliverables[:half],
        },
        "week2": {
            "overview": "Week 2 focuses on execution, refinement, and final delivery",
            "goals": [
                "Execute on locked direction",
                "Refine and polish deliverables",
                "Prepare final handoff",
            ],
            "deliverables": deliverables[half:],
        },
        "backlog": [
            {
                "id": f"TASK-{idx + 1}",
                "title": item.deliverable.name,
                "description": item.deliverable.description
                or item.deliverable.scope
                or f"Complete {item.deliverable.name} deliverable",
                "status": "todo",
                "points": float(item.points) if item.points else 3,
                "owner": "team",
                "acceptance": f"{item.deliverable.name} completed and meets quality standards",
            }
            for idx, item in enumerate(items)
        ],
    }


async def _project_for_purchase(db: AsyncSession, user: Account, package: SprintPackage) -> Project:
    result = await db.execute(
        select(Project)
        .where(Project.account_id == user.id, Project.name == package.name)
        .order_by(Project.created_at.desc())
        .limit(1)
    )
    project = result.scalar_one_or_none()
    if project is None:
        project = Project(account_id=user.id, name=package.name)
        db.add(project)
        await db.flush()
    return project


async def purchase_package(db: AsyncSession, user: Account, package: SprintPackage) -> CreatedSprint:
    """Client self-serve purchase: project, document, draft and snapshot rows in one transaction."""
    settings = get_settings()
    engine = PricingEngine()
    items = resolve_package_items(package)
    totals = price_items(items, engine)
    quote = quote_for_package(engine, totals, package)

    project = await _project_for_purchase(db, user, package)
    document = Document(
        content={
            "source": "package_selection",
            "packageId": package.id,
            "packageSlug": package.slug,
            "packageName": package.name,
            "accountId": user.id,
            "email": user.email,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        },
        filename=f"package-{package.slug}",
        email=user.email,
        account_id=user.id,
        project_id=project.id,
    )
    db.add(document)
    await db.flush()

    weeks = settings.default_sprint_weeks
    draft = SprintDraft(
        document_id=document.id,
        project_id=project.id,
        sprint_package_id=package.id,
        title=package.name,
        status="draft",
        draft=build_package_draft_content(package, items, weeks),
        weeks=weeks,
    )
    db.add(draft)
    await db.flush()

    await write_deliverable_rows(db, draft, items)
    apply_totals(draft, totals)
    apply_quote(draft, quote)
    await db.flush()
    await log_change(
        db,
        draft.id,
        user.id,
        "created",
        f"Purchased package {package.name}",
        {"source": "package_selection", "packageId": package.id},
    )
    logger.info(
        "Package purchased",
        extra={"sprint_draft_id": draft.id, "package_id": package.id, "project_id": project.id},
    )
    return CreatedSprint(
        draft=draft,
        document=document,
        totals=totals,
        project=project,
        final_price=quote.final_price,
        final_hours=quote.hours,
    )


async def replace_deliverables(db: AsyncSession, draft: SprintDraft, selections: Iterable[Any], user: Account) -> PricingTotals:
    """Swap the sprint's deliverable set and recompute its totals."""
    before = draft.deliverable_count
    await db.execute(delete(SprintDeliverable).where(SprintDeliverable.sprint_draft_id == draft.id))
    items = await resolve_catalog_selections(db, selections)
    await write_deliverable_rows(db, draft, items)
    totals = await recalculate_totals(db, draft)
    await log_change(
        db,
        draft.id,
        user.id,
        "deliverables_replaced",
        f"Deliverables updated ({before} -> {totals.deliverable_count})",
        {"deliverableIds": [item.deliverable.id for item in items]},
    )
    return totals


async def delete_draft(db: AsyncSession, draft: SprintDraft) -> None:
    """Remove the draft, everything hanging off it, and its backing document."""
    draft_id = draft.id
    document_id = draft.document_id
    for model in (SprintDeliverable, SprintDailyUpdate, SprintLink, SprintDraftChangelog):
        await db.execute(delete(model).where(model.sprint_draft_id == draft_id))
    await db.execute(delete(SprintDraft).where(SprintDraft.id == draft_id))
    if document_id:
        still_used = await db.execute(
            select(SprintDraft.id).where(SprintDraft.document_id == document_id).limit(1)
        )
        if still_used.scalar_one_or_none() is None:
            await db.execute(delete(Document).where(Document.id == document_id))
    logger.info("Deleted sprint draft", extra={"sprint_draft_id": draft_id})
