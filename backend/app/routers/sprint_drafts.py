"""Sprint draft API routes."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_current_user, get_optional_user, require_admin
from app.auth.rbac import is_project_member
from app.database import get_db
from app.engine.pricing import PricingEngine
from app.models.account import Account
from app.models.project import Document, Project
from app.models.sprint import SprintDailyUpdate, SprintDeliverable, SprintDraft, SprintLink
from app.schemas.sprint import (
    DailySummaryRequest,
    DailyUpdateCreate,
    SprintDeliverablesReplace,
    SprintDraftCreate,
    SprintLinkCreate,
)
from app.services import ai_service, daily_summary, sprint_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sprint-drafts", tags=["sprint-drafts"])

NOT_FOUND = "Sprint draft not found"


def _num(value) -> float:
    return float(value) if value is not None else 0.0


def _iso(value) -> str | None:
    return value.isoformat() if value else None


async def _owner_ids(db: AsyncSession, draft: SprintDraft) -> set[str]:
    owners: set[str] = set()
    if draft.document_id:
        document = await db.get(Document, draft.document_id)
        if document and document.account_id:
            owners.add(document.account_id)
    if draft.project_id:
        project = await db.get(Project, draft.project_id)
        if project and project.account_id:
            owners.add(project.account_id)
    return owners


async def _is_owner(db: AsyncSession, draft: SprintDraft, user: Account) -> bool:
    return user.id in await _owner_ids(db, draft)


async def _can_view(db: AsyncSession, draft: SprintDraft, user: Account) -> bool:
    if user.is_admin or await _is_owner(db, draft, user):
        return True
    return bool(draft.project_id) and await is_project_member(db, draft.project_id, user.email)


async def _get_viewable(db: AsyncSession, draft_id: str, user: Account) -> SprintDraft:
    """404 rather than 403 so draft ids don't leak."""
    draft = await db.get(SprintDraft, draft_id)
    if draft is None or not await _can_view(db, draft, user):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    return draft


def serialize_deliverable(row: SprintDeliverable) -> dict:
    return {
        "id": row.id,
        "deliverableId": row.deliverable_id,
        "name": row.deliverable_name,
        "description": row.deliverable_description,
        "category": row.deliverable_category,
        "scope": row.deliverable_scope,
        "basePoints": _num(row.base_points),
        "quantity": row.quantity,
        "complexityScore": _num(row.complexity_score),
        "customEstimatePoints": _num(row.custom_estimate_points) if row.custom_estimate_points is not None else None,
        "customHours": _num(row.custom_hours) if row.custom_hours is not None else None,
        "customPrice": _num(row.custom_price) if row.custom_price is not None else None,
        "notes": row.notes,
        "deliveryUrl": row.delivery_url,
    }


def serialize_draft(draft: SprintDraft, rows: list[SprintDeliverable]) -> dict:
    return {
        "id": draft.id,
        "title": draft.title,
        "status": draft.status,
        "documentId": draft.document_id,
        "projectId": draft.project_id,
        "sprintPackageId": draft.sprint_package_id,
        "weeks": draft.weeks,
        "startDate": _iso(draft.start_date),
        "dueDate": _iso(draft.due_date),
        "draft": draft.draft,
        "totals": {
            "points": _num(draft.total_estimate_points),
            "hours": _num(draft.total_fixed_hours),
            "price": _num(draft.total_fixed_price),
            "deliverableCount": draft.deliverable_count,
        },
        "deliverables": [serialize_deliverable(r) for r in rows],
        "createdAt": _iso(draft.created_at),
        "updatedAt": _iso(draft.updated_at),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_sprint_draft(
    data: SprintDraftCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Account, Depends(require_admin)],
):
    if data.project_id and await db.get(Project, data.project_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if data.sprint_package_id and data.sprint_package_id.strip():
        package = await sprint_service.get_package(db, data.sprint_package_id.strip(), active_only=False)
        if package is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Package not found")
    created = await sprint_service.create_manual_draft(db, admin, data)
    return created.response()


@router.delete("")
async def delete_sprint_draft(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
    draft_id: Annotated[str | None, Query(alias="id")] = None,
):
    if not draft_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Sprint draft id is required")
    draft = await db.get(SprintDraft, draft_id)
    if draft is None or not (user.is_admin or await _is_owner(db, draft, user)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    await sprint_service.delete_draft(db, draft)
    return {"success": True}


@router.get("/{draft_id}")
async def get_sprint_draft(
    draft_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
):
    draft = await _get_viewable(db, draft_id, user)
    rows = (
        await db.execute(
            select(SprintDeliverable)
            .where(SprintDeliverable.sprint_draft_id == draft.id)
            .order_by(SprintDeliverable.sort_order)
        )
    ).scalars().all()
    return {"sprintDraft": serialize_draft(draft, list(rows))}


@router.put("/{draft_id}/deliverables")
async def replace_sprint_deliverables(
    draft_id: str,
    data: SprintDeliverablesReplace,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Account, Depends(require_admin)],
):
    draft = await db.get(SprintDraft, draft_id)
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    totals = await sprint_service.replace_deliverables(db, draft, data.deliverables, admin)
    return {
        "sprintDraftId": draft.id,
        "deliverableCount": totals.deliverable_count,
        "totalComplexity": totals.display()["points"],
        "totalPrice": int(PricingEngine._round(draft.total_fixed_price, 0)),
        "totalHours": int(PricingEngine._round(draft.total_fixed_hours, 0)),
    }


# ── Daily updates ────────────────────────────────────────────────────────────


@router.get("/{draft_id}/daily-updates")
async def list_daily_updates(
    draft_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
):
    await _get_viewable(db, draft_id, user)
    result = await db.execute(
        select(SprintDailyUpdate, Account)
        .join(Account, SprintDailyUpdate.account_id == Account.id)
        .where(SprintDailyUpdate.sprint_draft_id == draft_id)
        .order_by(SprintDailyUpdate.sprint_day.desc(), SprintDailyUpdate.created_at.desc())
    )
    return {
        "updates": [
            {
                "id": u.id,
                "sprintDay": u.sprint_day,
                "totalDays": u.total_days,
                "frame": u.frame,
                "body": u.body,
                "authorName": author.display_name,
                "createdAt": _iso(u.created_at),
            }
            for u, author in result.all()
        ]
    }


@router.post("/{draft_id}/daily-updates", status_code=status.HTTP_201_CREATED)
async def create_daily_update(
    draft_id: str,
    data: DailyUpdateCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Account, Depends(require_admin)],
):
    draft = await db.get(SprintDraft, draft_id)
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    total_days = data.total_days or (draft.weeks or 2) * 5
    if data.sprint_day > total_days:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="sprintDay exceeds totalDays")
    update = SprintDailyUpdate(
        sprint_draft_id=draft.id,
        account_id=admin.id,
        sprint_day=data.sprint_day,
        total_days=total_days,
        frame=data.frame,
        body=data.body.strip(),
    )
    db.add(update)
    await db.flush()
    await sprint_service.log_change(db, draft.id, admin.id, "daily_update", f"Day {data.sprint_day} update posted")
    return {"id": update.id, "sprintDay": update.sprint_day, "totalDays": update.total_days}


# ── Links ────────────────────────────────────────────────────────────────────


def serialize_link(link: SprintLink) -> dict:
    return {
        "id": link.id,
        "name": link.name,
        "linkType": link.link_type,
        "url": link.url,
        "fileUrl": link.file_url,
        "fileName": link.file_name,
        "mimetype": link.mimetype,
        "description": link.description,
        "sortOrder": link.sort_order,
    }


@router.get("/{draft_id}/links")
async def list_links(
    draft_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
):
    await _get_viewable(db, draft_id, user)
    result = await db.execute(
        select(SprintLink)
        .where(SprintLink.sprint_draft_id == draft_id)
        .order_by(SprintLink.sort_order, SprintLink.created_at.desc())
    )
    return {"links": [serialize_link(link) for link in result.scalars().all()]}


@router.post("/{draft_id}/links", status_code=status.HTTP_201_CREATED)
async def create_link(
    draft_id: str,
    data: SprintLinkCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[Account, Depends(require_admin)],
):
    draft = await db.get(SprintDraft, draft_id)
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    if data.link_type == "url" and not data.url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="url is required for url links")
    if data.link_type == "file" and not data.file_url:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="fileUrl is required for file links")
    link = SprintLink(sprint_draft_id=draft.id, **data.model_dump())
    db.add(link)
    await db.flush()
    return {"link": serialize_link(link)}


# ── Daily summary ────────────────────────────────────────────────────────────


@router.post("/{draft_id}/daily-summary")
async def daily_summary_email(
    draft_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account | None, Depends(get_optional_user)],
    data: DailySummaryRequest | None = None,
):
    if user is None or not user.is_admin:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    draft = await db.get(SprintDraft, draft_id)
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sprint not found")

    # anything other than "send" previews
    mode = "send" if data and data.mode == "send" else "preview"
    try:
        summary = await daily_summary.prepare_summary(db, draft)
    except daily_summary.NoUpdatesError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ai_service.AITimeoutError:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="AI request timed out")
    except ai_service.AIUpstreamError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except ai_service.AINotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if mode == "preview":
        return summary.preview()

    if not summary.recipients:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No recipients found. Add project members first.",
        )
    results = await daily_summary.send_summary(summary)
    sent = sum(1 for r in results if r.sent)
    logger.info("Daily summary sent", extra={"sprint_draft_id": draft.id})
    await sprint_service.log_change(
        db, draft.id, user.id, "daily_summary_sent", f"Day {summary.sprint_day} summary emailed to {sent} recipient(s)"
    )
    return {
        "sent": sent,
        "subject": summary.subject,
        "recipientCount": len(summary.recipients),
        "results": [r.as_dict() for r in results],
    }
