"""Internal task board API routes (admin only)."""
import logging
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import require_admin
from app.database import get_db
from app.models.account import Account
from app.models.admin_task import FOCUS_NOW, FOCUS_TODAY, AdminIdea, AdminMilestone, AdminTask, AdminTaskEvent
from app.schemas.admin_task import IdeaCreate, MilestoneCreate, TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/tasks", tags=["admin-tasks"])

Admin = Annotated[Account, Depends(require_admin)]
DB = Annotated[AsyncSession, Depends(get_db)]


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def serialize_task(task: AdminTask, idea: AdminIdea | None = None, milestone: AdminMilestone | None = None) -> dict:
    return {
        "id": task.id,
        "name": task.name,
        "note": task.note,
        "idea_id": task.idea_id,
        "idea_title": idea.title if idea else None,
        "parent_task_id": task.parent_task_id,
        "milestone_id": task.milestone_id,
        "milestone_name": milestone.name if milestone else None,
        "milestone_target_date": _iso(milestone.target_date) if milestone else None,
        "focus": task.focus,
        "completed": task.completed,
        "completed_at": _iso(task.completed_at),
        "sort_order": task.sort_order,
        "sub_sort_order": task.sub_sort_order,
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
    }


async def log_task_event(
    db: AsyncSession,
    task_id: str | None,
    idea_id: str | None,
    event_type: str,
    event_data: dict[str, Any] | None = None,
) -> None:
    """Append to the task history in a savepoint; a failure is logged and the change stands."""
    try:
        async with db.begin_nested():
            db.add(AdminTaskEvent(task_id=task_id, idea_id=idea_id, event_type=event_type, event_data=event_data))
    except SQLAlchemyError:
        logger.exception("Failed to log task event", extra={"task_id": task_id})


async def clear_focus_now(db: AsyncSession, except_id: str | None = None) -> None:
    """Lock the current 'now' holder and clear it, so at most one task keeps focus."""
    stmt = select(AdminTask.id).where(AdminTask.focus == FOCUS_NOW).with_for_update()
    if except_id:
        stmt = stmt.where(AdminTask.id != except_id)
    holders = (await db.execute(stmt)).scalars().all()
    if holders:
        await db.execute(
            update(AdminTask)
            .where(AdminTask.id.in_(holders))
            .values(focus="", updated_at=func.now())
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()


async def _task_with_labels(db: AsyncSession, task: AdminTask) -> dict:
    idea = await db.get(AdminIdea, task.idea_id) if task.idea_id else None
    milestone = await db.get(AdminMilestone, task.milestone_id) if task.milestone_id else None
    return serialize_task(task, idea, milestone)


# ── Tasks ────────────────────────────────────────────────────────────────────


@router.get("/tasks")
async def list_tasks(
    db: DB,
    admin: Admin,
    idea_id: Annotated[str | None, Query(alias="ideaId")] = None,
    focus: str | None = None,
    include_completed: Annotated[bool, Query(alias="includeCompleted")] = True,
):
    stmt = (
        select(AdminTask, AdminIdea, AdminMilestone)
        .outerjoin(AdminIdea, AdminTask.idea_id == AdminIdea.id)
        .outerjoin(AdminMilestone, AdminTask.milestone_id == AdminMilestone.id)
        .order_by(
            AdminTask.completed.asc(),
            AdminTask.sort_order.asc(),
            AdminTask.sub_sort_order.asc(),
            AdminTask.created_at.desc(),
        )
    )
    if idea_id:
        stmt = stmt.where(AdminTask.idea_id == idea_id)
    if focus:
        stmt = stmt.where(AdminTask.focus == focus)
    if not include_completed:
        stmt = stmt.where(AdminTask.completed.is_(False))
    result = await db.execute(stmt)
    return {"tasks": [serialize_task(t, i, m) for t, i, m in result.all()]}


@router.post("/tasks")
async def create_task(data: TaskCreate, db: DB, admin: Admin):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")

    sort_order = 0
    sub_sort_order = 0
    if data.parent_task_id:
        if await db.get(AdminTask, data.parent_task_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent task not found")
        current = await db.execute(
            select(func.coalesce(func.max(AdminTask.sub_sort_order), 0)).where(
                AdminTask.parent_task_id == data.parent_task_id
            )
        )
        sub_sort_order = current.scalar_one() + 1
    elif data.idea_id:
        if data.position == "top":
            await db.execute(
                update(AdminTask)
                .where(AdminTask.idea_id == data.idea_id)
                .where(AdminTask.parent_task_id.is_(None))
                .where(AdminTask.completed.is_(False))
                .values(sort_order=AdminTask.sort_order + 1)
                .execution_options(synchronize_session="fetch")
            )
            sort_order = 1
        else:
            current = await db.execute(
                select(func.coalesce(func.max(AdminTask.sort_order), 0))
                .where(AdminTask.idea_id == data.idea_id)
                .where(AdminTask.parent_task_id.is_(None))
            )
            sort_order = current.scalar_one() + 1

    focus = data.focus or ""
    if focus == FOCUS_NOW:
        await clear_focus_now(db)
    task = AdminTask(
        name=name,
        note=(data.note or "").strip() or None,
        idea_id=data.idea_id or None,
        parent_task_id=data.parent_task_id or None,
        milestone_id=data.milestone_id or None,
        focus=focus,
        sort_order=sort_order,
        sub_sort_order=sub_sort_order,
    )
    db.add(task)
    await db.flush()
    await db.refresh(task)
    await log_task_event(db, task.id, task.idea_id, "created", {"name": name, "parent_task_id": task.parent_task_id})
    return {"task": await _task_with_labels(db, task)}


@router.patch("/tasks")
async def update_task(data: TaskUpdate, db: DB, admin: Admin):
    if data.reorder is not None:
        for item in data.reorder:
            if item.sub_sort_order is not None:
                values = {"sub_sort_order": item.sub_sort_order}
            elif item.sort_order is not None:
                values = {"sort_order": item.sort_order}
            else:
                continue
            await db.execute(
                update(AdminTask)
                .where(AdminTask.id == item.id)
                .values(**values, updated_at=func.now())
                .execution_options(synchronize_session="fetch")
            )
        return {"success": True}

    if not data.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="id is required")
    task = await db.get(AdminTask, data.id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    changes = data.model_dump(exclude_unset=True, exclude={"id", "reorder"})
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    before = {
        "completed": task.completed,
        "focus": task.focus,
        "note": task.note,
        "milestone_id": task.milestone_id,
    }

    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")
        task.name = name
    if "note" in changes:
        task.note = (changes["note"] or "").strip() or None
    if "completed" in changes and changes["completed"] is not None:
        task.completed = bool(changes["completed"])
        task.completed_at = datetime.now(timezone.utc) if task.completed else None
        if task.completed and before["focus"] == FOCUS_NOW:
            task.focus = ""
    if "focus" in changes:
        focus = changes["focus"] or ""
        if focus == FOCUS_NOW and task.completed:
            # completed tasks never hold focus
            focus = task.focus
        elif focus == FOCUS_NOW:
            await clear_focus_now(db, except_id=task.id)
        task.focus = focus
    if "milestone_id" in changes:
        task.milestone_id = changes["milestone_id"] or None
    await db.flush()
    await db.refresh(task)

    event_base = {"name": task.name}
    if "completed" in changes and task.completed != before["completed"]:
        await log_task_event(db, task.id, task.idea_id, "completed" if task.completed else "uncompleted", event_base)
    if "focus" in changes and task.focus != before["focus"]:
        if task.focus == FOCUS_NOW:
            await log_task_event(db, task.id, task.idea_id, "focused", {**event_base, "previous_focus": before["focus"]})
        elif before["focus"] == FOCUS_NOW:
            await log_task_event(db, task.id, task.idea_id, "unfocused", {**event_base, "new_focus": task.focus})
        if task.focus == FOCUS_TODAY:
            await log_task_event(db, task.id, task.idea_id, "added_to_today", event_base)
        elif before["focus"] == FOCUS_TODAY:
            await log_task_event(db, task.id, task.idea_id, "removed_from_today", event_base)
    if "note" in changes and task.note != before["note"]:
        await log_task_event(
            db, task.id, task.idea_id, "note_updated",
            {**event_base, "had_note": bool(before["note"]), "has_note": bool(task.note)},
        )
    if "milestone_id" in changes and task.milestone_id != before["milestone_id"]:
        await log_task_event(
            db, task.id, task.idea_id, "milestone_changed",
            {
                **event_base,
                "previous_milestone_id": before["milestone_id"],
                "new_milestone_id": task.milestone_id,
            },
        )
    return {"task": await _task_with_labels(db, task)}


@router.delete("/tasks")
async def delete_task(
    db: DB,
    admin: Admin,
    task_id: Annotated[str | None, Query(alias="id")] = None,
):
    if not task_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="id is required")
    task = await db.get(AdminTask, task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    name, idea_id = task.name, task.idea_id

    subtask_ids = (await db.execute(select(AdminTask.id).where(AdminTask.parent_task_id == task_id))).scalars().all()
    removed_ids = [task_id, *subtask_ids]
    # history outlives the task
    await db.execute(
        update(AdminTaskEvent)
        .where(AdminTaskEvent.task_id.in_(removed_ids))
        .values(task_id=None)
        .execution_options(synchronize_session="fetch")
    )
    for sub_id in subtask_ids:
        sub = await db.get(AdminTask, sub_id)
        if sub is not None:
            await db.delete(sub)
    await db.delete(task)
    await db.flush()
    await log_task_event(db, None, idea_id, "deleted", {"task_id": task_id, "name": name})
    return {"success": True, "message": f'Task "{name}" deleted'}


# ── Events ───────────────────────────────────────────────────────────────────


@router.get("/events")
async def list_events(
    db: DB,
    admin: Admin,
    event_type: Annotated[str | None, Query(alias="eventType")] = None,
    idea_id: Annotated[str | None, Query(alias="ideaId")] = None,
    task_id: Annotated[str | None, Query(alias="taskId")] = None,
    date_from: Annotated[datetime | None, Query(alias="dateFrom")] = None,
    date_to: Annotated[datetime | None, Query(alias="dateTo")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    filters = []
    if event_type:
        filters.append(AdminTaskEvent.event_type == event_type)
    if idea_id:
        filters.append(AdminTaskEvent.idea_id == idea_id)
    if task_id:
        filters.append(AdminTaskEvent.task_id == task_id)
    if date_from:
        filters.append(AdminTaskEvent.created_at >= date_from)
    if date_to:
        filters.append(AdminTaskEvent.created_at <= date_to)

    result = await db.execute(
        select(AdminTaskEvent, AdminTask.name, AdminIdea.title)
        .outerjoin(AdminTask, AdminTaskEvent.task_id == AdminTask.id)
        .outerjoin(AdminIdea, AdminTaskEvent.idea_id == AdminIdea.id)
        .where(*filters)
        .order_by(AdminTaskEvent.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    total = (await db.execute(select(func.count(AdminTaskEvent.id)).where(*filters))).scalar_one()
    return {
        "events": [
            {
                "id": e.id,
                "task_id": e.task_id,
                "idea_id": e.idea_id,
                "event_type": e.event_type,
                "event_data": e.event_data,
                "task_name": task_name,
                "idea_title": idea_title,
                "created_at": _iso(e.created_at),
            }
            for e, task_name, idea_title in result.all()
        ],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


# ── Ideas & milestones ───────────────────────────────────────────────────────


def _task_counts(column):
    return (
        select(
            column.label("key"),
            func.count(AdminTask.id).label("task_count"),
            func.sum(case((AdminTask.completed.is_(True), 1), else_=0)).label("completed_task_count"),
        )
        .where(column.is_not(None))
        .group_by(column)
        .subquery()
    )


@router.get("/ideas")
async def list_ideas(db: DB, admin: Admin):
    counts = _task_counts(AdminTask.idea_id)
    result = await db.execute(
        select(AdminIdea, counts.c.task_count, counts.c.completed_task_count)
        .outerjoin(counts, counts.c.key == AdminIdea.id)
        .order_by(AdminIdea.created_at.desc())
    )
    return {
        "ideas": [
            {
                "id": idea.id,
                "title": idea.title,
                "summary": idea.summary,
                "task_count": int(total or 0),
                "completed_task_count": int(done or 0),
                "created_at": _iso(idea.created_at),
            }
            for idea, total, done in result.all()
        ]
    }


@router.post("/ideas")
async def create_idea(data: IdeaCreate, db: DB, admin: Admin):
    title = data.title.strip()
    if not title:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title is required")
    idea = AdminIdea(title=title, summary=(data.summary or "").strip() or None)
    db.add(idea)
    await db.flush()
    await db.refresh(idea)
    return {"idea": {"id": idea.id, "title": idea.title, "summary": idea.summary, "created_at": _iso(idea.created_at)}}


@router.get("/milestones")
async def list_milestones(db: DB, admin: Admin):
    counts = _task_counts(AdminTask.milestone_id)
    result = await db.execute(
        select(AdminMilestone, counts.c.task_count, counts.c.completed_task_count)
        .outerjoin(counts, counts.c.key == AdminMilestone.id)
        .order_by(
            AdminMilestone.target_date.is_(None),
            AdminMilestone.target_date.asc(),
            AdminMilestone.created_at.desc(),
        )
    )
    return {
        "milestones": [
            {
                "id": m.id,
                "name": m.name,
                "target_date": _iso(m.target_date),
                "task_count": int(total or 0),
                "completed_task_count": int(done or 0),
                "created_at": _iso(m.created_at),
            }
            for m, total, done in result.all()
        ]
    }


@router.post("/milestones")
async def create_milestone(data: MilestoneCreate, db: DB, admin: Admin):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")
    milestone = AdminMilestone(name=name, target_date=data.target_date)
    db.add(milestone)
    await db.flush()
    await db.refresh(milestone)
    return {
        "milestone": {
            "id": milestone.id,
            "name": milestone.name,
            "target_date": _iso(milestone.target_date),
            "created_at": _iso(milestone.created_at),
        }
    }
