"""Project member API routes. Owners and admins manage; members view."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_current_user
from app.auth.rbac import assert_project_access, normalize_email
from app.database import get_db, new_id
from app.models.account import Account
from app.models.project import ProjectMember
from app.schemas.project import ProjectMemberCreate, ProjectMemberResponse, ProjectMemberUpdate
from app.services import email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/project-members", tags=["project-members"])


def _require_email(raw: str | None) -> str:
    email = normalize_email(raw)
    if not email or "@" not in email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Valid email is required")
    return email


def _insert_ignore(dialect_name: str):
    module = postgresql if dialect_name == "postgresql" else sqlite
    return module.insert(ProjectMember)


@router.get("")
async def list_members(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
    project_id: Annotated[str | None, Query(alias="projectId")] = None,
):
    if not project_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="projectId is required")
    await assert_project_access(db, project_id, user)
    result = await db.execute(
        select(ProjectMember, Account)
        .outerjoin(Account, func.lower(ProjectMember.email) == func.lower(Account.email))
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.created_at)
    )
    return {
        "members": [
            ProjectMemberResponse(
                email=m.email,
                title=m.title,
                name=a.name if a else None,
                first_name=a.first_name if a else None,
                last_name=a.last_name if a else None,
                added_by_account=m.added_by_account,
                created_at=m.created_at.isoformat() if m.created_at else None,
            ).model_dump(by_alias=True)
            for m, a in result.all()
        ]
    }


@router.post("")
async def add_member(
    data: ProjectMemberCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
):
    email = _require_email(data.email)
    access = await assert_project_access(db, data.project_id, user, manage=True)
    title = data.title.strip() if data.title and data.title.strip() else None

    stmt = (
        _insert_ignore(db.get_bind().dialect.name)
        .values(id=new_id(), project_id=data.project_id, email=email, title=title, added_by_account=user.id)
        .on_conflict_do_nothing(index_elements=["project_id", "email"])
        .returning(ProjectMember.id)
    )
    inserted = (await db.execute(stmt)).scalar_one_or_none() is not None

    email_result = None
    if inserted:
        logger.info("Project member added", extra={"project_id": data.project_id})
        subject, html_body = email_service.member_added_email(access.project.name, title, user.display_name)
        email_result = await email_service.send_email(email, subject, html_body)
    return {
        "success": True,
        "added": inserted,
        "emailSent": bool(email_result and email_result.sent),
    }


@router.patch("")
async def update_member(
    data: ProjectMemberUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
):
    email = _require_email(data.email)
    await assert_project_access(db, data.project_id, user, manage=True)
    title = data.title.strip() if data.title and data.title.strip() else None
    result = await db.execute(
        update(ProjectMember)
        .where(ProjectMember.project_id == data.project_id)
        .where(func.lower(ProjectMember.email) == email)
        .values(title=title)
        .returning(ProjectMember.id)
    )
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return {"success": True}


@router.delete("")
async def remove_member(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
    project_id: Annotated[str | None, Query(alias="projectId")] = None,
    email_param: Annotated[str | None, Query(alias="email")] = None,
):
    if not project_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="projectId is required")
    email = _require_email(email_param)
    access = await assert_project_access(db, project_id, user, manage=True)
    result = await db.execute(
        delete(ProjectMember)
        .where(ProjectMember.project_id == project_id)
        .where(func.lower(ProjectMember.email) == email)
        .returning(ProjectMember.id)
    )
    removed = result.scalar_one_or_none() is not None
    if removed:
        logger.info("Project member removed", extra={"project_id": project_id})
        subject, html_body = email_service.member_removed_email(access.project.name)
        await email_service.send_email(email, subject, html_body)
    return {"success": True, "removed": removed}
