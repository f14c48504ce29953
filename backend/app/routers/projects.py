"""Project API routes."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_current_user
from app.auth.rbac import assert_project_access
from app.database import get_db
from app.models.account import Account
from app.models.project import Project, ProjectMember
from app.models.sprint import SprintDraft
from app.schemas.project import ProjectCreate, ProjectResponse

router = APIRouter(prefix="/projects", tags=["projects"])


def _to_response(project: Project) -> dict:
    return ProjectResponse(
        id=project.id,
        name=project.name,
        status=project.status,
        account_id=project.account_id,
        created_at=project.created_at.isoformat() if project.created_at else "",
    ).model_dump(by_alias=True)


@router.get("")
async def list_projects(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
):
    stmt = select(Project).order_by(Project.created_at.desc())
    if not user.is_admin:
        member_of = select(ProjectMember.project_id).where(ProjectMember.email == user.email.lower())
        stmt = stmt.where(or_(Project.account_id == user.id, Project.id.in_(member_of)))
    result = await db.execute(stmt)
    return {"projects": [_to_response(p) for p in result.scalars().all()]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project name is required")
    project = Project(name=name, account_id=user.id)
    db.add(project)
    await db.flush()
    await db.refresh(project)
    return {"project": _to_response(project)}


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[Account, Depends(get_current_user)],
):
    access = await assert_project_access(db, project_id, user)
    drafts = await db.execute(
        select(SprintDraft).where(SprintDraft.project_id == project_id).order_by(SprintDraft.created_at.desc())
    )
    return {
        "project": _to_response(access.project),
        "canManage": access.can_manage,
        "sprints": [
            {
                "id": d.id,
                "title": d.title,
                "status": d.status,
                "totalPrice": float(d.total_fixed_price or 0),
                "deliverableCount": d.deliverable_count,
            }
            for d in drafts.scalars().all()
        ],
    }
