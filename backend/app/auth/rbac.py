"""Project-level access control: owners and admins manage, members view."""
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.account import Account
from app.models.project import Project, ProjectMember


@dataclass(frozen=True)
class ProjectAccess:
    project: Project
    is_owner: bool
    is_admin: bool
    is_member: bool

    @property
    def can_manage(self) -> bool:
        return self.is_admin or self.is_owner

    @property
    def can_view(self) -> bool:
        return self.can_manage or self.is_member


def normalize_email(email: object) -> str | None:
    if not isinstance(email, str):
        return None
    trimmed = email.strip().lower()
    return trimmed or None


async def is_project_member(db: AsyncSession, project_id: str, email: str) -> bool:
    result = await db.execute(
        select(ProjectMember.id)
        .where(ProjectMember.project_id == project_id)
        .where(func.lower(ProjectMember.email) == email.lower())
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_project_access(db: AsyncSession, project_id: str, user: Account) -> ProjectAccess:
    project = await db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return ProjectAccess(
        project=project,
        is_owner=project.account_id == user.id,
        is_admin=bool(user.is_admin),
        is_member=await is_project_member(db, project_id, user.email),
    )


async def assert_project_access(
    db: AsyncSession,
    project_id: str,
    user: Account,
    manage: bool = False,
) -> ProjectAccess:
    """404 for unknown projects, 403 when the user may not view (or manage) it."""
    access = await get_project_access(db, project_id, user)
    allowed = access.can_manage if manage else access.can_view
    if not allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return access
