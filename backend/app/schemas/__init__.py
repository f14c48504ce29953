"""Pydantic schemas."""
from app.schemas.admin_task import IdeaCreate, MilestoneCreate, ReorderItem, TaskCreate, TaskUpdate
from app.schemas.auth import AccountResponse, SendCodeRequest, Token, VerifyCodeRequest
from app.schemas.catalog import (
    DeliverableCreate,
    DeliverableResponse,
    DeliverableUpdate,
    PackageItemInput,
    SprintPackageCreate,
    SprintPackageUpdate,
)
from app.schemas.project import (
    ProjectCreate,
    ProjectMemberCreate,
    ProjectMemberResponse,
    ProjectMemberUpdate,
    ProjectResponse,
)
from app.schemas.sprint import (
    DailySummaryRequest,
    DailyUpdateCreate,
    DeliverableSelectionInput,
    SprintDeliverablesReplace,
    SprintDraftCreate,
    SprintLinkCreate,
)

__all__ = [
    "AccountResponse",
    "DailySummaryRequest",
    "DailyUpdateCreate",
    "DeliverableCreate",
    "DeliverableResponse",
    "DeliverableSelectionInput",
    "DeliverableUpdate",
    "IdeaCreate",
    "MilestoneCreate",
    "PackageItemInput",
    "ProjectCreate",
    "ProjectMemberCreate",
    "ProjectMemberResponse",
    "ProjectMemberUpdate",
    "ProjectResponse",
    "ReorderItem",
    "SendCodeRequest",
    "SprintDeliverablesReplace",
    "SprintDraftCreate",
    "SprintLinkCreate",
    "SprintPackageCreate",
    "SprintPackageUpdate",
    "TaskCreate",
    "TaskUpdate",
    "Token",
    "VerifyCodeRequest",
]
