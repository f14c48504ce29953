"""SQLAlchemy models."""
from app.models.account import Account, EmailVerificationCode
from app.models.admin_task import AdminIdea, AdminMilestone, AdminTask, AdminTaskEvent
from app.models.catalog import Deliverable, SprintPackage, SprintPackageDeliverable
from app.models.project import Document, Project, ProjectMember
from app.models.sprint import (
    SprintDailyUpdate,
    SprintDeliverable,
    SprintDraft,
    SprintDraftChangelog,
    SprintLink,
)

__all__ = [
    "Account",
    "AdminIdea",
    "AdminMilestone",
    "AdminTask",
    "AdminTaskEvent",
    "Deliverable",
    "Document",
    "EmailVerificationCode",
    "Project",
    "ProjectMember",
    "SprintDailyUpdate",
    "SprintDeliverable",
    "SprintDraft",
    "SprintDraftChangelog",
    "SprintLink",
    "SprintPackage",
    "SprintPackageDeliverable",
]
