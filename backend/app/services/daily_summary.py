"""Daily sprint summary: gather context, draft with AI, render and send."""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.account import Account
from app.models.project import Document, Project, ProjectMember
from app.models.sprint import SprintDailyUpdate, SprintDeliverable, SprintDraft, SprintLink
from app.services import ai_service, email_service, link_reader

logger = logging.getLogger(__name__)


class NoUpdatesError(Exception):
    pass


@dataclass
class SummaryDraft:
    subject: str
    body: str
    html: str
    recipients: list[str]
    sprint_day: int
    total_days: int
    file_contexts: list[link_reader.FileContext] = field(default_factory=list)

    def preview(self) -> dict:
        return {
            "subject": self.subject,
            "body": self.body,
            "html": self.html,
            "recipients": self.recipients,
            "sprintDay": self.sprint_day,
            "totalDays": self.total_days,
            "fileContexts": [{"name": f.name, "fileName": f.file_name} for f in self.file_contexts],
        }


def _long_date(value: date | None) -> str:
    return f"{value:%A, %B} {value.day}, {value.year}" if value else "Not set"


def _short_date(value: datetime | None) -> str:
    return f"{value:%a, %b} {value.day}" if value else ""


async def gather_recipients(db: AsyncSession, draft: SprintDraft, document: Document | None) -> list[str]:
    """Project members, then the project owner, then the document email; lower-cased, de-duplicated."""
    recipients: list[str] = []

    def add(email: str | None) -> None:
        if email:
            e = email.strip().lower()
            if e and e not in recipients:
                recipients.append(e)

    project_id = draft.project_id or (document.project_id if document else None)
    if project_id:
        members = await db.execute(
            select(ProjectMember.email).where(ProjectMember.project_id == project_id).order_by(ProjectMember.created_at)
        )
        for email in members.scalars().all():
            add(email)
        owner = await db.execute(
            select(Account.email).join(Project, Project.account_id == Account.id).where(Project.id == project_id)
        )
        add(owner.scalar_one_or_none())
    if document:
        add(document.email)
    return recipients


def build_context_block(
    draft: SprintDraft,
    deliverables: list[SprintDeliverable],
    updates: list[tuple[SprintDailyUpdate, str]],
    files: list[link_reader.FileContext],
) -> tuple[str, int, int]:
    """Plain-text prompt context. Returns (block, latest_day, total_days)."""
    latest_day = max(u.sprint_day for u, _ in updates)
    weeks = draft.weeks or 2
    total_days = updates[0][0].total_days or weeks * 5
    progress = round(latest_day / total_days * 100) if total_days else 0

    content = draft.draft or {}
    goals = [g for g in content.get("goals", []) if isinstance(g, str)] if isinstance(content.get("goals"), list) else []
    goal_lines = "\n".join(f"{i}. {g}" for i, g in enumerate(goals, 1)) or "No goals defined."

    deliverable_lines = "\n".join(
        f"- {d.deliverable_name or 'Deliverable'}"
        + (f" ({d.deliverable_category})" if d.deliverable_category else "")
        + (" [DELIVERED]" if d.delivery_url else "")
        for d in deliverables
    ) or "None"

    update_lines = "\n\n".join(
        f"--- Day {u.sprint_day}/{u.total_days}"
        + (f" · Frame: {u.frame}" if u.frame else "")
        + f" ({_short_date(u.created_at)}) by {author} ---\n{u.body}"
        for u, author in updates
    )

    block = f"""SPRINT TITLE: {draft.title or "Untitled Sprint"}
STATUS: {draft.status or "in_progress"}
DURATION: {weeks} weeks ({total_days} business days)
START DATE: {_long_date(draft.start_date)}
DUE DATE: {_long_date(draft.due_date)}
PROGRESS: Day {latest_day} of {total_days} ({progress}%)

SPRINT GOALS:
{goal_lines}

DELIVERABLES ({len(deliverables)} total):
{deliverable_lines}

ALL DAILY UPDATES:
{update_lines}"""
    if files:
        block += "\n\nSUPPLEMENTAL PROJECT FILES:\n" + "\n\n".join(
            f"--- {f.name} ({f.file_name}) ---\n{f.content}" for f in files
        )
    return block, latest_day, total_days


async def prepare_summary(db: AsyncSession, draft: SprintDraft) -> SummaryDraft:
    """Collect sprint context and ask the AI for the email. Raises NoUpdatesError and ai_service errors."""
    update_rows = await db.execute(
        select(SprintDailyUpdate, Account)
        .join(Account, SprintDailyUpdate.account_id == Account.id)
        .where(SprintDailyUpdate.sprint_draft_id == draft.id)
        .order_by(SprintDailyUpdate.sprint_day, SprintDailyUpdate.created_at)
    )
    updates = [(u, a.display_name) for u, a in update_rows.all()]
    if not updates:
        raise NoUpdatesError("No daily updates to summarize")

    deliverables = (
        await db.execute(
            select(SprintDeliverable)
            .where(SprintDeliverable.sprint_draft_id == draft.id)
            .order_by(SprintDeliverable.sort_order, SprintDeliverable.created_at)
        )
    ).scalars().all()
    links = (
        await db.execute(
            select(SprintLink)
            .where(SprintLink.sprint_draft_id == draft.id)
            .order_by(SprintLink.sort_order, SprintLink.created_at.desc())
        )
    ).scalars().all()
    document = await db.get(Document, draft.document_id) if draft.document_id else None

    files = await link_reader.read_link_files(links)
    recipients = await gather_recipients(db, draft, document)
    block, latest_day, total_days = build_context_block(draft, list(deliverables), updates, files)

    title = draft.title or "Sprint"
    drafted = await ai_service.draft_daily_summary(block, fallback_subject=f"{title} · Day {latest_day} Update")
    html_body = email_service.daily_summary_email(
        draft.id, title, drafted.subject, drafted.body, latest_day, total_days
    )
    return SummaryDraft(
        subject=drafted.subject,
        body=drafted.body,
        html=html_body,
        recipients=recipients,
        sprint_day=latest_day,
        total_days=total_days,
        file_contexts=files,
    )


async def send_summary(summary: SummaryDraft) -> list[email_service.EmailResult]:
    results = []
    for to in summary.recipients:
        results.append(await email_service.send_email(to, summary.subject, summary.html, text_body=summary.body))
    return results
