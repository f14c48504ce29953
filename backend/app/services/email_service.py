"""Transactional email via Mailgun.

When MAILGUN_API_KEY / MAILGUN_DOMAIN are not set, messages are logged and
reported as skipped instead of sent (dev/test mode). send_email never raises;
callers inspect the returned EmailResult.
"""
import html
import logging
import re
from dataclasses import dataclass

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)

BRAND = "Meisner Design"


@dataclass
class EmailResult:
    to: str
    sent: bool
    skipped: bool = False
    error: str | None = None
    message_id: str | None = None

    def as_dict(self) -> dict:
        return {
            "to": self.to,
            "sent": self.sent,
            "skipped": self.skipped,
            "error": self.error,
        }


def is_configured() -> bool:
    settings = get_settings()
    return bool(settings.mailgun_api_key and settings.mailgun_domain)


async def send_email(to: str, subject: str, html_body: str, text_body: str | None = None) -> EmailResult:
    """Send one message. Failures are logged and returned, not raised."""
    settings = get_settings()
    if not is_configured():
        logger.info("Email not configured, skipping send: to=%s subject='%s'", to, subject)
        return EmailResult(to=to, sent=False, skipped=True)

    data = {
        "from": f"{BRAND} <{settings.mailgun_sender}>",
        "to": to,
        "subject": subject,
        "html": html_body,
    }
    if text_body:
        data["text"] = text_body
    url = f"{settings.mailgun_base_url.rstrip('/')}/{settings.mailgun_domain}/messages"
    try:
        async with httpx.AsyncClient(timeout=15) as client:
            resp = await client.post(url, auth=("api", settings.mailgun_api_key), data=data)
            resp.raise_for_status()
            payload = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("Email failed: to=%s error=%s", to, exc)
        return EmailResult(to=to, sent=False, error=str(exc))

    logger.info("Email sent: to=%s subject='%s'", to, subject)
    return EmailResult(to=to, sent=True, message_id=payload.get("id"))


# ── Templates ────────────────────────────────────────────────────────────────


def _layout(title: str, inner: str) -> str:
    return f"""
    <div style="font-family: 'Inter', Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <div style="background: #111827; color: white; padding: 16px 24px; border-radius: 8px 8px 0 0;">
            <h2 style="margin: 0; font-size: 18px;">{html.escape(title)}</h2>
        </div>
        <div style="background: #f9fafb; padding: 24px; border: 1px solid #e5e7eb; border-top: none;">
            {inner}
        </div>
        <div style="background: #f3f4f6; padding: 12px 24px; border-radius: 0 0 8px 8px;
                    border: 1px solid #e5e7eb; border-top: none; text-align: center;">
            <p style="color: #9ca3af; font-size: 12px; margin: 0;">{BRAND}</p>
        </div>
    </div>
    """


def verification_code_email(code: str) -> tuple[str, str]:
    settings = get_settings()
    subject = f"Your {BRAND} login code"
    inner = f"""
        <p style="color: #4b5563;">Use this code to sign in:</p>
        <p style="font-size: 32px; letter-spacing: 8px; font-weight: 700; color: #111827;">{code}</p>
        <p style="color: #6b7280; font-size: 13px;">
            It expires in {settings.verification_code_ttl_minutes} minutes.
            If you didn't request it, you can ignore this email.
        </p>
    """
    return subject, _layout("Sign in", inner)


def member_added_email(project_name: str, title: str | None, added_by: str | None) -> tuple[str, str]:
    settings = get_settings()
    subject = f"You've been added to {project_name}"
    role = f" as <strong>{html.escape(title)}</strong>" if title else ""
    by = f" by {html.escape(added_by)}" if added_by else ""
    inner = f"""
        <p style="color: #4b5563;">You were added to <strong>{html.escape(project_name)}</strong>{role}{by}.</p>
        <p><a href="{settings.app_url}/dashboard" style="color: #2563eb;">Open your dashboard</a></p>
    """
    return subject, _layout("Welcome to the project", inner)


def member_removed_email(project_name: str) -> tuple[str, str]:
    subject = f"You've been removed from {project_name}"
    inner = f"""
        <p style="color: #4b5563;">You no longer have access to <strong>{html.escape(project_name)}</strong>.</p>
        <p style="color: #6b7280; font-size: 13px;">Reply to this email if you think this was a mistake.</p>
    """
    return subject, _layout("Project access removed", inner)


_NEXT_HEADING = re.compile(r"^(what'?s next|next steps|coming up|looking ahead)", re.IGNORECASE)


def _body_to_html(body: str) -> str:
    """Plain-text body to HTML: '- ' / '• ' lines become a list, 'What's next' lines a heading."""
    out: list[str] = []
    bullets: list[str] = []

    def flush() -> None:
        if bullets:
            out.append('<ul style="margin: 8px 0 8px 20px; padding: 0;">' + "".join(bullets) + "</ul>")
            bullets.clear()

    for line in body.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue
        if trimmed.startswith(("- ", "• ")):
            bullets.append(f'<li style="margin: 4px 0; color: #111827;">{html.escape(trimmed[2:].strip())}</li>')
            continue
        flush()
        if _NEXT_HEADING.match(trimmed):
            out.append(f'<p style="margin: 16px 0 8px; font-weight: 600; color: #111827;">{html.escape(trimmed)}</p>')
        else:
            out.append(f'<p style="margin: 8px 0; color: #374151; line-height: 1.6;">{html.escape(trimmed)}</p>')
    flush()
    return "\n".join(out)


def daily_summary_email(
    sprint_id: str,
    sprint_title: str,
    subject: str,
    body: str,
    sprint_day: int,
    total_days: int,
) -> str:
    """Render the AI-drafted summary with a progress bar and a link back to the sprint."""
    settings = get_settings()
    total = max(total_days, 1)
    progress = min(100, max(0, round(sprint_day / total * 100)))
    inner = f"""
        <p style="color: #6b7280; font-size: 13px; margin: 0 0 8px;">
            Daily Update &middot; {html.escape(sprint_title)}
        </p>
        <div style="background: #e5e7eb; border-radius: 4px; height: 8px;">
            <div style="background: #111827; width: {progress}%; height: 8px; border-radius: 4px;"></div>
        </div>
        <p style="color: #6b7280; font-size: 12px; margin: 4px 0 20px;">
            Day {sprint_day} of {total} &middot; {progress}% complete
        </p>
        {_body_to_html(body)}
        <p style="margin-top: 24px;">
            <a href="{settings.app_url}/sprints/{sprint_id}"
               style="background: #111827; color: white; padding: 10px 18px; border-radius: 6px;
                      text-decoration: none; font-size: 14px;">View Sprint</a>
        </p>
    """
    return _layout(subject, inner)
