"""AI-drafted daily sprint summary emails."""
import json
import logging
import re
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from app.config import get_settings

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """Base class for AI collaborator failures."""


class AINotConfiguredError(AIServiceError):
    pass


class AIUpstreamError(AIServiceError):
    def __init__(self, status_code: int | None, message: str = "") -> None:
        self.status_code = status_code
        super().__init__(message or f"AI error: {status_code}")


class AITimeoutError(AIServiceError):
    pass


DAILY_SUMMARY_PROMPT = """You are the AI Studio Assistant for Meisner Design, a design/branding sprint studio. You send daily project update emails on behalf of the studio team.

You may be given supplemental project files (briefs, notes, CSVs, etc.) as additional context. If present, use them to enrich the summary. Reference relevant details from those files where appropriate, but keep them as background context rather than quoting them directly.

The email should:
- Be warm, professional, and concise (aim for 150-300 words in the body)
- Open with a brief one-liner introducing yourself as "the AI Studio Assistant", something like "Hi team, this is the AI Studio Assistant with your Day X update." Keep it light and natural, not robotic
- Summarize what was accomplished today (the latest day's update)
- Reference relevant context from prior days to show continuity
- Weave in any relevant details from supplemental project files when it adds value
- Mention which deliverables are in progress or completed
- Include a "What's Next" section with 2-3 bullet points about what to expect
- Sign off as "AI Studio Assistant · Meisner Design"
- Use plain language, no jargon
- Don't use excessive formatting, keep it clean and scannable

Return ONLY a JSON object with these exact keys:
{
  "subject": "the email subject line",
  "body": "the full email body in plain text (use \\n for line breaks)"
}"""


@dataclass
class DraftedEmail:
    subject: str
    body: str


def _client() -> AsyncOpenAI:
    settings = get_settings()
    if not settings.openai_api_key:
        raise AINotConfiguredError("OpenAI API key not configured")
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        organization=settings.openai_org_id or None,
        project=settings.openai_project_id or None,
        timeout=settings.ai_timeout_seconds,
        max_retries=0,
    )


def parse_drafted_email(content: str, fallback_subject: str) -> DraftedEmail:
    """Pull the {subject, body} object out of the model output; fall back to the raw text."""
    content = re.sub(r"^```\w*\n?", "", content.strip())
    content = re.sub(r"\n?```$", "", content)
    match = re.search(r"\{[\s\S]*\}", content)
    if match:
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict) and data.get("subject") and data.get("body"):
            return DraftedEmail(subject=str(data["subject"]), body=str(data["body"]))
    logger.warning("AI summary was not valid JSON, using raw content")
    return DraftedEmail(subject=fallback_subject, body=content.strip())


async def draft_daily_summary(context_block: str, fallback_subject: str) -> DraftedEmail:
    """Ask the model for a {subject, body} email from the sprint context block.

    Raises AITimeoutError on timeout and AIUpstreamError on any non-OK upstream
    response or connection failure.
    """
    settings = get_settings()
    client = _client()
    try:
        response = await client.chat.completions.create(
            model=settings.openai_model,
            messages=[
                {"role": "system", "content": DAILY_SUMMARY_PROMPT},
                {"role": "user", "content": context_block},
            ],
            temperature=0.7,
            max_tokens=1000,
        )
    except openai.APITimeoutError as e:
        raise AITimeoutError("AI request timed out") from e
    except openai.APIStatusError as e:
        logger.error("OpenAI error status=%s body=%s", e.status_code, str(e.message)[:500])
        raise AIUpstreamError(e.status_code) from e
    except openai.APIConnectionError as e:
        logger.error("OpenAI connection failed: %s", e)
        raise AIUpstreamError(None, "AI service unreachable") from e

    content = (response.choices[0].message.content or "") if response.choices else ""
    return parse_drafted_email(content, fallback_subject)
