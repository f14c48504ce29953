"""Fetch readable text attachments from sprint links for AI context."""
import logging
from dataclasses import dataclass
from typing import Iterable

import httpx

from app.config import get_settings
from app.models.sprint import SprintLink

logger = logging.getLogger(__name__)

READABLE_MIMETYPES = frozenset({
    "text/plain",
    "text/markdown",
    "text/csv",
    "text/tab-separated-values",
    "application/json",
    "application/xml",
    "text/xml",
    "text/html",
})


@dataclass
class FileContext:
    name: str
    file_name: str
    content: str


def is_readable(link: SprintLink) -> bool:
    if link.link_type != "file" or not link.file_url or not link.mimetype:
        return False
    return link.mimetype.split(";")[0].strip().lower() in READABLE_MIMETYPES


async def read_link_files(links: Iterable[SprintLink]) -> list[FileContext]:
    """Download readable file links, capped per file. Unreachable files are skipped."""
    settings = get_settings()
    contexts: list[FileContext] = []
    readable = [link for link in links if is_readable(link)]
    if not readable:
        return contexts
    async with httpx.AsyncClient(timeout=settings.link_fetch_timeout_seconds, follow_redirects=True) as client:
        for link in readable:
            try:
                resp = await client.get(link.file_url)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning("Could not fetch sprint file %r: %s", link.name, e)
                continue
            contexts.append(
                FileContext(
                    name=link.name,
                    file_name=link.file_name or link.name,
                    content=resp.text[: settings.link_max_file_chars],
                )
            )
    return contexts
