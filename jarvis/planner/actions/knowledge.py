"""knowledge_upload — admins text org facts for Jarvis to remember."""
from __future__ import annotations

import logging
import re
from typing import Any

from jarvis.core import constants as C
from jarvis.core.errors import LanguageServiceError
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.content_filter import clean
from jarvis.planner.state import ActionResult

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

_NOTE_PREFIX = re.compile(
    r"^(?:fyi|note that|note|remember that|remember|for the record|save this|for your info)[:,\s-]*", _I
)
_QUESTION = re.compile(r"\?\s*$|^(?:what|when|where|who|why|how|is|are|can|could|does|do|will)\b", _I)
_COMMAND = re.compile(r"^(?:announce|poll|send|cancel|delete|help)\b", _I)
_MIN_WORDS = 4

TRIAGE_SYSTEM = """\
You decide whether an admin's SMS contains factual organization information worth storing in a knowledge base.

Store: event dates/times/locations, meeting schedules, deadlines, policies, contact info, resources and links, procedures.
Do not store: commands to the bot, questions, casual conversation, complaints, personal messages.

If it should be stored, suggest a short title (5-8 words).
Return JSON: {"should_upload": true/false, "title": "<title or empty>", "reasoning": "<short>"}"""

_NOT_ADMIN = "only admins can add info to the knowledge base"
_NOT_WORTHY = (
    "that doesn't look like info to add to the knowledge base. "
    "try something like 'ski retreat is happening jan 16-19 in utah'"
)


def strip_note_prefix(message: str) -> str:
    return _NOTE_PREFIX.sub("", message.strip(), count=1).strip()


def looks_upload_worthy(text: str) -> bool:
    """Heuristic triage used when no language service is available."""
    body = strip_note_prefix(text)
    if len(body.split()) < _MIN_WORDS:
        return False
    return not (_QUESTION.search(body) or _COMMAND.match(body))


def _default_title(text: str) -> str:
    words = text.split()
    title = " ".join(words[:6])
    return title + ("..." if len(words) > 6 else "")


async def triage(ctx: HandlerContext, text: str) -> tuple[bool, str]:
    """(should_upload, title) for ``text``."""
    if not looks_upload_worthy(text):
        return False, ""
    body = strip_note_prefix(text)
    if ctx.service is None:
        return True, _default_title(body)
    try:
        data: dict[str, Any] = await ctx.service.complete_json(
            "knowledge_triage",
            TRIAGE_SYSTEM,
            {"message": clean(text), "submitted_by": ctx.user.name or "Admin"},
            temperature=ctx.config.classification_temperature,
        )
    except LanguageServiceError as exc:
        logger.warning("Knowledge triage failed, using heuristic: %s", exc)
        return True, _default_title(body)
    title = str(data.get("title") or "").strip() or _default_title(body)
    return data.get("should_upload") is True, title


async def handle_knowledge_upload(ctx: HandlerContext) -> ActionResult:
    if not ctx.permits(C.KNOWLEDGE_UPLOAD):
        return ActionResult(C.CHAT, ctx.style(_NOT_ADMIN), ctx.draft)

    body = strip_note_prefix(ctx.message)
    should_upload, title = await triage(ctx, ctx.message)
    if not should_upload:
        logger.info("Knowledge upload from %s rejected by triage", ctx.user_id)
        return ActionResult(C.CHAT, ctx.style(_NOT_WORTHY), ctx.draft)

    ingestor = ctx.collaborators.knowledge
    if ingestor is None:
        logger.error("No knowledge ingestor configured; dropping upload from %s", ctx.user_id)
        return ActionResult(C.KNOWLEDGE_UPLOAD, ctx.style(ctx.templates.something_broke()), ctx.draft)

    try:
        count = await ingestor.ingest(body, title, ctx.user_id)
    except Exception as exc:
        logger.warning("Knowledge ingestion failed for %s: %s", ctx.user_id, exc)
        return ActionResult(C.KNOWLEDGE_UPLOAD, f"failed to upload. error: {exc}", ctx.draft)

    summary = f"extracted {count} fact{'s' if count != 1 else ''}" if count else "processed"
    logger.info("Knowledge upload '%s' from %s: %d fact(s)", title, ctx.user_id, count)
    return ActionResult(C.KNOWLEDGE_UPLOAD, ctx.style(f'✅ added to knowledge base: "{title}". {summary}'), ctx.draft)
