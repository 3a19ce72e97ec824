"""content_query — answer questions about the organization from evidence.

Evidence comes from two optional searches (general content and past
broadcasts), is ordered by priority, and handed to the language service
with a strict "use only this evidence" contract. Without a service the
top item is returned as-is.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from jarvis.core import constants as C
from jarvis.core.errors import LanguageServiceError
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.content_filter import clean
from jarvis.planner.history import HistoryStore
from jarvis.planner.state import ActionResult, ContentItem

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

_RECENT_ACTION = re.compile(
    r"\b(?:what did|what have) (?:you|i) (?:just )?(?:send|sent|say|said|announce|do|did)\b"
    r"|\bwhat (?:was|is) (?:that|the) (?:announcement|message|poll)\b",
    _I,
)
_QUOTED = re.compile(r'"([^"]+)"')
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Priority buckets, highest first
_UPCOMING, _RECURRING, _GENERAL, _BROADCAST = 4, 3, 2, 1

ANSWER_SYSTEM = """\
You answer a member's question about their organization over SMS, using ONLY the evidence below.

Rules:
- The evidence is already ordered: upcoming events > recurring events > general facts > past broadcasts.
- If evidence is provided, use it. Do not say you have no information.
- NEVER invent a date. Use dates stated in the evidence, or compute them:
  * relative dates in live questions ("tomorrow", "this friday") are computed from TODAY
  * relative dates inside a past broadcast ("tmr", "next week") are computed from THAT broadcast's sent date
  * recurring items come with their next occurrence; state the pattern and the next date
- If a time or location is not in the evidence, leave it out. Say "TBD" when the evidence says so.
- Plain text, no markdown, short enough for a text message."""


def next_occurrence(weekday: str, today: datetime) -> datetime | None:
    """Next date strictly after ``today`` falling on ``weekday``."""
    name = weekday.strip().lower()
    if name.startswith("recurring:"):
        name = name.split(":", 1)[1]
    if name not in _WEEKDAYS:
        return None
    days = (_WEEKDAYS.index(name) - today.weekday()) % 7 or 7
    return today + timedelta(days=days)


def _priority(item: ContentItem, now: datetime) -> int:
    if item.source == "broadcast":
        return _BROADCAST
    if item.event_date is not None and item.event_date.date() >= now.date():
        return _UPCOMING
    if item.recurring:
        return _RECURRING
    return _GENERAL


def rank_evidence(items: list[ContentItem], now: datetime) -> list[ContentItem]:
    """Order by priority bucket, then by score within a bucket."""
    return sorted(items, key=lambda item: (_priority(item, now), item.score), reverse=True)


def recall_recent_send(history: HistoryStore) -> str | None:
    """What the user just broadcast, from the last preview before a send."""
    turns = history.turns
    lookback = turns[-C.HISTORY_WINDOW:]
    for i in range(len(lookback) - 1, -1, -1):
        turn = lookback[i]
        if turn.role != "assistant" or turn.action != C.DRAFT_SEND:
            continue
        start = len(turns) - len(lookback) + i
        for prev in reversed(turns[:start]):
            if prev.role == "assistant" and prev.action == C.DRAFT_WRITE:
                match = _QUOTED.search(prev.content)
                if match:
                    return f'i just sent out: "{match.group(1)}"'
        return "i just sent out an announcement. check your messages"
    return None


def _describe(index: int, item: ContentItem, now: datetime) -> str:
    lines = [f"[{index}] {item.title or 'Info'}", clean(item.body)]
    if item.source == "broadcast":
        lines.append("Type: PAST BROADCAST")
        if item.sent_at is not None:
            sent = item.sent_at.strftime("%Y-%m-%d (%A)")
            lines.append(f"Sent: {sent}. Relative dates in this broadcast are relative to {sent}, not today.")
    elif item.event_date is not None:
        lines.append(f"Type: EVENT on {item.event_date.strftime('%Y-%m-%d (%A)')}")
    elif item.recurring:
        lines.append(f"Type: RECURRING every {item.recurring.split(':')[-1]}")
        nxt = next_occurrence(item.recurring, now)
        if nxt is not None:
            lines.append(f"Next occurrence: {nxt.strftime('%A %Y-%m-%d')}")
    else:
        lines.append("Type: FACT")
    return "\n".join(lines)


def build_answer_prompt(question: str, evidence: list[ContentItem], now: datetime) -> str:
    blocks = "\n\n".join(_describe(i, item, now) for i, item in enumerate(evidence, 1))
    return (
        f"Today is {now.strftime('%A, %Y-%m-%d')}.\n\n"
        f'Question: "{clean(question)}"\n\n'
        f"Evidence ({len(evidence)} item(s)):\n{blocks}"
    )


async def _search(ctx: HandlerContext, source: str) -> list[ContentItem]:
    search = getattr(ctx.collaborators, source)
    if search is None:
        return []
    try:
        items = await search.search(ctx.message)
    except Exception as exc:
        logger.warning("Content search '%s' failed: %s", source, exc)
        return []
    if source == "past_broadcasts":
        for item in items:
            item.source = "broadcast"
    return list(items)


async def handle_content_query(ctx: HandlerContext) -> ActionResult:
    if _RECENT_ACTION.search(ctx.message):
        recalled = recall_recent_send(ctx.session.history)
        if recalled:
            return ActionResult(C.CONTENT_QUERY, ctx.style(recalled), ctx.draft)

    now = ctx.now()
    evidence = rank_evidence(
        await _search(ctx, "content") + await _search(ctx, "past_broadcasts"), now
    )
    if not evidence:
        return ActionResult(C.CONTENT_QUERY, ctx.style(ctx.templates.no_results()), ctx.draft)

    answer = evidence[0].body
    if ctx.service is not None:
        try:
            answer = await ctx.service.complete_text(
                "content_answer",
                ANSWER_SYSTEM,
                build_answer_prompt(ctx.message, evidence, now),
                temperature=ctx.config.rendering_temperature,
            )
        except LanguageServiceError as exc:
            logger.warning("Content answer failed, using top result: %s", exc)
    logger.info("Answered content query from %d evidence item(s)", len(evidence))
    return ActionResult(C.CONTENT_QUERY, ctx.style(answer), ctx.draft)
