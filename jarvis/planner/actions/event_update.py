"""event_update — admins change an upcoming event's time, date or location.

Two turns, always: the first message proposes a change and stores it as
``pending_confirmation``; only an explicit "yes" applies it. If the event
then starts within the notice window, every member gets a broadcast.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Any

from jarvis.core import constants as C
from jarvis.core.errors import LanguageServiceError
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.content_filter import clean
from jarvis.planner.state import ActionResult, Event

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

CANDIDATE_LIMIT = 20

_CONFIRM = re.compile(r"^(?:yes|y|yeah|yep|yup|confirm|sure|do it)[.!]*$", _I)
_REJECT = re.compile(r"^(?:no|n|nah|nope|cancel|nvm|never mind)[.!]*$", _I)

_TIME = re.compile(r"\b(?:to|at|@)\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", _I)
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_WEEKDAY = re.compile(r"\bto\s+(?:next\s+)?(" + "|".join(_WEEKDAYS) + r")\b", _I)
_RELATIVE_DAY = re.compile(r"\bto\s+(today|tonight|tomorrow)\b", _I)
_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")
_MONTH_DAY = re.compile(r"\bto\s+(" + "|".join(_MONTHS) + r")[a-z]*\.?\s+(\d{1,2})\b", _I)
_NUMERIC_DATE = re.compile(r"\bto\s+(\d{1,2})/(\d{1,2})\b")
_LOCATION = re.compile(
    r"\b(?:location|venue|place)\s+(?:is\s+now|is|to|now)\s+(?P<a>.+?)[.!]*$"
    r"|\b(?:is|will be)\s+(?:at|in)\s+(?P<b>.+?)\s+now[.!]*$"
    r"|\b(?:moved?|relocated?|switch(?:ed)?)\b.*?\bto\s+(?P<c>the\s+.+?)[.!]*$",
    _I,
)
_STOPWORDS = {
    "the", "and", "for", "move", "moved", "moving", "change", "changed", "reschedule", "rescheduled",
    "push", "pushed", "postpone", "postponed", "switch", "relocate", "relocated", "now", "today",
    "tonight", "tomorrow", "to", "at", "is", "will", "be", "our", "this", "next",
}

MATCH_SYSTEM = """\
You read an admin's message asking to change an upcoming event.
Identify which of the listed events it refers to (by name, date or context) and what changes.
Only these fields may change: starts_at (ISO 8601 datetime) and location.
Return JSON: {"event_id": "<id from the list or null>", "starts_at": "<ISO or null>", \
"location": "<text or null>", "confidence": 0.0-1.0}"""

_NOT_ADMIN = "only admins can update events"
_NO_EVENTS = "no upcoming events found to update"
_NO_MATCH = "couldn't figure out which event you want to update. try being more specific?"
_NO_CHANGE = "not sure what you want to change about that event. new time, date or location?"
_REPROMPT = "say 'yes' to confirm the update or 'no' to cancel"
_CANCELLED = "ok, cancelled the update"


def _tokens(text: str) -> set[str]:
    return {w for w in re.findall(r"[a-z0-9']+", text.lower()) if len(w) > 2 and w not in _STOPWORDS}


def match_event(message: str, events: list[Event]) -> Event | None:
    """Candidate sharing the most title words with the message."""
    words = _tokens(message)
    best, best_score = None, 0
    for event in events:
        score = len(words & _tokens(event.title))
        if score > best_score:
            best, best_score = event, score
    return best


def parse_changes(message: str, event: Event, now: datetime) -> dict[str, Any]:
    """Extract new starts_at / location from free text, relative to ``event``."""
    patch: dict[str, Any] = {}
    start = event.starts_at
    day = start

    relative = _RELATIVE_DAY.search(message)
    weekday = _WEEKDAY.search(message)
    month_day = _MONTH_DAY.search(message)
    numeric = _NUMERIC_DATE.search(message)
    if relative:
        offset = 1 if relative.group(1).lower() == "tomorrow" else 0
        day = now + timedelta(days=offset)
    elif weekday:
        target = _WEEKDAYS.index(weekday.group(1).lower())
        day = now + timedelta(days=(target - now.weekday()) % 7 or 7)
    elif month_day:
        month = _MONTHS.index(month_day.group(1).lower()[:3]) + 1
        day = _safe_date(now, month, int(month_day.group(2)))
    elif numeric:
        day = _safe_date(now, int(numeric.group(1)), int(numeric.group(2)))

    hour, minute = start.hour, start.minute
    t = _TIME.search(message)
    if t:
        hour = int(t.group(1)) % 12 + (12 if t.group(3).lower() == "pm" else 0)
        minute = int(t.group(2) or 0)

    if day is not None:
        new_start = start.replace(year=day.year, month=day.month, day=day.day, hour=hour, minute=minute)
        if new_start != start:
            patch["starts_at"] = new_start.isoformat()

    loc = _LOCATION.search(message)
    if loc:
        place = next(g for g in loc.groups() if g)
        if not (_TIME.search(f"to {place}") or _WEEKDAY.search(f"to {place}")):
            patch["location"] = place.strip()
    return patch


def _safe_date(now: datetime, month: int, day: int) -> datetime | None:
    try:
        candidate = now.replace(month=month, day=day)
    except ValueError:
        return None
    if candidate.date() < now.date():
        try:
            candidate = candidate.replace(year=candidate.year + 1)
        except ValueError:
            return None
    return candidate


def describe_patch(patch: dict[str, Any]) -> str:
    parts = []
    if "starts_at" in patch:
        when = datetime.fromisoformat(patch["starts_at"])
        parts.append("move to " + when.strftime("%a %b %d at %I:%M%p").replace(" 0", " ").lower())
    if "location" in patch:
        parts.append(f"location {patch['location']}")
    return " and ".join(parts)


def starts_within(starts_at: datetime, now: datetime, window: timedelta) -> bool:
    """True if ``starts_at`` falls before ``now + window``.

    A naive datetime is read in the zone of the other one, so repositories
    that hand back naive local times compare cleanly against an aware clock.
    """
    if starts_at.tzinfo is None and now.tzinfo is not None:
        starts_at = starts_at.replace(tzinfo=now.tzinfo)
    elif now.tzinfo is None and starts_at.tzinfo is not None:
        now = now.replace(tzinfo=starts_at.tzinfo)
    return starts_at <= now + window


def notice_text(event: Event) -> str:
    when = event.starts_at.strftime("%a %b %d at %I:%M%p").replace(" 0", " ").lower()
    where = f" at {event.location}" if event.location else ""
    return f"📢 update: {event.title} is now {when}{where}"


async def _ask_service(ctx: HandlerContext, events: list[Event]) -> tuple[Event | None, dict[str, Any]]:
    if ctx.service is None:
        return None, {}
    payload = {
        "message": clean(ctx.message),
        "today": ctx.now().isoformat(),
        "events": [
            {"id": e.id, "title": e.title, "starts_at": e.starts_at.isoformat(), "location": e.location}
            for e in events
        ],
    }
    try:
        data = await ctx.service.complete_json(
            "event_update", MATCH_SYSTEM, payload, temperature=ctx.config.classification_temperature
        )
    except LanguageServiceError as exc:
        logger.warning("Event matching via service failed: %s", exc)
        return None, {}

    by_id = {e.id: e for e in events}
    event = by_id.get(str(data.get("event_id")))
    try:
        confidence = float(data.get("confidence") or 0)
    except (TypeError, ValueError):
        logger.warning("Service returned a non-numeric confidence: %r", data.get("confidence"))
        confidence = 0.0
    if event is None or confidence < 0.5:
        return None, {}
    patch: dict[str, Any] = {}
    if data.get("starts_at"):
        try:
            starts_at = datetime.fromisoformat(str(data["starts_at"]))
        except ValueError:
            logger.warning("Service returned an unparseable starts_at: %r", data["starts_at"])
        else:
            if starts_at.tzinfo is None and event.starts_at.tzinfo is not None:
                starts_at = starts_at.replace(tzinfo=event.starts_at.tzinfo)
            patch["starts_at"] = starts_at.isoformat()
    if data.get("location"):
        patch["location"] = str(data["location"]).strip()
    return event, patch


async def _resolve_pending(ctx: HandlerContext, pending: dict[str, Any]) -> ActionResult:
    text = ctx.message.strip()
    if _REJECT.match(text):
        logger.info("Event change for %s discarded by %s", pending.get("event_id"), ctx.user_id)
        return ActionResult(C.EVENT_UPDATE, ctx.style(_CANCELLED), ctx.draft)
    if not _CONFIRM.match(text):
        return ActionResult(C.EVENT_UPDATE, ctx.style(_REPROMPT), ctx.draft, pending_confirmation=pending)

    patch = dict(pending.get("patch") or {})
    if "starts_at" in patch:
        patch["starts_at"] = datetime.fromisoformat(patch["starts_at"])
    try:
        event = await ctx.collaborators.events.update_event(pending["event_id"], patch)
    except Exception as exc:
        logger.warning("Event update failed for %s: %s", pending.get("event_id"), exc)
        return ActionResult(C.EVENT_UPDATE, f"failed to update event: {exc}", ctx.draft)
    logger.info("Event %s updated by %s", event.id, ctx.user_id)

    response = f"✅ event updated: {pending.get('summary', 'done')}."
    window = timedelta(seconds=ctx.config.event_notice_window)
    broadcasts = ctx.collaborators.broadcasts
    if broadcasts is not None and starts_within(event.starts_at, ctx.now(), window):
        try:
            sent = await broadcasts.send_announcement(notice_text(event), ctx.user_id)
        except Exception as exc:
            logger.warning("Event change notice failed for %s: %s", event.id, exc)
            response += f" couldn't notify everyone: {exc}"
        else:
            logger.info("Event %s starts soon; notified %d member(s)", event.id, sent)
            response += f" sent update to {sent} {'person' if sent == 1 else 'people'}."
    return ActionResult(C.EVENT_UPDATE, response, ctx.draft)


async def handle_event_update(ctx: HandlerContext) -> ActionResult:
    if not ctx.permits(C.EVENT_UPDATE):
        return ActionResult(C.CHAT, ctx.style(_NOT_ADMIN), ctx.draft)

    repo = ctx.collaborators.events
    if repo is None:
        return ActionResult(C.EVENT_UPDATE, ctx.style(_NO_EVENTS), ctx.draft)

    pending = ctx.session.pending_confirmation
    if pending:
        return await _resolve_pending(ctx, pending)

    events = await repo.get_upcoming_events(CANDIDATE_LIMIT)
    if not events:
        return ActionResult(C.EVENT_UPDATE, ctx.style(_NO_EVENTS), ctx.draft)

    event, patch = await _ask_service(ctx, events)
    if event is None:
        event = match_event(ctx.message, events)
        if event is None:
            return ActionResult(C.EVENT_UPDATE, ctx.style(_NO_MATCH), ctx.draft)
        patch = parse_changes(ctx.message, event, ctx.now())
    if not patch:
        return ActionResult(C.EVENT_UPDATE, ctx.style(_NO_CHANGE), ctx.draft)

    summary = describe_patch(patch)
    proposal = {
        "event_id": event.id,
        "title": event.title,
        "patch": patch,
        "summary": summary,
        "old_starts_at": event.starts_at.isoformat(),
    }
    logger.info("Proposed change to event %s: %s", event.id, summary)
    response = f'confirm: {summary} for "{event.title}"? reply yes/no'
    return ActionResult(C.EVENT_UPDATE, response, ctx.draft, pending_confirmation=proposal)
