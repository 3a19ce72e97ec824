"""Intent classifier — ordered pattern table plus semantic classification.

Three layers, evaluated in order:

1. **Fast path** — unambiguous cases only, confidence >= 0.95. A hit
   returns immediately; the language service is not called.
2. **Semantic path** — a structured context (weighted history, draft state,
   flags, action taxonomy) sent to the language service, expected back as
   ``{action, confidence, subtype?, reasoning}``.
3. **Hints** — lower-confidence patterns (0.8-0.9). A hint replaces the
   semantic result only when the semantic result is less confident,
   which includes the degraded fallback when the service is down.

Failures never propagate: an unusable service response degrades to
``chat`` at confidence 0.5.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from jarvis.core import constants as C
from jarvis.core.errors import ClassificationFailure, LanguageServiceError
from jarvis.core.llm import LanguageService
from jarvis.planner import drafts
from jarvis.planner.content_filter import clean
from jarvis.planner.poll_parser import parse_poll_response
from jarvis.planner.state import ClassificationContext, ClassificationResult

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

_SEND_WORDS = re.compile(
    r"^(?:send|send it|go|go ahead|ship|ship it|yes|yep|yeah|do it|blast it|fire|fire away)[.!]*$", _I
)
_CANCEL_WORDS = re.compile(
    r"^(?:cancel|nvm|nevermind|never mind|delete|discard|forget it|scratch that|delete it|cancel it)[.!]*$", _I
)
_YES_NO = re.compile(r"^(?:yes|yeah|yep|yup|y|sure|no|nah|nope|n|cancel)[.!]*$", _I)
_ANNOUNCE_CMD = re.compile(r"^announce\s+\S", _I)
_POLL_CMD = re.compile(r"^poll\s+\S", _I)


@dataclass(frozen=True)
class Rule:
    """One row of a pattern table."""

    name: str
    predicate: Callable[[str, ClassificationContext], bool]
    action: str
    confidence: float
    subtype: Callable[[str, ClassificationContext], str | None] | None = None

    def result(self, message: str, ctx: ClassificationContext, reasoning: str) -> ClassificationResult:
        subtype = self.subtype(message, ctx) if self.subtype else None
        return ClassificationResult(self.action, self.confidence, subtype, f"{reasoning}: {self.name}")


def _draft_type(_: str, ctx: ClassificationContext) -> str | None:
    return ctx.draft.type if ctx.draft else None


def _const(value: str) -> Callable[[str, ClassificationContext], str]:
    return lambda _m, _c: value


def _has_draft(ctx: ClassificationContext) -> bool:
    return ctx.draft is not None and ctx.draft.is_active


def _sendable(ctx: ClassificationContext) -> bool:
    d = ctx.draft
    return d is not None and d.is_ready and not d.pending_mandatory and not d.pending_link


# ---------------------------------------------------------------------------
# Fast path (>= 0.95, bypasses the semantic step)
# ---------------------------------------------------------------------------

FAST_PATH: tuple[Rule, ...] = (
    Rule(
        "pending excuse",
        lambda m, c: c.pending_excuse,
        C.POLL_RESPONSE, 1.0,
    ),
    Rule(
        "pending event confirmation",
        lambda m, c: c.pending_confirmation and bool(_YES_NO.match(m)),
        C.EVENT_UPDATE, 0.97,
    ),
    Rule(
        "mandatory confirmation",
        lambda m, c: _has_draft(c) and c.draft.pending_mandatory and bool(_YES_NO.match(m)),
        C.DRAFT_WRITE, 0.97, _draft_type,
    ),
    Rule(
        "send command",
        lambda m, c: _sendable(c) and bool(_SEND_WORDS.match(m)),
        C.DRAFT_SEND, 0.95,
    ),
    Rule(
        "cancel command",
        lambda m, c: _has_draft(c) and bool(_CANCEL_WORDS.match(m)),
        C.CHAT, 0.95,
    ),
    Rule(
        "announce command",
        lambda m, c: bool(_ANNOUNCE_CMD.match(m)),
        C.DRAFT_WRITE, 0.95, _const(C.ANNOUNCEMENT),
    ),
    Rule(
        "poll command",
        lambda m, c: bool(_POLL_CMD.match(m)),
        C.DRAFT_WRITE, 0.95, _const(C.POLL),
    ),
    Rule(
        "bare draft command",
        lambda m, c: drafts.command_type(m) is not None,
        C.DRAFT_WRITE, 0.95, lambda m, c: drafts.command_type(m),
    ),
    Rule(
        "awaiting draft content",
        lambda m, c: (
            _has_draft(c) and c.draft.status == C.STATUS_DRAFTING and not c.draft.content
            and not _CANCEL_WORDS.match(m) and not _SEND_WORDS.match(m)
        ),
        C.DRAFT_WRITE, 0.95, _draft_type,
    ),
    Rule(
        "awaiting draft link",
        lambda m, c: (
            _has_draft(c) and c.draft.pending_link
            and (bool(drafts.extract_links(m)) or drafts.is_skip_link(m))
        ),
        C.DRAFT_WRITE, 0.95, _draft_type,
    ),
)

# ---------------------------------------------------------------------------
# Hints (0.8-0.9, compete with the semantic result)
# ---------------------------------------------------------------------------

_P = lambda pattern: re.compile(pattern, _I)  # noqa: E731

_MAKE_ANNOUNCEMENT = _P(r"\b(?:make|send|create|start|write)\s+(?:out\s+)?(?:an?\s+)?announcement\b")
_TELL_EVERYONE = _P(r"\b(?:tell|notify|let)\s+(?:everyone|people|all|the group|everybody)\b")
_MESSAGE_EVERYONE = _P(r"\b(?:send|send out)\s+(?:a\s+)?(?:message|text)\s+(?:to\s+)?(?:everyone|all|the group)\b")
_MESSAGE_ABOUT = _P(r"\b(?:send|send out)\s+(?:a\s+)?(?:message|text)\s+(?:about|for|regarding)\b")
_MAKE_POLL = _P(r"\b(?:make|send|create|start|run)\s+(?:out\s+)?(?:a\s+)?poll\b")
_ASK_EVERYONE = _P(r"\b(?:ask|asking)\s+(?:everyone|people|all|the group|everybody)\s+(?:if|whether|about)\b")
_WHOS_COMING = _P(r"\b(?:who'?s|who is|who can|who will)\s+(?:coming|going|attend(?:ing)?|free|available)\b")

_CAPABILITY = [
    _P(r"\b(?:what can you do|what do you do|how do you work|how does this work)\b"),
    _P(r"\b(?:who are you|what are you|are you a bot|are you (?:an? )?ai)\b"),
    _P(r"^(?:help|commands|options|menu)[?!.]*$"),
    _P(r"\b(?:need help|help me|how to use)\b"),
    _P(r"\bwhat(?:'?s| is) jarvis\b"),
    _P(r"\b(?:your|jarvis'?s?) (?:capabilities|features|functions)\b"),
    _P(r"\bcan you (?:do my|write my|make me|order|buy|book|pay|call|drive|hack|cook)\b"),
    _P(r"\bcan you\s+(?:make|do|send|create|run)\s+(?:polls|announcements)\b"),
]

_CONTENT = [
    _P(r"\b(?:what did|what have) (?:you|i) (?:just )?(?:send|sent|say|said|announce|do|did)\b"),
    _P(r"\bwhat (?:was|is) (?:that|the) (?:announcement|message|poll)\b"),
    _P(r"\b(?:when|what time|where) (?:is|are|does|do)\b"),
    _P(r"\b(?:what'?s|what is) (?:happening|going on|the plan)\b"),
    _P(r"\b(?:is there|are there) (?:a |an |any )?(?:meeting|event|practice|active)\b"),
    _P(r"\b(?:tell me about|info on|details about|details on)\b"),
    _P(r"\bwhat(?:'?s| is) (?:on )?(?:tonight|today|tomorrow|this week)\b"),
    _P(r"\bwhat are we doing\b"),
    _P(r"\bwhat time should (?:i|we) (?:be there|arrive)\b"),
    _P(r"\bwhere should (?:we|i) (?:meet|go|be)\b"),
]

_EDIT_CUES = [
    _P(r"\b(?:change|edit|update|make it|instead|actually|rewrite|reword)\b"),
    _P(r"^no[,.]?\s+(?:it should|make it|say|just say)\b"),
    _P(r"^(?:add|also mention|include|mention)\b"),
]

_EVENT_CHANGE = _P(
    r"\b(?:move|moved|moving|reschedule|rescheduled|push|pushed|postpone|postponed|change|changed"
    r"|switch|relocate|relocated)\b.*\b(?:meeting|event|practice|party|game|dinner|session|rehearsal"
    r"|to \d|to (?:mon|tues|wednes|thurs|fri|satur|sun)day|to (?:tomorrow|tonight))"
)
_KNOWLEDGE_NOTE = _P(r"^(?:fyi|note|note that|remember|remember that|for the record|save this|for your info)\b")

HINTS: tuple[Rule, ...] = (
    Rule(
        "send command, draft not ready",
        lambda m, c: _has_draft(c) and bool(_SEND_WORDS.match(m)),
        C.DRAFT_SEND, 0.9,
    ),
    Rule("make an announcement", lambda m, c: bool(_MAKE_ANNOUNCEMENT.search(m)), C.DRAFT_WRITE, 0.9, _const(C.ANNOUNCEMENT)),
    Rule("make a poll", lambda m, c: bool(_MAKE_POLL.search(m)), C.DRAFT_WRITE, 0.9, _const(C.POLL)),
    Rule("admin event change", lambda m, c: c.is_admin and bool(_EVENT_CHANGE.search(m)), C.EVENT_UPDATE, 0.85),
    Rule("admin knowledge note", lambda m, c: c.is_admin and bool(_KNOWLEDGE_NOTE.search(m)), C.KNOWLEDGE_UPLOAD, 0.85),
    Rule("tell everyone", lambda m, c: bool(_TELL_EVERYONE.search(m) or _MESSAGE_EVERYONE.search(m)),
         C.DRAFT_WRITE, 0.85, _const(C.ANNOUNCEMENT)),
    Rule("ask everyone", lambda m, c: bool(_ASK_EVERYONE.search(m)), C.DRAFT_WRITE, 0.85, _const(C.POLL)),
    Rule(
        "poll answer",
        lambda m, c: (
            c.has_active_poll and len(m.split()) <= 8
            and parse_poll_response(m).is_explicit
            and not (c.draft is not None and c.draft.is_active)
        ),
        C.POLL_RESPONSE, 0.85,
    ),
    Rule("capability question", lambda m, c: any(p.search(m) for p in _CAPABILITY), C.CAPABILITY_QUERY, 0.85),
    Rule("message about", lambda m, c: bool(_MESSAGE_ABOUT.search(m)), C.DRAFT_WRITE, 0.8, _const(C.ANNOUNCEMENT)),
    Rule("who's coming", lambda m, c: bool(_WHOS_COMING.search(m)), C.DRAFT_WRITE, 0.8, _const(C.POLL)),
    Rule("content question", lambda m, c: any(p.search(m) for p in _CONTENT), C.CONTENT_QUERY, 0.8),
    Rule(
        "draft edit",
        lambda m, c: _has_draft(c) and c.draft.is_ready and any(p.search(m) for p in _EDIT_CUES),
        C.DRAFT_WRITE, 0.8, _draft_type,
    ),
)


def match_rules(rules: tuple[Rule, ...], message: str, ctx: ClassificationContext, reasoning: str) -> ClassificationResult | None:
    """First matching rule in table order, or None."""
    text = message.strip()
    for rule in rules:
        if rule.predicate(text, ctx):
            return rule.result(text, ctx, reasoning)
    return None


# ---------------------------------------------------------------------------
# Semantic path
# ---------------------------------------------------------------------------

CLASSIFY_SYSTEM = """\
You classify the intent of an SMS sent to Jarvis, a sassy assistant for an organization.

Actions (choose exactly one):
- draft_write: creating or editing an announcement or poll draft (including giving draft content, \
confirming whether a poll is mandatory, or supplying a link for the draft)
- draft_send: ONLY explicit confirmations like "send", "yes", "go", "do it" when a draft is ready. \
Requests to CREATE an announcement are draft_write, never draft_send.
- poll_response: answering the active poll (yes/no/maybe, with or without a reason)
- content_query: questions about the organization (events, schedules, people, what was sent)
- capability_query: questions about Jarvis itself, help requests, or asking it to do something it can't
- knowledge_upload: an admin sharing factual org information for Jarvis to remember
- event_update: an admin changing an existing event's time, date or location
- chat: banter, greetings, insults, cancelling, anything else

Weighted history: higher weight = more relevant; the most recent turn is last.
If the message repeats the draft content verbatim, it is chat unless it is an explicit send command.
If jarvis_awaiting.draft_content is true, a content-bearing reply is draft_write.
If jarvis_awaiting.send_confirmation is true, a bare "yes"/"send" is draft_send.

Return JSON: {"action": "<action>", "confidence": 0.0-1.0, "subtype": "announcement" | "poll" | null, \
"reasoning": "<brief explanation>"}"""


def build_classification_payload(ctx: ClassificationContext) -> dict[str, Any]:
    """Structured context for the semantic classifier."""
    history = [
        f"[weight {turn.weight:.1f}] {'User' if turn.role == 'user' else 'Jarvis'}: {clean(turn.content)}"
        for turn in ctx.history
    ]
    draft = None
    if ctx.draft is not None and ctx.draft.is_active:
        draft = {
            "type": ctx.draft.type,
            "status": ctx.draft.status,
            "content": ctx.draft.content or "(empty)",
            "pending_mandatory": ctx.draft.pending_mandatory,
            "pending_link": ctx.draft.pending_link,
        }
    return {
        "message": clean(ctx.message),
        "user": {"name": ctx.user_name or "Unknown", "is_admin": ctx.is_admin},
        "history": history,
        "active_draft": draft,
        "has_active_poll": ctx.has_active_poll,
        "pending_excuse_request": ctx.pending_excuse,
        "jarvis_awaiting": {"draft_content": ctx.awaiting_content, "send_confirmation": ctx.awaiting_send},
        "actions": list(C.ACTIONS),
    }


def validate_result(data: dict[str, Any]) -> ClassificationResult:
    """Turn service JSON into a ClassificationResult or raise ClassificationFailure."""
    action = data.get("action")
    if action not in C.ACTIONS:
        raise ClassificationFailure(f"unknown action {action!r}")
    try:
        confidence = float(data.get("confidence", C.FALLBACK_CONFIDENCE))
    except (TypeError, ValueError) as exc:
        raise ClassificationFailure(f"bad confidence {data.get('confidence')!r}") from exc
    confidence = max(0.0, min(1.0, confidence))
    subtype = data.get("subtype")
    if subtype not in C.DRAFT_TYPES:
        subtype = None
    reasoning = str(data.get("reasoning") or "semantic classification")
    return ClassificationResult(action, confidence, subtype, reasoning)


def fallback_result(reason: str = "fallback") -> ClassificationResult:
    return ClassificationResult(C.CHAT, C.FALLBACK_CONFIDENCE, None, reason)


async def classify_semantic(
    ctx: ClassificationContext,
    service: LanguageService | None,
    temperature: float = 0.1,
) -> ClassificationResult:
    """Ask the language service. Degrades to the fallback result on any failure."""
    if service is None:
        return fallback_result()
    try:
        data = await service.complete_json(
            "classify", CLASSIFY_SYSTEM, build_classification_payload(ctx), temperature=temperature
        )
        return validate_result(data)
    except (LanguageServiceError, ClassificationFailure) as exc:
        logger.warning("Semantic classification failed, using fallback: %s", exc)
        return fallback_result()
    except Exception:
        logger.error("Language service raised unexpectedly, using fallback", exc_info=True)
        return fallback_result("service error")


def _post_guard(result: ClassificationResult, ctx: ClassificationContext) -> ClassificationResult:
    if result.action == C.DRAFT_SEND and not _has_draft(ctx):
        return ClassificationResult(C.CHAT, result.confidence, None, "send requested but no active draft")
    if result.action == C.DRAFT_WRITE and result.subtype is None and ctx.draft is not None and ctx.draft.is_active:
        return ClassificationResult(result.action, result.confidence, ctx.draft.type, result.reasoning)
    return result


async def classify(
    ctx: ClassificationContext,
    service: LanguageService | None = None,
    *,
    temperature: float = 0.1,
) -> ClassificationResult:
    """Classify a message in context. Never raises."""
    fast = match_rules(FAST_PATH, ctx.message, ctx, "pattern")
    if fast is not None:
        return fast

    result = await classify_semantic(ctx, service, temperature)

    hint = match_rules(HINTS, ctx.message, ctx, "pattern hint")
    if hint is not None and hint.confidence > result.confidence:
        result = hint

    result = _post_guard(result, ctx)
    if result.confidence < C.LOW_CONFIDENCE_WARNING:
        logger.warning(
            "Low-confidence classification %.2f for %r -> %s (%s)",
            result.confidence, ctx.message[:60], result.action, result.reasoning,
        )
    return result
