"""Draft content helpers — extraction, formatting, edits, link/mandatory cues.

Everything here is a pure function of its text inputs. The draft lifecycle
itself (create/update/send/cancel) lives in the action handlers.
"""
from __future__ import annotations

import re

from jarvis.core import constants as C

_I = re.IGNORECASE

# ---------------------------------------------------------------------------
# Content extraction
# ---------------------------------------------------------------------------

_POLITE = r"(?:(?:can|could|would) you\s+|please\s+|pls\s+|yo\s+)?"

_ANNOUNCEMENT_PREFIXES = [
    re.compile(r"^announce(?:ment)?\b\s*:?\s*", _I),
    re.compile(
        _POLITE + r"(?:send|make|create|start|do|write)\s+(?:out\s+)?(?:an?\s+)?announcement\b\s*"
        r"(?:saying|that says|that|about|for|:)?\s*",
        _I,
    ),
    re.compile(
        _POLITE + r"(?:tell|notify|let)\s+(?:everyone|people|all|the group|everybody)\b\s*"
        r"(?:know\s*)?(?:about|that|to)?\s*",
        _I,
    ),
    re.compile(
        _POLITE + r"(?:send|send out|text)\s+(?:a\s+)?(?:message|text)\s+(?:to\s+)?"
        r"(?:everyone|all|the group)?\s*(?:saying|that|about|regarding|for)?\s*",
        _I,
    ),
]

_POLL_PREFIXES = [
    re.compile(r"^poll\b\s*:?\s*", _I),
    re.compile(
        _POLITE + r"(?:send|make|create|start|do|run)\s+(?:out\s+)?(?:a\s+)?poll\b\s*"
        r"(?:asking|about|on|for|:)?\s*",
        _I,
    ),
    re.compile(
        _POLITE + r"(?:ask|asking)\s+(?:everyone|people|all|the group|everybody)\b\s*"
        r"(?:if|whether|about)?\s*",
        _I,
    ),
]

_JUST_COMMAND = {
    C.ANNOUNCEMENT: re.compile(
        r"^(?:announce|announcement|(?:make|send|create|start|do|write)\s+(?:an?\s+)?announcement)"
        r"(?:\s+(?:pls|please))?[.!?]*$",
        _I,
    ),
    C.POLL: re.compile(
        r"^(?:poll|(?:make|send|create|start|do|run)\s+(?:a\s+)?poll)(?:\s+(?:pls|please))?[.!?]*$",
        _I,
    ),
}

# Anchored at start-of-string for re.match; the leading "^" in some
# patterns is redundant but harmless.
_PREFIXES = {C.ANNOUNCEMENT: _ANNOUNCEMENT_PREFIXES, C.POLL: _POLL_PREFIXES}


def extract_content(message: str, draft_type: str) -> str:
    """Strip command phrasing ("announce", "make a poll asking ...") from a message."""
    content = message.strip()
    for pattern in _PREFIXES.get(draft_type, []):
        m = pattern.match(content)
        if m:
            content = content[m.end():]
            break
    return content.strip()


def is_just_command(message: str, draft_type: str | None = None) -> bool:
    """True when the message asks for a draft but carries no content."""
    text = message.strip()
    types = [draft_type] if draft_type else list(C.DRAFT_TYPES)
    return any(_JUST_COMMAND[t].match(text) for t in types if t in _JUST_COMMAND)


def command_type(message: str) -> str | None:
    """Draft type named by a bare command, if any."""
    for draft_type in C.DRAFT_TYPES:
        if _JUST_COMMAND[draft_type].match(message.strip()):
            return draft_type
    return None


def format_content(content: str, draft_type: str) -> str:
    """Polls always end with a single "?"; announcements are used verbatim."""
    formatted = content.strip()
    if draft_type == C.POLL and formatted:
        formatted = formatted.rstrip(" .!,;:")
        if not formatted.endswith("?"):
            formatted += "?"
    return formatted


# ---------------------------------------------------------------------------
# Links and mandatory cues
# ---------------------------------------------------------------------------

_RE_URL = re.compile(r"(?:https?://|www\.)[^\s<>\"']+", _I)
_RE_NEEDS_LINK = re.compile(
    r"\b(?:rsvp|sign[\s-]?ups?|register|registration|fill out|form|survey|click here|tickets?)\b",
    _I,
)
_RE_SKIP_LINK = re.compile(r"^(?:skip|no link|none|no url|nah|without (?:a )?link)[.!]*$", _I)
_RE_MANDATORY = re.compile(
    r"\b(?:mandatory|required|requirement|must attend|must be there|have to be there"
    r"|attendance is required|everyone needs to be there|non-?optional)\b",
    _I,
)


def extract_links(text: str) -> list[str]:
    return [m.group(0).rstrip(".,!?)") for m in _RE_URL.finditer(text)]


def needs_link(content: str) -> bool:
    """Content asks people to RSVP/sign up/etc. but has no URL."""
    return bool(_RE_NEEDS_LINK.search(content)) and not extract_links(content)


def is_skip_link(message: str) -> bool:
    return bool(_RE_SKIP_LINK.match(message.strip()))


def looks_mandatory(text: str) -> bool:
    return bool(_RE_MANDATORY.search(text))


# ---------------------------------------------------------------------------
# Edits (each rule idempotent: applying the same instruction twice is a no-op)
# ---------------------------------------------------------------------------

_REPLACEMENT_PATTERNS = [
    re.compile(r"^(?:no+|nah|wait)[,.!]*\s+(?:it\s+)?should\s+(?:say|be|read)\s+(.+)$", _I),
    re.compile(r"^(?:it\s+)?should\s+(?:say|read)\s+(.+)$", _I),
    re.compile(r"^(?:no+[,.!]*\s+)?change\s+(?:it|that|the (?:text|message))\s+to\s+(.+)$", _I),
    re.compile(r"^(?:no+[,.!]*\s+)?make\s+it\s+say\s+(.+)$", _I),
    re.compile(r"^(?:no+|nah|wait)[,.!]*\s+(?:just\s+)?say\s+(.+)$", _I),
    re.compile(r"^(?:just\s+)?say\s+(.+)$", _I),
    re.compile(r"^(?:actually|instead)[,.!]*\s+(.+)$", _I),
]

_ADDITIVE_PATTERNS = [
    re.compile(r"^(?:also\s+)?(?:add|include|append)\s+(?:that\s+)?(.+)$", _I),
    re.compile(r"^(?:also\s+)?mention\s+(?:that\s+)?(.+)$", _I),
]

_TONE_CUES = {
    "aggressive": re.compile(r"\b(?:aggressive|intense|hype|hyped|louder|urgent|all caps)\b", _I),
    "friendly": re.compile(r"\b(?:friendly|friendlier|nicer|warmer|kinder)\b", _I),
    "funny": re.compile(r"\b(?:funny|funnier|joke|jokier|silly)\b", _I),
    "serious": re.compile(r"\b(?:serious|professional|formal)\b", _I),
    "short": re.compile(r"\b(?:short|shorter|brief|briefer|concise|shorten)\b", _I),
    "long": re.compile(r"\b(?:long|longer|detailed|more detail|expand)\b", _I),
}
_TONE_FRAME = re.compile(r"\b(?:make it|make this|more|less|sound|be|too)\b", _I)

_RE_EMOJI = re.compile("[☀-➿\U0001f300-\U0001faff]️?")
_RE_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")

_FRIENDLY_OPEN = "hey everyone! "
_FUNNY_CLOSE = " 😂"
_FUNNY_POLL_OPEN = "be honest: "
_LONG_CLOSE = " don't miss it!"
_LONG_POLL_OPEN = "quick poll: "
_SHORT_LIMIT = 80


def detect_tone(message: str) -> str | None:
    """Tone-change instruction in a short edit message, if any."""
    text = message.strip()
    if len(text.split()) > 6:
        return None
    for tone, pattern in _TONE_CUES.items():
        if pattern.search(text):
            if _TONE_FRAME.search(text) or len(text.split()) <= 2:
                return tone
    return None


def _strip_end(text: str) -> str:
    return text.rstrip(" .!?")


def apply_tone(content: str, tone: str, draft_type: str) -> str:
    """Deterministic text transform for a tone instruction."""
    is_poll = draft_type == C.POLL
    text = content.strip()

    if tone == "aggressive":
        text = text.upper()
        if not is_poll:
            text = _strip_end(text) + "!!"
    elif tone == "friendly":
        if not text.lower().startswith(_FRIENDLY_OPEN.strip()):
            text = _FRIENDLY_OPEN + text
        if not is_poll and not text.endswith("😊"):
            text = text + " 😊"
    elif tone == "funny":
        if is_poll:
            if not text.lower().startswith(_FUNNY_POLL_OPEN):
                text = _FUNNY_POLL_OPEN + text
        elif not text.endswith(_FUNNY_CLOSE.strip()):
            text = text + _FUNNY_CLOSE
    elif tone == "serious":
        text = _RE_EMOJI.sub("", text)
        text = re.sub(r"\s*\blol\b", "", text, flags=_I)
        text = re.sub(r"!+", ".", text)
        text = re.sub(r"\s{2,}", " ", text).strip()
        if text.isupper():
            text = text.lower()
        if text:
            text = text[0].upper() + text[1:]
        if not is_poll and text and not text.endswith((".", "?")):
            text += "."
    elif tone == "short":
        text = _RE_SENTENCE_END.split(text)[0]
        if len(_strip_end(text)) > _SHORT_LIMIT:
            cut = text[:_SHORT_LIMIT].rsplit(" ", 1)[0]
            text = cut.rstrip(" ,;:")
    elif tone == "long":
        if is_poll:
            if not text.lower().startswith(_LONG_POLL_OPEN):
                text = _LONG_POLL_OPEN + text
        elif not text.endswith(_LONG_CLOSE.strip()):
            text = text + _LONG_CLOSE

    return format_content(text, draft_type)


def _append(current: str, addition: str, draft_type: str) -> str:
    if draft_type == C.POLL:
        return format_content(f"{_strip_end(current)} - {_strip_end(addition)}", draft_type)
    base = current.strip()
    if base and not base.endswith((".", "!", "?")):
        base += "."
    return f"{base} {addition.strip()}".strip()


def apply_edit(current: str, message: str, draft_type: str) -> str:
    """Apply an edit instruction to ready draft content.

    Order: replacement, additive, tone transform, full replacement.
    """
    text = message.strip()

    for pattern in _REPLACEMENT_PATTERNS:
        m = pattern.match(text)
        if m:
            return format_content(m.group(1), draft_type)

    for pattern in _ADDITIVE_PATTERNS:
        m = pattern.match(text)
        if m:
            addition = m.group(1).strip()
            if _strip_end(addition).lower() in current.lower():
                return current
            return _append(current, addition, draft_type)

    tone = detect_tone(text)
    if tone:
        return apply_tone(current, tone, draft_type)

    return format_content(extract_content(text, draft_type) or text, draft_type)
