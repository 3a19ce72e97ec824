"""Poll-response parser — free text to Yes/No/Maybe plus notes.

Deterministic priority ladder; the first matching rung wins:

1. explicit negative phrases ("can't make it", leading "no"/"n")
2. explicit affirmative phrases ("I'll be there", leading "yes"/"y")
3. uncertainty ("maybe", "not sure", "depends")
4. contextual hints ("late" without negation, "busy" without "but")
5. single-character y/n
6. default Maybe, raw text kept as notes
"""
from __future__ import annotations

import re

from jarvis.core import constants as C
from jarvis.planner.state import ParsedPollResponse

_I = re.IGNORECASE

_NEGATIVE_PHRASES = re.compile(
    r"\b(?:can'?t|cannot|can not|won'?t|wont|unable to|not able to|not gonna|not going to)\s+"
    r"(?:make it|be there|come|go|attend|do it|join)\b"
    r"|\b(?:count me out|i'?m out|not coming|not going|i'?ll pass|gotta pass|have to pass)\b",
    _I,
)
_NEGATIVE_LEAD = re.compile(r"^\s*(?:no|nah|nope|n)\b(?!\s+(?:problem|worries|doubt)\b)", _I)

_AFFIRMATIVE_PHRASES = re.compile(
    r"\b(?:i'?ll be there|ill be there|i will be there|count me in|i'?m coming|im coming"
    r"|i'?ll come|see you there|wouldn'?t miss it|on my way|i'?m down|im down)\b"
    r"|\bi'?m in\b(?!\s+\w)",
    _I,
)
_AFFIRMATIVE_LEAD = re.compile(
    r"^\s*(?:yes|yeah|yep|yup|yea|ya|sure|ok|okay|absolutely|definitely|of course|y)\b", _I
)

_UNCERTAIN = re.compile(
    r"\b(?:maybe|not sure|unsure|depends|it depends|idk|i don'?t know|might|possibly|perhaps|tbd)\b",
    _I,
)

_NEGATION = re.compile(r"\b(?:not|no|never|won'?t|can'?t|cannot)\b", _I)
_LATE = re.compile(r"\blate\b", _I)
_BUSY = re.compile(r"\b(?:busy|can'?t|cannot)\b", _I)
_CONTRAST = re.compile(r"\b(?:but|though|however|still)\b", _I)

_NOTE_LEAD = re.compile(
    r"^(?:[\s,.;:!\-]+|(?:but|because|bc|cuz|cause|since|so|though)\b)+", _I
)


def clean_notes(text: str) -> str | None:
    """Strip leading punctuation and connective words; empty becomes None."""
    notes = _NOTE_LEAD.sub("", text).strip()
    return notes or None


def _trailing(message: str, match: re.Match[str]) -> str | None:
    return clean_notes(message[match.end():])


def parse_poll_response(message: str) -> ParsedPollResponse:
    """Interpret a poll reply. Never raises."""
    text = (message or "").strip()
    if not text:
        return ParsedPollResponse(C.MAYBE, None, "default")

    m = _NEGATIVE_PHRASES.search(text)
    if m:
        return ParsedPollResponse(C.NO, _trailing(text, m), "negative_phrase")
    m = _NEGATIVE_LEAD.match(text)
    if m:
        return ParsedPollResponse(C.NO, _trailing(text, m), "negative_lead")

    m = _AFFIRMATIVE_PHRASES.search(text)
    if m:
        return ParsedPollResponse(C.YES, _trailing(text, m), "affirmative_phrase")
    m = _AFFIRMATIVE_LEAD.match(text)
    if m:
        return ParsedPollResponse(C.YES, _trailing(text, m), "affirmative_lead")

    m = _UNCERTAIN.search(text)
    if m:
        return ParsedPollResponse(C.MAYBE, _trailing(text, m), "uncertain")

    if _LATE.search(text) and not _NEGATION.search(text):
        return ParsedPollResponse(C.YES, text, "late")
    if _BUSY.search(text) and not _CONTRAST.search(text):
        return ParsedPollResponse(C.NO, text, "busy")

    bare = text.strip(" .!?").lower()
    if bare == "y":
        return ParsedPollResponse(C.YES, None, "single_char")
    if bare == "n":
        return ParsedPollResponse(C.NO, None, "single_char")

    return ParsedPollResponse(C.MAYBE, text, "default")
