"""Prompt-input filter — cleans member text before it reaches the language service.

Regex-based, no external deps. Masks credentials and card/SSN-shaped numbers,
drops script fragments and control characters, caps length. Filters clean
but never reject; an SMS is always classified.
"""
from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

# Max length of one message embedded in a prompt (10 SMS segments)
MAX_PROMPT_TEXT = 1600

_RE_CARD = re.compile(r"\b(?:\d[ -]?){13,19}\b")

# (action name, pattern, replacement), applied in order
_RULES: list[tuple[str, re.Pattern[str], str]] = [
    ("script_removed", re.compile(r"<script[\s\S]*?</script>", re.I), "[script removed]"),
    ("js_uri_removed", re.compile(r"javascript\s*:", re.I), "[js-uri removed]"),
    ("data_uri_removed", re.compile(r"data:[a-z]+/[a-z0-9.+-]+;base64,[A-Za-z0-9+/=]+", re.I), "[data-uri removed]"),
    ("ssn_masked", re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "[SSN]"),
    ("bearer_stripped", re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*", re.I), "[bearer-token]"),
    ("sk_token_stripped", re.compile(r"\bsk-[A-Za-z0-9]{20,}\b"), "[api-key]"),
    ("credential_stripped", re.compile(r"(?:api[_-]?key|secret|password|token)\s*[:=]\s*\S+", re.I), "[credential]"),
    ("control_chars_removed", re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]"), ""),
]


def _mask_card(m: re.Match[str]) -> str:
    digits = re.sub(r"[ -]", "", m.group())
    if len(digits) >= 13 and digits.isdigit():
        return f"[card ending {digits[-4:]}]"
    return m.group()


def sanitize(text: str) -> tuple[str, list[str]]:
    """Return (cleaned_text, applied_actions)."""
    if not text:
        return text, []

    actions: list[str] = []
    result = text
    for name, pattern, replacement in _RULES:
        new = pattern.sub(replacement, result)
        if new != result:
            result = new
            actions.append(name)

    masked = _RE_CARD.sub(_mask_card, result)
    if masked != result:
        result = masked
        actions.append("card_masked")

    if len(result) > MAX_PROMPT_TEXT:
        result = result[:MAX_PROMPT_TEXT] + "... [truncated]"
        actions.append("truncated")

    if actions:
        logger.info("Content filter applied: %s", ", ".join(actions))
    return result, actions


def clean(text: str) -> str:
    """``sanitize`` without the action list."""
    return sanitize(text)[0]
