"""capability_query — questions about Jarvis itself."""
from __future__ import annotations

import re

from jarvis.core import constants as C
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.state import ActionResult

_I = re.IGNORECASE

IDENTITY = "identity"
CAPABILITIES = "capabilities"
HOW_IT_WORKS = "how_it_works"
HELP = "help"
IMPOSSIBLE = "impossible_request"
GENERAL = "general"

_IMPOSSIBLE = re.compile(
    r"\bcan you\s+(?P<task>(?:(?:do|write|make|finish|clean|cook)\s+(?:my|me)\b"
    r"|order|buy|book|pay|call|drive|hack)\b.*?)[?.!]*$",
    _I,
)
_SUBTYPES: tuple[tuple[str, re.Pattern[str]], ...] = (
    (IDENTITY, re.compile(
        r"\b(?:who|what) are you\b|\bare you (?:a |an )?(?:bot|ai|robot|machine|computer)\b"
        r"|\bwhat(?:'?s| is) jarvis\b", _I)),
    (HOW_IT_WORKS, re.compile(r"\b(?:how do you work|how does this work|explain yourself)\b", _I)),
    (CAPABILITIES, re.compile(
        r"\b(?:what can you do|what do you do|your capabilities|your features|what can i (?:say|do|ask))\b"
        r"|\bcan you\s+(?:make|do|send|create|run|take|handle|answer)\b.*\b(?:polls?|announcements?|broadcasts?|questions)\b", _I)),
    (HELP, re.compile(r"^(?:help|commands|options|menu)[?!.]*$|\b(?:need help|help me|how to use)\b", _I)),
)

_IDENTITY_REPLIES = [
    "i'm jarvis, your org's sassy assistant. i help with announcements, polls, and answering "
    "questions about what's going on",
    "yeah i'm a bot. jarvis. got a problem with that? 🤖",
    "jarvis. the org's assistant. kinda a big deal tbh",
]
_HOW_REPLIES = [
    "i read your messages, figure out what you want, and do it. or roast you. depends on my mood 🤷",
    "you text, i figure out what you mean, stuff happens. magic basically",
]
_DECLINE_REPLIES = [
    "lol no. i'm not gonna {task}. i do announcements and polls, not miracles",
    "{task}? in this economy? i'm an sms bot bestie",
    "i would love to {task} but i literally have no hands 💀",
]


def capability_subtype(message: str) -> str:
    text = message.strip()
    for name, pattern in _SUBTYPES:
        if pattern.search(text):
            return name
    if _IMPOSSIBLE.search(text):
        return IMPOSSIBLE
    return GENERAL


async def handle_capability_query(ctx: HandlerContext) -> ActionResult:
    p = ctx.personality
    subtype = capability_subtype(ctx.message)

    if subtype == IMPOSSIBLE:
        task = _IMPOSSIBLE.search(ctx.message.strip()).group("task").strip().lower()
        task = re.sub(r"\b(?:my|me)\b", lambda m: "your" if m.group(0) == "my" else "you", task)
        return ActionResult(C.CAPABILITY_QUERY, p.pick(_DECLINE_REPLIES).format(task=task), ctx.draft)
    if subtype == IDENTITY:
        base = p.pick(_IDENTITY_REPLIES)
    elif subtype == HOW_IT_WORKS:
        base = p.pick(_HOW_REPLIES)
    else:
        base = ctx.templates.capabilities(ctx.user.is_admin)
    return ActionResult(C.CAPABILITY_QUERY, ctx.style(base), ctx.draft)
