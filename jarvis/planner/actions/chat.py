"""chat — banter, cancellation and the fallback reply."""
from __future__ import annotations

import re

from jarvis.core import constants as C
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.personality import analyze_tone
from jarvis.planner.state import ActionResult

_I = re.IGNORECASE

CANCEL = re.compile(
    r"^(?:cancel|nvm|nevermind|never mind|delete|discard|forget it|scratch that|delete it|cancel it)[.!]*$", _I
)
_GREETING = re.compile(r"^(?:hi|hey|hello|yo|sup|what'?s up|wassup|hola|heyo)[.!]*$", _I)
_GOODBYE = re.compile(r"^(?:bye|goodbye|later|peace|cya|see ya|ttyl|gtg)[.!]*$", _I)
_THANKS = re.compile(r"\b(?:thanks|thank you|thx|ty|tysm|appreciate it)\b", _I)
_APOLOGY = re.compile(r"^(?:sorry|my bad|mb|oops|apologies)[.!]*$|\b(?:i'?m sorry|my apologies)\b", _I)

_QUOTE_LIMIT = 40


async def handle_chat(ctx: HandlerContext) -> ActionResult:
    p = ctx.personality
    text = ctx.message.strip()

    if CANCEL.match(text):
        if ctx.draft is not None and ctx.draft.is_active:
            await ctx.collaborators.drafts.delete_draft(ctx.user_id)
            return ActionResult(C.CHAT, ctx.style(p.templates.draft_cancelled()))
        return ActionResult(C.CHAT, ctx.style(p.templates.nothing_to_cancel()))

    if analyze_tone(text).is_insult:
        return ActionResult(C.CHAT, p.comeback(), ctx.draft)

    for reply in (p.quick_response(text), p.easter_egg(text)):
        if reply:
            return ActionResult(C.CHAT, reply, ctx.draft)

    if _GREETING.match(text):
        return ActionResult(C.CHAT, p.greeting(ctx.user.name), ctx.draft)
    if _GOODBYE.match(text):
        return ActionResult(C.CHAT, p.goodbye(), ctx.draft)
    if _THANKS.search(text):
        return ActionResult(C.CHAT, p.acknowledgment(), ctx.draft)
    if _APOLOGY.search(text):
        return ActionResult(C.CHAT, p.apology_reply(), ctx.draft)

    if ctx.draft is not None and ctx.draft.is_ready:
        reminder = (
            f'btw you still have a {ctx.draft.type} draft:\n\n"{ctx.draft.content}"\n\n'
            'wanna "send" it or nah?'
        )
        return ActionResult(C.CHAT, reminder, ctx.draft)

    # Only short messages are worth quoting back
    if len(text) > _QUOTE_LIMIT:
        return ActionResult(C.CHAT, ctx.style(p.templates.confused()), ctx.draft)
    return ActionResult(C.CHAT, ctx.style(p.confused_reply(text)), ctx.draft)
