"""poll_response — record a member's answer to the active poll.

Mandatory polls need a reason for "No". A bare "No" is saved as a
placeholder (No, no notes) and the session remembers the poll id; the next
message is taken as the reason for that same answer, unless it clearly
switches to Yes or Maybe.
"""
from __future__ import annotations

import logging

from jarvis.core import constants as C
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.poll_parser import parse_poll_response
from jarvis.planner.state import ActionResult

logger = logging.getLogger(__name__)


async def handle_poll_response(ctx: HandlerContext) -> ActionResult:
    t = ctx.templates
    polls = ctx.collaborators.polls
    poll = ctx.poll
    if poll is None and polls is not None:
        poll = await polls.get_active_poll()
    if poll is None or polls is None:
        return ActionResult(C.CHAT, ctx.style(t.no_active_poll()))

    parsed = parse_poll_response(ctx.message)
    awaiting_reason = ctx.session.pending_excuse == poll.id

    if awaiting_reason:
        if parsed.is_explicit and parsed.response in (C.YES, C.MAYBE):
            response, notes = parsed.response, parsed.notes
        elif parsed.response == C.NO and parsed.notes:
            response, notes = C.NO, parsed.notes
        elif parsed.response == C.NO:
            return ActionResult(C.POLL_RESPONSE, ctx.style(t.ask_reason()), pending_excuse=poll.id)
        else:
            # Anything else is the reason itself
            response, notes = C.NO, ctx.message.strip()
    elif parsed.response == C.NO and not parsed.notes and poll.requires_reason_for_no:
        await polls.save_poll_response(poll.id, ctx.user_id, C.NO, None)
        logger.info("Poll %s: %s said No, waiting for a reason", poll.id, ctx.user_id)
        return ActionResult(C.POLL_RESPONSE, ctx.style(t.ask_reason()), pending_excuse=poll.id)
    else:
        response, notes = parsed.response, parsed.notes

    await polls.save_poll_response(poll.id, ctx.user_id, response, notes)
    logger.info("Poll %s: recorded %s for %s", poll.id, response, ctx.user_id)
    return ActionResult(C.POLL_RESPONSE, ctx.style(t.poll_recorded(response, notes)))
