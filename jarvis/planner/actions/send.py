"""draft_send — dispatch the ready draft as a broadcast."""
from __future__ import annotations

import logging

from jarvis.core import constants as C
from jarvis.core.errors import ValidationFailure
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.state import ActionResult, Draft

logger = logging.getLogger(__name__)

NO_DRAFT = "no_draft"
PENDING_MANDATORY = "pending_mandatory"
PENDING_LINK = "pending_link"
NO_CONTENT = "no_content"


def check_sendable(draft: Draft | None) -> Draft:
    """Return ``draft`` if it can go out now, else raise ValidationFailure(reason)."""
    if draft is None or not draft.is_active:
        raise ValidationFailure(NO_DRAFT)
    if draft.pending_mandatory:
        raise ValidationFailure(PENDING_MANDATORY)
    if draft.pending_link:
        raise ValidationFailure(PENDING_LINK)
    if not draft.is_ready or len(draft.content.strip()) < C.MIN_SEND_LENGTH:
        raise ValidationFailure(NO_CONTENT)
    return draft


def _blocked_reply(t, reason: str, draft: Draft | None) -> str:
    if reason == PENDING_MANDATORY:
        return t.ask_mandatory()
    if reason == PENDING_LINK:
        return t.ask_for_link(draft.type)
    if reason == NO_CONTENT:
        return t.ask_for_content(draft.type)
    return t.no_draft()


async def handle_draft_send(ctx: HandlerContext) -> ActionResult:
    """Send the ready draft. On dispatch failure the draft is left as-is for a retry."""
    t = ctx.templates
    if not ctx.permits(C.DRAFT_SEND):
        return ActionResult(C.DRAFT_SEND, ctx.style(t.not_admin()), ctx.draft)

    try:
        draft = check_sendable(ctx.draft)
    except ValidationFailure as exc:
        reason = str(exc)
        logger.info("Draft for %s not sendable: %s", ctx.user_id, reason)
        kept = None if reason == NO_DRAFT else ctx.draft
        return ActionResult(C.DRAFT_SEND, ctx.style(_blocked_reply(t, reason, ctx.draft)), kept)

    dispatcher = ctx.collaborators.broadcasts
    if dispatcher is None:
        logger.error("No broadcast dispatcher configured; cannot send draft for %s", ctx.user_id)
        return ActionResult(C.DRAFT_SEND, ctx.style(t.send_failed()), draft)

    try:
        if draft.type == C.POLL:
            count = await dispatcher.send_poll(draft.content, ctx.user_id, draft.requires_excuse)
        else:
            count = await dispatcher.send_announcement(draft.content, ctx.user_id)
    except Exception as exc:
        logger.warning("Broadcast dispatch failed for %s: %s", ctx.user_id, exc)
        error = str(exc) or type(exc).__name__
        response = t.send_failed(error) if ctx.user.is_admin else ctx.style(t.send_failed())
        return ActionResult(C.DRAFT_SEND, response, draft)

    await ctx.collaborators.drafts.finalize_draft(ctx.user_id)
    logger.info("Sent %s from %s to %d member(s)", draft.type, ctx.user_id, count)
    return ActionResult(C.DRAFT_SEND, ctx.style(t.draft_sent(count)))
