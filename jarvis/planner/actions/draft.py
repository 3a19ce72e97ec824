"""draft_write — create and edit announcement/poll drafts.

State machine (per user, at most one active draft):

    idle --(command, no content)--> drafting(empty) --(content)--> ready
    idle --(command with content)--------------------------------> ready
    ready --(edit)--> ready

Side states on top of that: ``pending_link`` keeps a draft in drafting until
a URL (or "skip") arrives, ``pending_mandatory`` holds a ready poll until the
author says whether "No" answers need a reason.
"""
from __future__ import annotations

import logging
import re

from jarvis.core import constants as C
from jarvis.core.errors import LanguageServiceError
from jarvis.planner import drafts
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.content_filter import clean
from jarvis.planner.state import ActionResult, Draft

logger = logging.getLogger(__name__)

_YES = re.compile(r"^(?:yes|yeah|yep|yup|y|sure|mandatory)[.!]*$", re.I)
_NO = re.compile(r"^(?:no|nah|nope|n|not mandatory|optional)[.!]*$", re.I)

MANDATORY_NOTE = '(mandatory - excuses required for "no")'

_MANDATORY_SYSTEM = """\
You decide whether a poll is about a mandatory event (attendance required).
Mandatory cues: "mandatory", "required", "must attend", official/chapter meetings, penalties.
Not mandatory: optional or social events, open invites, "if you're interested".
Return JSON: {"is_mandatory": true/false, "reasoning": "<short>"}"""


async def _is_mandatory(ctx: HandlerContext, text: str) -> bool:
    if drafts.looks_mandatory(text):
        return True
    if ctx.service is None:
        return False
    try:
        data = await ctx.service.complete_json(
            "mandatory_check",
            _MANDATORY_SYSTEM,
            {"poll": clean(text)},
            temperature=ctx.config.classification_temperature,
        )
    except LanguageServiceError as exc:
        logger.warning("Mandatory check failed, assuming optional: %s", exc)
        return False
    return data.get("is_mandatory") is True


def _starts_new_draft(message: str, draft_type: str) -> bool:
    """Message is itself a draft command ("announce ...", "make a poll ...")."""
    if drafts.is_just_command(message):
        return True
    return drafts.extract_content(message, draft_type) != message.strip()


def _preview(ctx: HandlerContext, draft: Draft) -> str:
    note = MANDATORY_NOTE if draft.requires_excuse else ""
    return ctx.templates.draft_created(draft.type, draft.content, note)


async def _ask_content(ctx: HandlerContext, draft_type: str) -> ActionResult:
    draft = await ctx.collaborators.drafts.create_draft(ctx.user_id, draft_type, "")
    return ActionResult(C.DRAFT_WRITE, ctx.style(ctx.templates.ask_for_content(draft_type)), draft)


async def _store_content(ctx: HandlerContext, draft_type: str, content: str, *, create: bool) -> ActionResult:
    """Create (or fill) a draft with content, raising link/mandatory follow-ups."""
    formatted = drafts.format_content(content, draft_type)
    pending_link = drafts.needs_link(formatted)
    pending_mandatory = draft_type == C.POLL and await _is_mandatory(ctx, f"{ctx.message} {formatted}")
    fields = {
        "content": formatted,
        "status": C.STATUS_DRAFTING if pending_link else C.STATUS_READY,
        "links": drafts.extract_links(formatted),
        "pending_link": pending_link,
        "pending_mandatory": pending_mandatory,
    }

    repo = ctx.collaborators.drafts
    if create:
        draft = await repo.create_draft(ctx.user_id, draft_type, **fields)
    else:
        draft = await repo.update_draft(ctx.user_id, fields)

    if pending_mandatory:
        response = ctx.templates.mandatory_check(draft.type, draft.content)
    elif pending_link:
        response = ctx.templates.ask_for_link(draft.type)
    else:
        response = _preview(ctx, draft)
    return ActionResult(C.DRAFT_WRITE, ctx.style(response), draft)


async def _confirm_mandatory(ctx: HandlerContext, draft: Draft) -> ActionResult:
    text = ctx.message.strip()
    if _YES.match(text):
        requires_excuse = True
    elif _NO.match(text):
        requires_excuse = False
    else:
        return ActionResult(C.DRAFT_WRITE, ctx.style(ctx.templates.ask_mandatory()), draft)

    draft = await ctx.collaborators.drafts.update_draft(
        ctx.user_id, {"pending_mandatory": False, "requires_excuse": requires_excuse}
    )
    logger.info("Poll for %s marked %s", ctx.user_id, "mandatory" if requires_excuse else "optional")
    if draft.pending_link:
        return ActionResult(C.DRAFT_WRITE, ctx.style(ctx.templates.ask_for_link(draft.type)), draft)
    return ActionResult(C.DRAFT_WRITE, ctx.style(_preview(ctx, draft)), draft)


async def _attach_link(ctx: HandlerContext, draft: Draft) -> ActionResult:
    links = drafts.extract_links(ctx.message)
    if links:
        content = draft.content
        new_links = [link for link in links if link not in content]
        if new_links:
            content = f"{content}\n\n" + "\n".join(new_links)
        patch = {
            "content": content,
            "links": list(dict.fromkeys(draft.links + links)),
            "pending_link": False,
            "status": C.STATUS_READY,
        }
    elif drafts.is_skip_link(ctx.message):
        patch = {"pending_link": False, "status": C.STATUS_READY}
    else:
        return ActionResult(C.DRAFT_WRITE, ctx.style(ctx.templates.link_missing(draft.type)), draft)

    draft = await ctx.collaborators.drafts.update_draft(ctx.user_id, patch)
    return ActionResult(C.DRAFT_WRITE, ctx.style(ctx.templates.draft_updated(draft.content)), draft)


async def _edit(ctx: HandlerContext, draft: Draft) -> ActionResult:
    content = drafts.apply_edit(draft.content, ctx.message, draft.type)
    if content == draft.content:
        return ActionResult(C.DRAFT_WRITE, ctx.style(ctx.templates.draft_updated(content)), draft)
    draft = await ctx.collaborators.drafts.update_draft(
        ctx.user_id, {"content": content, "links": drafts.extract_links(content)}
    )
    return ActionResult(C.DRAFT_WRITE, ctx.style(ctx.templates.draft_updated(draft.content)), draft)


async def handle_draft_write(ctx: HandlerContext) -> ActionResult:
    if not ctx.permits(C.DRAFT_WRITE):
        return ActionResult(C.DRAFT_WRITE, ctx.style(ctx.templates.not_admin()), ctx.draft)

    existing = ctx.draft if ctx.draft is not None and ctx.draft.is_active else None
    draft_type = ctx.classification.subtype or (existing.type if existing else C.ANNOUNCEMENT)

    if existing is not None and not _starts_new_draft(ctx.message, draft_type):
        if existing.pending_mandatory:
            return await _confirm_mandatory(ctx, existing)
        if existing.pending_link:
            return await _attach_link(ctx, existing)
        if existing.status == C.STATUS_DRAFTING and not existing.content:
            content = drafts.extract_content(ctx.message, existing.type) or ctx.message.strip()
            return await _store_content(ctx, existing.type, content, create=False)
        if existing.is_ready:
            return await _edit(ctx, existing)

    # New draft (replaces any existing one)
    content = drafts.extract_content(ctx.message, draft_type)
    if drafts.is_just_command(ctx.message, draft_type) or len(content) < C.MIN_CONTENT_LENGTH:
        return await _ask_content(ctx, draft_type)
    return await _store_content(ctx, draft_type, content, create=True)
