"""Tests for the draft_write and draft_send handlers."""
from __future__ import annotations

import asyncio

import pytest

from jarvis.core import constants as C
from jarvis.core.config import PlannerConfig
from jarvis.core.errors import DispatchFailure, ValidationFailure
from jarvis.planner.actions.draft import MANDATORY_NOTE, handle_draft_write
from jarvis.planner.actions.send import check_sendable, handle_draft_send
from jarvis.planner.state import Draft

from conftest import ADMIN_ID, MEMBER_ID, FakeLanguageService


def _write(make_ctx, message, subtype=None, **kwargs):
    return asyncio.run(handle_draft_write(make_ctx(message, C.DRAFT_WRITE, subtype=subtype, **kwargs)))


def _send(make_ctx, message="send", **kwargs):
    return asyncio.run(handle_draft_send(make_ctx(message, C.DRAFT_SEND, **kwargs)))


def _draft(sandbox, user_id=ADMIN_ID):
    return asyncio.run(sandbox.drafts.get_active_draft(user_id))


class TestDraftWrite:

    def test_command_with_content_is_ready(self, make_ctx, sandbox):
        result = _write(make_ctx, "announce meeting tonight at 7pm", C.ANNOUNCEMENT)
        draft = _draft(sandbox)
        assert (draft.type, draft.status, draft.content) == (C.ANNOUNCEMENT, C.STATUS_READY, "meeting tonight at 7pm")
        assert '"meeting tonight at 7pm"' in result.response
        assert '"send"' in result.response

    def test_bare_command_asks_for_content(self, make_ctx, sandbox):
        result = _write(make_ctx, "make a poll", C.POLL)
        draft = _draft(sandbox)
        assert (draft.type, draft.status, draft.content) == (C.POLL, C.STATUS_DRAFTING, "")
        assert "wanna ask everyone" in result.response

    def test_content_fills_empty_draft(self, make_ctx, sandbox):
        _write(make_ctx, "make a poll", C.POLL)
        result = _write(make_ctx, "who's coming to formal", C.POLL)
        draft = _draft(sandbox)
        assert draft.content == "who's coming to formal?"
        assert draft.is_ready
        assert "who's coming to formal?" in result.response

    def test_short_content_asks_again(self, make_ctx, sandbox):
        result = _write(make_ctx, "announce hi", C.ANNOUNCEMENT)
        assert _draft(sandbox).content == ""
        assert "wanna announce" in result.response

    def test_new_command_replaces_draft(self, make_ctx, sandbox):
        _write(make_ctx, "announce meeting tonight at 7pm", C.ANNOUNCEMENT)
        _write(make_ctx, "poll who's bringing snacks", C.POLL)
        draft = _draft(sandbox)
        assert (draft.type, draft.content) == (C.POLL, "who's bringing snacks?")

    def test_edit_ready_draft(self, make_ctx, sandbox):
        _write(make_ctx, "announce meeting at 7", C.ANNOUNCEMENT)
        result = _write(make_ctx, "no it should say meeting at 8")
        assert _draft(sandbox).content == "meeting at 8"
        assert '"meeting at 8"' in result.response

    def test_same_edit_twice_is_noop(self, make_ctx, sandbox):
        _write(make_ctx, "announce Meeting at 7", C.ANNOUNCEMENT)
        _write(make_ctx, "add bring snacks")
        _write(make_ctx, "add bring snacks")
        assert _draft(sandbox).content == "Meeting at 7. bring snacks"

    def test_admin_only_broadcasts(self, make_ctx, sandbox, member):
        config = PlannerConfig(admin_only_broadcasts=True)
        result = _write(make_ctx, "announce meeting tonight at 7pm", C.ANNOUNCEMENT, user=member, config=config)
        assert _draft(sandbox, MEMBER_ID) is None
        assert "admin" in result.response


class TestLinkFollowUp:

    def test_rsvp_without_link_waits(self, make_ctx, sandbox):
        result = _write(make_ctx, "announce rsvp for formal by friday", C.ANNOUNCEMENT)
        draft = _draft(sandbox)
        assert draft.pending_link
        assert draft.status == C.STATUS_DRAFTING
        assert "link" in result.response

    def test_link_attached(self, make_ctx, sandbox):
        _write(make_ctx, "announce rsvp for formal by friday", C.ANNOUNCEMENT)
        _write(make_ctx, "https://forms.example.com/formal")
        draft = _draft(sandbox)
        assert not draft.pending_link
        assert draft.is_ready
        assert draft.content.endswith("\n\nhttps://forms.example.com/formal")
        assert draft.links == ["https://forms.example.com/formal"]

    def test_skip_link(self, make_ctx, sandbox):
        _write(make_ctx, "announce rsvp for formal by friday", C.ANNOUNCEMENT)
        _write(make_ctx, "skip")
        draft = _draft(sandbox)
        assert draft.is_ready
        assert draft.content == "rsvp for formal by friday"

    def test_not_a_link_reprompts(self, make_ctx, sandbox):
        _write(make_ctx, "announce rsvp for formal by friday", C.ANNOUNCEMENT)
        result = _write(make_ctx, "hmm idk")
        assert _draft(sandbox).pending_link
        assert "link" in result.response


class TestMandatory:

    def test_keyword_makes_poll_pending(self, make_ctx, sandbox):
        result = _write(make_ctx, "poll mandatory chapter meeting sunday, who's coming", C.POLL)
        draft = _draft(sandbox)
        assert draft.pending_mandatory
        assert "mandatory" in result.response

    @pytest.mark.parametrize("answer,requires_excuse", [("yes", True), ("no", False)])
    def test_confirmation(self, make_ctx, sandbox, answer, requires_excuse):
        _write(make_ctx, "poll mandatory chapter meeting sunday, who's coming", C.POLL)
        result = _write(make_ctx, answer)
        draft = _draft(sandbox)
        assert not draft.pending_mandatory
        assert draft.requires_excuse is requires_excuse
        assert (MANDATORY_NOTE in result.response) is requires_excuse

    def test_unclear_answer_reprompts(self, make_ctx, sandbox):
        _write(make_ctx, "poll mandatory chapter meeting sunday, who's coming", C.POLL)
        _write(make_ctx, "hmm")
        assert _draft(sandbox).pending_mandatory

    def test_service_decides_when_no_keyword(self, make_ctx, sandbox):
        service = FakeLanguageService({"mandatory_check": {"is_mandatory": True}})
        _write(make_ctx, "poll who's coming to chapter sunday", C.POLL, service=service)
        assert _draft(sandbox).pending_mandatory
        assert service.tasks() == ["mandatory_check"]

    def test_service_down_means_optional(self, make_ctx, sandbox):
        _write(make_ctx, "poll who's coming to chapter sunday", C.POLL, service=FakeLanguageService())
        assert not _draft(sandbox).pending_mandatory

    def test_announcements_never_ask(self, make_ctx, sandbox):
        _write(make_ctx, "announce mandatory meeting tonight", C.ANNOUNCEMENT)
        assert not _draft(sandbox).pending_mandatory


class TestDraftSend:

    def test_sends_announcement(self, make_ctx, sandbox):
        _write(make_ctx, "announce meeting tonight at 7pm", C.ANNOUNCEMENT)
        result = _send(make_ctx)
        assert result.action == C.DRAFT_SEND
        assert "12 people" in result.response
        assert [(s.kind, s.content) for s in sandbox.broadcaster.sent] == [(C.ANNOUNCEMENT, "meeting tonight at 7pm")]
        assert _draft(sandbox) is None

    def test_opted_out_members_not_counted(self, make_ctx, sandbox):
        sandbox.broadcaster.opted_out.add(sandbox.members[0])
        _write(make_ctx, "announce meeting tonight at 7pm", C.ANNOUNCEMENT)
        assert "11 people" in _send(make_ctx).response

    def test_sends_mandatory_poll(self, make_ctx, sandbox):
        _write(make_ctx, "poll mandatory chapter meeting sunday, who's coming", C.POLL)
        _write(make_ctx, "yes")
        _send(make_ctx)
        assert sandbox.broadcaster.sent[0].requires_excuse
        assert sandbox.polls.active.requires_reason_for_no

    def test_no_draft(self, make_ctx):
        result = _send(make_ctx)
        assert "draft" in result.response
        assert result.draft is None

    def test_pending_mandatory_blocks_send(self, make_ctx, sandbox):
        _write(make_ctx, "poll mandatory chapter meeting sunday, who's coming", C.POLL)
        result = _send(make_ctx)
        assert sandbox.broadcaster.sent == []
        assert "mandatory" in result.response

    def test_dispatch_failure_keeps_draft(self, make_ctx, sandbox):
        _write(make_ctx, "announce meeting tonight at 7pm", C.ANNOUNCEMENT)
        sandbox.broadcaster.fail_with = DispatchFailure("carrier down")
        result = _send(make_ctx)
        assert result.response == "failed to send. try again? error: carrier down"
        assert _draft(sandbox).is_ready

    def test_dispatch_failure_hides_error_from_members(self, make_ctx, sandbox, member):
        _write(make_ctx, "announce meeting tonight at 7pm", C.ANNOUNCEMENT, user=member)
        sandbox.broadcaster.fail_with = DispatchFailure("carrier down")
        result = _send(make_ctx, user=member)
        assert "carrier down" not in result.response
        assert _draft(sandbox, MEMBER_ID).is_ready

    def test_no_dispatcher(self, make_ctx, sandbox):
        _write(make_ctx, "announce meeting tonight at 7pm", C.ANNOUNCEMENT)
        collaborators = sandbox.collaborators()
        collaborators.broadcasts = None
        _send(make_ctx, collaborators=collaborators)
        assert _draft(sandbox).is_ready


class TestCheckSendable:

    @pytest.mark.parametrize("draft,reason", [
        (None, "no_draft"),
        (Draft(type=C.POLL, content="coming?", status=C.STATUS_SENT), "no_draft"),
        (Draft(type=C.POLL, content="coming?", status=C.STATUS_READY, pending_mandatory=True), "pending_mandatory"),
        (Draft(type=C.ANNOUNCEMENT, content="rsvp pls", status=C.STATUS_DRAFTING, pending_link=True), "pending_link"),
        (Draft(type=C.ANNOUNCEMENT, content="", status=C.STATUS_DRAFTING), "no_content"),
    ])
    def test_blocked(self, draft, reason):
        with pytest.raises(ValidationFailure, match=reason):
            check_sendable(draft)

    def test_ready(self):
        draft = Draft(type=C.ANNOUNCEMENT, content="meeting at 7", status=C.STATUS_READY)
        assert check_sendable(draft) is draft


class TestDraftRecord:
    """Terminal statuses stay on record until the stale sweep."""

    def _status(self, sandbox, user_id=ADMIN_ID):
        return asyncio.run(sandbox.drafts.draft_status(user_id))

    def test_idle_without_record(self, sandbox):
        assert self._status(sandbox) == C.STATUS_IDLE

    def test_sent(self, make_ctx, sandbox):
        _write(make_ctx, "announce meeting tonight at 7pm", C.ANNOUNCEMENT)
        _send(make_ctx)
        assert _draft(sandbox) is None
        assert self._status(sandbox) == C.STATUS_SENT

    def test_cancelled(self, sandbox):
        asyncio.run(sandbox.drafts.create_draft(ADMIN_ID, C.POLL, "coming?"))
        asyncio.run(sandbox.drafts.delete_draft(ADMIN_ID))
        assert _draft(sandbox) is None
        assert self._status(sandbox) == C.STATUS_CANCELLED

    def test_closing_twice_keeps_first_status(self, sandbox):
        asyncio.run(sandbox.drafts.create_draft(ADMIN_ID, C.POLL, "coming?"))
        asyncio.run(sandbox.drafts.finalize_draft(ADMIN_ID))
        asyncio.run(sandbox.drafts.delete_draft(ADMIN_ID))
        assert self._status(sandbox) == C.STATUS_SENT

    def test_new_draft_replaces_closed_one(self, sandbox):
        asyncio.run(sandbox.drafts.create_draft(ADMIN_ID, C.POLL, "coming?"))
        asyncio.run(sandbox.drafts.finalize_draft(ADMIN_ID))
        asyncio.run(sandbox.drafts.create_draft(ADMIN_ID, C.ANNOUNCEMENT, ""))
        assert _draft(sandbox).status == C.STATUS_DRAFTING


class TestAdminPolicy:

    @pytest.mark.parametrize("action,admin_only_broadcasts,allowed", [
        (C.DRAFT_WRITE, False, True),
        (C.DRAFT_SEND, False, True),
        (C.DRAFT_WRITE, True, False),
        (C.DRAFT_SEND, True, False),
        (C.KNOWLEDGE_UPLOAD, False, False),
        (C.EVENT_UPDATE, False, False),
        (C.POLL_RESPONSE, True, True),
        (C.CONTENT_QUERY, True, True),
    ])
    def test_member(self, make_ctx, member, action, admin_only_broadcasts, allowed):
        ctx = make_ctx("hi", action, user=member, config=PlannerConfig(admin_only_broadcasts=admin_only_broadcasts))
        assert ctx.permits(action) is allowed

    @pytest.mark.parametrize("action", sorted(C.ADMIN_ONLY_ACTIONS | C.BROADCAST_ACTIONS))
    def test_admin_may_do_everything(self, make_ctx, action):
        ctx = make_ctx("hi", action, config=PlannerConfig(admin_only_broadcasts=True))
        assert ctx.permits(action)
