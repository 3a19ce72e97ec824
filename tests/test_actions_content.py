"""Tests for the content_query, capability_query and knowledge_upload handlers."""
from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from jarvis.core import constants as C
from jarvis.planner.actions.capability import IMPOSSIBLE, capability_subtype, handle_capability_query
from jarvis.planner.actions.content import (
    handle_content_query,
    next_occurrence,
    rank_evidence,
    recall_recent_send,
)
from jarvis.planner.actions.knowledge import handle_knowledge_upload, looks_upload_worthy, strip_note_prefix
from jarvis.planner.history import ConversationSession, HistoryStore
from jarvis.planner.state import ContentItem

from conftest import ADMIN_ID, NOW, FakeLanguageService


def _ask(make_ctx, message, **kwargs):
    return asyncio.run(handle_content_query(make_ctx(message, C.CONTENT_QUERY, **kwargs)))


class TestNextOccurrence:

    @pytest.mark.parametrize("weekday,day", [
        ("wednesday", 15),
        ("recurring:friday", 17),
        ("Tuesday", 21),  # strictly after today
        ("monday", 20),
    ])
    def test_from_tuesday(self, weekday: str, day: int):
        assert next_occurrence(weekday, NOW).day == day

    def test_unknown_weekday(self):
        assert next_occurrence("funday", NOW) is None


class TestRankEvidence:

    def test_priority_buckets(self):
        items = [
            ContentItem("b", "old broadcast", 0.99, "broadcast"),
            ContentItem("g", "general fact", 0.1),
            ContentItem("r", "weekly thing", 0.2, recurring="recurring:monday"),
            ContentItem("u", "upcoming event", 0.3, event_date=NOW + timedelta(days=2)),
        ]
        assert [i.title for i in rank_evidence(items, NOW)] == ["u", "r", "g", "b"]

    def test_past_event_is_general(self):
        items = [
            ContentItem("past", "last week", 0.9, event_date=NOW - timedelta(days=7)),
            ContentItem("r", "weekly", 0.1, recurring="recurring:monday"),
        ]
        assert [i.title for i in rank_evidence(items, NOW)] == ["r", "past"]

    def test_score_breaks_ties(self):
        items = [ContentItem("low", "a", 0.2), ContentItem("high", "b", 0.8)]
        assert [i.title for i in rank_evidence(items, NOW)] == ["high", "low"]


class TestRecall:

    def test_quotes_last_preview(self):
        history = HistoryStore()
        history.append("user", "announce meeting at 7", 1.0)
        history.append("assistant", 'here\'s the draft:\n\n"meeting at 7"\n\nreply "send"', 2.0, C.DRAFT_WRITE)
        history.append("user", "send", 3.0)
        history.append("assistant", "done. sent to 12 people", 4.0, C.DRAFT_SEND)
        assert recall_recent_send(history) == 'i just sent out: "meeting at 7"'

    def test_send_without_preview(self):
        history = HistoryStore()
        history.append("assistant", "done. sent to 12 people", 4.0, C.DRAFT_SEND)
        assert recall_recent_send(history) == "i just sent out an announcement. check your messages"

    def test_nothing_sent(self):
        history = HistoryStore()
        history.append("assistant", "hey", 1.0, C.CHAT)
        assert recall_recent_send(history) is None


class TestContentQuery:

    def test_top_result_without_service(self, make_ctx):
        result = _ask(make_ctx, "when is active meeting?")
        assert result.action == C.CONTENT_QUERY
        assert result.response == "Active meeting is every Wednesday at 8pm at the house"

    def test_prompt_carries_today_and_next_occurrence(self, make_ctx):
        service = FakeLanguageService(text_replies={"content_answer": "every wednesday at 8pm, next one is 1/15"})
        result = _ask(make_ctx, "when is active meeting?", service=service)
        assert result.response == "every wednesday at 8pm, next one is 1/15"
        task, prompt = service.calls[0]
        assert task == "content_answer"
        assert "Today is Tuesday, 2025-01-14" in prompt
        assert "Next occurrence: Wednesday 2025-01-15" in prompt

    def test_past_broadcast_dated(self, make_ctx, sandbox):
        asyncio.run(sandbox.broadcaster.send_announcement("formal tickets on sale tmr", ADMIN_ID))
        service = FakeLanguageService(text_replies={"content_answer": "tickets are $40"})
        _ask(make_ctx, "formal tickets", service=service)
        prompt = service.calls[0][1]
        assert "Type: PAST BROADCAST" in prompt
        assert "Sent: 2025-01-14 (Tuesday)" in prompt
        # upcoming event outranks the broadcast
        assert prompt.index("Grand Ballroom") < prompt.index("on sale tmr")

    def test_service_error_uses_top_result(self, make_ctx):
        result = _ask(make_ctx, "how much are dues", service=FakeLanguageService())
        assert "$150 per semester, pay on the portal" in result.response

    def test_no_results(self, make_ctx):
        result = _ask(make_ctx, "xyzzy plugh")
        assert result.action == C.CONTENT_QUERY
        assert "try" in result.response

    def test_failing_search_is_skipped(self, make_ctx, sandbox):
        collaborators = sandbox.collaborators()
        collaborators.content = MagicMock()
        collaborators.content.search = AsyncMock(side_effect=RuntimeError("index offline"))
        asyncio.run(sandbox.broadcaster.send_announcement("dues due friday", ADMIN_ID))
        result = _ask(make_ctx, "when are dues due", collaborators=collaborators)
        assert result.response == "dues due friday"

    def test_recent_send_recall(self, make_ctx):
        session = ConversationSession()
        session.history.append("assistant", 'preview:\n\n"pizza at 9"\n\nreply "send"', 1.0, C.DRAFT_WRITE)
        session.history.append("assistant", "done. sent to 12 people", 2.0, C.DRAFT_SEND)
        result = _ask(make_ctx, "what did you just send?", session=session)
        assert 'i just sent out: "pizza at 9"' in result.response


class TestCapability:

    @pytest.mark.parametrize("message,subtype", [
        ("who are you", "identity"),
        ("are you a bot?", "identity"),
        ("how does this work", "how_it_works"),
        ("what can you do", "capabilities"),
        ("help", "help"),
        ("can you do my homework", IMPOSSIBLE),
        ("can you book me a flight", IMPOSSIBLE),
        ("can you make polls?", "capabilities"),
        ("can you do announcements?", "capabilities"),
        ("tell me about yourself", "general"),
    ])
    def test_subtypes(self, message: str, subtype: str):
        assert capability_subtype(message) == subtype

    def test_impossible_request_echoes_task(self, make_ctx):
        result = asyncio.run(handle_capability_query(make_ctx("can you do my homework", C.CAPABILITY_QUERY)))
        assert "do your homework" in result.response

    @pytest.mark.parametrize("message", ["can you make polls?", "can you do announcements?"])
    def test_supported_tasks_not_declined(self, make_ctx, message):
        result = asyncio.run(handle_capability_query(make_ctx(message, C.CAPABILITY_QUERY)))
        assert "in this economy" not in result.response
        assert "poll" in result.response
        assert "announce" in result.response

    def test_identity(self, make_ctx):
        result = asyncio.run(handle_capability_query(make_ctx("who are you", C.CAPABILITY_QUERY)))
        assert "jarvis" in result.response

    def test_admin_capabilities_mention_events(self, make_ctx):
        result = asyncio.run(handle_capability_query(make_ctx("what can you do", C.CAPABILITY_QUERY)))
        assert "event" in result.response

    def test_member_capabilities_skip_admin_tools(self, make_ctx, member):
        result = asyncio.run(handle_capability_query(make_ctx("what can you do", C.CAPABILITY_QUERY, user=member)))
        assert "update events" not in result.response
        assert "event changes" not in result.response
        assert "poll" in result.response


class TestKnowledgeTriage:

    @pytest.mark.parametrize("message,body", [
        ("fyi dues are $150", "dues are $150"),
        ("remember that formal is jan 16", "formal is jan 16"),
        ("Note: parking in lot b", "parking in lot b"),
        ("formal is jan 16", "formal is jan 16"),
    ])
    def test_strip_note_prefix(self, message: str, body: str):
        assert strip_note_prefix(message) == body

    @pytest.mark.parametrize("message,worthy", [
        ("fyi ski retreat is jan 16-19 in utah", True),
        ("fyi what time is it", False),
        ("fyi cool", False),
        ("announce something for everyone today", False),
    ])
    def test_looks_upload_worthy(self, message: str, worthy: bool):
        assert looks_upload_worthy(message) is worthy


class TestKnowledgeUpload:

    def _upload(self, make_ctx, message, **kwargs):
        return asyncio.run(handle_knowledge_upload(make_ctx(message, C.KNOWLEDGE_UPLOAD, **kwargs)))

    def test_members_refused(self, make_ctx, member):
        result = self._upload(make_ctx, "fyi dues are $150 per semester", user=member)
        assert result.action == C.CHAT
        assert "only admins" in result.response

    def test_not_worthy(self, make_ctx):
        result = self._upload(make_ctx, "fyi what time is it")
        assert result.action == C.CHAT
        assert "doesn't look like info" in result.response

    def test_stored_as_facts(self, make_ctx, sandbox):
        result = self._upload(make_ctx, "fyi Dues are $150 per semester. Late fee is $20.")
        assert result.action == C.KNOWLEDGE_UPLOAD
        assert '"Dues are $150 per semester. Late..."' in result.response
        assert "extracted 2 facts" in result.response
        assert "Late fee is $20." in [item.body for item in sandbox.content.items]

    def test_recurring_fact_searchable(self, make_ctx, sandbox):
        self._upload(make_ctx, "fyi study hours are every monday in the library")
        stored = sandbox.content.items[-1]
        assert stored.recurring == "recurring:monday"

    def test_service_title(self, make_ctx):
        service = FakeLanguageService({"knowledge_triage": {"should_upload": True, "title": "Dues Policy"}})
        result = self._upload(make_ctx, "fyi dues are $150 per semester", service=service)
        assert '"Dues Policy"' in result.response

    def test_service_can_reject(self, make_ctx):
        service = FakeLanguageService({"knowledge_triage": {"should_upload": False, "title": ""}})
        result = self._upload(make_ctx, "fyi dues are $150 per semester", service=service)
        assert result.action == C.CHAT

    def test_service_error_uses_heuristic(self, make_ctx):
        result = self._upload(make_ctx, "fyi dues are $150 per semester", service=FakeLanguageService())
        assert '"dues are $150 per semester"' in result.response

    def test_ingest_error_reported(self, make_ctx, sandbox):
        collaborators = sandbox.collaborators()
        collaborators.knowledge = MagicMock()
        collaborators.knowledge.ingest = AsyncMock(side_effect=RuntimeError("db down"))
        result = self._upload(make_ctx, "fyi dues are $150 per semester", collaborators=collaborators)
        assert result.response == "failed to upload. error: db down"

    def test_no_ingestor(self, make_ctx, sandbox):
        collaborators = sandbox.collaborators()
        collaborators.knowledge = None
        result = self._upload(make_ctx, "fyi dues are $150 per semester", collaborators=collaborators)
        assert "try again" in result.response or "say that again" in result.response
