"""Tests for PlannerEngine — construction, stored state, per-user ordering."""
from __future__ import annotations

import asyncio

import pytest

from jarvis.core import PlannerConfig, PlannerEngine
from jarvis.core import constants as C
from jarvis.core.config import PlannerConfigError
from jarvis.planner.history import ConversationSession

from conftest import ADMIN_ID, FakeLanguageService


@pytest.fixture
def engine(sandbox):
    return PlannerEngine(PlannerConfig(seed=1), sandbox.collaborators(), store=sandbox.store, clock=sandbox.clock)


def _stored(sandbox, user_id=ADMIN_ID):
    return asyncio.run(sandbox.store.get(f"{C.CONVERSATION_KEY_PREFIX}{user_id}"))


class TestConstruction:

    def test_rejects_non_config(self, sandbox):
        with pytest.raises(TypeError, match="Expected PlannerConfig"):
            PlannerEngine({"llm_provider": "openai"}, sandbox.collaborators())

    def test_invalid_config(self, sandbox):
        with pytest.raises(PlannerConfigError):
            PlannerEngine(PlannerConfig(llm_provider="openai"), sandbox.collaborators())

    def test_validation_can_be_skipped(self, sandbox):
        engine = PlannerEngine(PlannerConfig(history_window=0), sandbox.collaborators(), validate=False)
        assert engine.config.history_window == 0

    def test_no_provider_means_no_service(self, engine):
        assert engine.service is None
        assert "language_service=False" in repr(engine)

    def test_service_override(self, sandbox):
        service = FakeLanguageService()
        engine = PlannerEngine(PlannerConfig(), sandbox.collaborators(), service=service)
        assert engine.service is service


class TestHandle:

    def test_state_saved_and_reloaded(self, engine, sandbox, admin):
        asyncio.run(engine.handle(admin, "announce meeting tonight at 7pm"))
        saved = _stored(sandbox)
        assert len(ConversationSession.deserialize(saved).history) == 2

        result = asyncio.run(engine.handle(admin, "send"))
        assert result.action == C.DRAFT_SEND
        assert len(ConversationSession.deserialize(_stored(sandbox)).history) == 4

    def test_explicit_prior_state_not_saved(self, engine, sandbox, admin):
        result = asyncio.run(engine.handle(admin, "hey", prior_state=""))
        assert result.new_state
        assert _stored(sandbox) is None

    def test_same_user_messages_serialized(self, engine, sandbox, admin):
        async def both():
            await asyncio.gather(
                engine.handle(admin, "announce meeting tonight at 7pm"),
                engine.handle(admin, "what can you do"),
            )
        asyncio.run(both())
        turns = ConversationSession.deserialize(_stored(sandbox)).history.turns
        assert [t.role for t in turns] == ["user", "assistant", "user", "assistant"]

    def test_users_kept_apart(self, engine, sandbox, admin, member):
        asyncio.run(engine.handle(admin, "hey"))
        asyncio.run(engine.handle(member, "hey"))
        assert len(ConversationSession.deserialize(_stored(sandbox)).history) == 2
        assert len(ConversationSession.deserialize(_stored(sandbox, member.user_id)).history) == 2


class TestSweep:

    def test_idle_state_cleared_after_an_hour(self, engine, sandbox, admin, clock):
        asyncio.run(engine.handle(admin, "announce meeting tonight at 7pm"))
        clock.advance(hours=2)
        report = asyncio.run(engine.sweep())
        assert (report.drafts_cleared, report.states_cleared) == (0, 1)
        assert _stored(sandbox) is None
        assert asyncio.run(sandbox.drafts.get_active_draft(ADMIN_ID)) is not None

    def test_idle_draft_cleared_after_a_day(self, engine, sandbox, admin, clock):
        asyncio.run(engine.handle(admin, "announce meeting tonight at 7pm"))
        clock.advance(days=1, minutes=1)
        report = asyncio.run(engine.sweep())
        assert report.drafts_cleared == 1
        assert asyncio.run(sandbox.drafts.get_active_draft(ADMIN_ID)) is None
