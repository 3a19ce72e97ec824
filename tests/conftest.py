"""Shared fixtures: fixed clock, scripted language service, sandbox org."""
from __future__ import annotations

import asyncio
import random
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from jarvis.core import constants as C
from jarvis.core.config import PlannerConfig
from jarvis.core.errors import LanguageServiceError
from jarvis.planner.actions.base import HandlerContext
from jarvis.planner.graph import plan
from jarvis.planner.history import ConversationSession
from jarvis.planner.personality import Personality
from jarvis.planner.state import ClassificationResult, PlanInput, PlanResult, UserContext
from jarvis.sandbox import Sandbox

# Tuesday afternoon
NOW = datetime(2025, 1, 14, 15, 0, tzinfo=timezone.utc)

ADMIN_ID = "+15550001111"
MEMBER_ID = "+15550002222"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeLanguageService:
    """LanguageService with replies scripted per task.

    Unscripted tasks raise LanguageServiceError, like an unreachable service.
    A scripted Exception is raised instead of returned.
    """

    def __init__(self, json_replies: dict[str, Any] | None = None, text_replies: dict[str, Any] | None = None) -> None:
        self.json_replies = dict(json_replies or {})
        self.text_replies = dict(text_replies or {})
        self.calls: list[tuple[str, Any]] = []

    def _reply(self, replies: dict[str, Any], task: str) -> Any:
        reply = replies.get(task)
        if reply is None:
            raise LanguageServiceError(f"no scripted reply for {task}")
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def complete_json(self, task: str, system: str, payload: dict[str, Any], *, temperature: float) -> dict[str, Any]:
        self.calls.append((task, payload))
        return self._reply(self.json_replies, task)

    async def complete_text(self, task: str, system: str, prompt: str, *, temperature: float) -> str:
        self.calls.append((task, prompt))
        return self._reply(self.text_replies, task)

    def tasks(self) -> list[str]:
        return [task for task, _ in self.calls]


class Conversation:
    """Drives plan() for one user, carrying the opaque state between messages."""

    def __init__(
        self,
        sandbox: Sandbox,
        user: UserContext,
        *,
        service: Any = None,
        config: PlannerConfig | None = None,
        personality: Personality | None = None,
        collaborators: Any = None,
    ) -> None:
        self.sandbox = sandbox
        self.user = user
        self.service = service
        self.config = config or PlannerConfig()
        self.personality = personality or Personality(rng=random.Random(0))
        self.collaborators = collaborators or sandbox.collaborators()
        self.state = ""

    def send(self, message: str) -> PlanResult:
        result = asyncio.run(plan(PlanInput(
            user_id=self.user.user_id,
            message=message,
            user=self.user,
            collaborators=self.collaborators,
            prior_state=self.state,
            service=self.service,
            personality=self.personality,
            config=self.config,
            clock=self.sandbox.clock,
        )))
        self.state = result.new_state
        return result

    @property
    def session(self) -> ConversationSession:
        return ConversationSession.deserialize(self.state)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def personality() -> Personality:
    return Personality(rng=random.Random(0))


@pytest.fixture
def sandbox(clock: FakeClock) -> Sandbox:
    box = Sandbox(clock=clock)
    box.seed_demo()
    return box


@pytest.fixture
def admin() -> UserContext:
    return UserContext(ADMIN_ID, name="Sam", is_admin=True)


@pytest.fixture
def member() -> UserContext:
    return UserContext(MEMBER_ID, name="Alex")


@pytest.fixture
def make_ctx(sandbox: Sandbox, personality: Personality, admin: UserContext):
    """Factory for HandlerContext against the sandbox.

    The draft and poll default to what the sandbox currently holds for the user.
    """
    def _make(
        message: str,
        action: str = C.CHAT,
        *,
        subtype: str | None = None,
        user: UserContext | None = None,
        session: ConversationSession | None = None,
        service: Any = None,
        config: PlannerConfig | None = None,
        collaborators: Any = None,
    ) -> HandlerContext:
        user = user or admin
        draft = asyncio.run(sandbox.drafts.get_active_draft(user.user_id))
        return HandlerContext(
            user_id=user.user_id,
            message=message,
            user=user,
            classification=ClassificationResult(action, 0.9, subtype, "test"),
            session=session or ConversationSession(),
            collaborators=collaborators or sandbox.collaborators(),
            personality=personality,
            config=config or PlannerConfig(),
            clock=sandbox.clock,
            draft=draft,
            poll=sandbox.polls.active,
            service=service,
        )
    return _make
