"""PlannerEngine — embeddable entry point for an SMS webhook.

Build once per organization, call ``handle()`` per inbound message.

Usage::

    from jarvis.core import PlannerEngine, PlannerConfig
    from jarvis.core.storage import FilesystemStateStore
    from jarvis.planner import Collaborators, StoreDraftRepository, UserContext

    store = FilesystemStateStore(root="/var/lib/jarvis")
    engine = PlannerEngine(
        PlannerConfig(llm_provider="openai", llm_credentials={"api_key": "sk-..."}),
        Collaborators(drafts=StoreDraftRepository(store), polls=..., broadcasts=...),
        store=store,
    )
    result = await engine.handle(UserContext("+15551234567", name="Sam"), "announce ...")

Concurrency:
    Messages from the same user are serialized with a per-user
    ``asyncio.Lock``: history and draft are read-modify-write with no
    isolation of their own. Different users run in parallel. Locks are
    per-process; a multi-worker deployment must route each user to one
    worker (or serialize upstream).
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timezone
from typing import Any

from jarvis.core import constants as C
from jarvis.core.config import PlannerConfig
from jarvis.core.errors import PersistenceFailure
from jarvis.core.storage.base import StateStore
from jarvis.core.storage.memory import MemoryStateStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PlannerEngine:
    """Embeddable planner with per-user serialization and stored state.

    Args:
        config: PlannerConfig with all planner parameters.
        collaborators: jarvis.planner.Collaborators bundle.
        store: Where conversation state lives between messages
            (``conversation:<user>``). Defaults to in-memory.
        service: LanguageService override. Defaults to the LangChain
            backend for ``config.llm_provider`` (None when unset).
        clock: Time source, injectable for tests.
        validate: If True (default), validate config on construction.
    """

    def __init__(
        self,
        config: PlannerConfig,
        collaborators: Any,
        *,
        store: StateStore | None = None,
        service: Any = None,
        clock: Any = None,
        validate: bool = True,
    ) -> None:
        if not isinstance(config, PlannerConfig):
            raise TypeError(f"Expected PlannerConfig, got {type(config).__name__}")
        if validate:
            config.validate()

        from jarvis.core.llm import build_language_service
        from jarvis.planner.personality import build_personality

        self.config = config
        self.collaborators = collaborators
        self.store = store or MemoryStateStore()
        self.service = service if service is not None else build_language_service(config)
        self.personality = build_personality(config)
        self.clock = clock or _utc_now
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def _state_key(self, user_id: str) -> str:
        return f"{C.CONVERSATION_KEY_PREFIX}{user_id}"

    async def load_state(self, user_id: str) -> str:
        try:
            return await self.store.get(self._state_key(user_id)) or ""
        except OSError as exc:
            logger.warning("Could not read conversation state for %s: %s", user_id, exc)
            return ""

    async def save_state(self, user_id: str, state: str) -> None:
        try:
            await self.store.set(self._state_key(user_id), state)
        except OSError as exc:
            raise PersistenceFailure(f"cannot write conversation state for {user_id}: {exc}") from exc

    async def handle(self, user: Any, message: str, prior_state: str | None = None) -> Any:
        """Process one inbound message for ``user``.

        Args:
            user: jarvis.planner.UserContext of the sender.
            message: Raw SMS text.
            prior_state: Opaque state from the previous cycle. When None the
                engine loads it from its store and saves the new one back.

        Returns:
            jarvis.planner.PlanResult.
        """
        from jarvis.planner.graph import plan
        from jarvis.planner.state import PlanInput

        async with self._lock_for(user.user_id):
            managed = prior_state is None
            if managed:
                prior_state = await self.load_state(user.user_id)

            result = await plan(PlanInput(
                user_id=user.user_id,
                message=message,
                user=user,
                collaborators=self.collaborators,
                prior_state=prior_state,
                service=self.service,
                personality=self.personality,
                config=self.config,
                clock=self.clock,
            ))

            if managed:
                try:
                    await self.save_state(user.user_id, result.new_state)
                except PersistenceFailure as exc:
                    logger.error("%s", exc)
            return result

    async def sweep(self) -> Any:
        """Run the stale-state sweep against this engine's store."""
        from jarvis.maintenance import sweep_stale_state

        return await sweep_stale_state(self.store, self.collaborators.drafts, self.clock(), self.config)

    def __repr__(self) -> str:
        return (
            f"PlannerEngine(provider={self.config.llm_provider!r}, "
            f"model={self.config.default_model!r}, "
            f"language_service={self.service is not None})"
        )
