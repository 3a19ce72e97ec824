"""Collaborator interfaces consumed by the planner.

The planner owns none of these systems. Each is a ``Protocol`` so any
object with matching async methods can be plugged in. ``StoreDraftRepository``
is the one implementation shipped here: drafts kept in a ``StateStore``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from jarvis.core import constants as C
from jarvis.core.errors import PersistenceFailure
from jarvis.core.storage.base import StateStore
from jarvis.planner.state import Clock, ContentItem, Draft, Event, Poll, PollAnswer

logger = logging.getLogger(__name__)


@runtime_checkable
class DraftRepository(Protocol):
    async def get_active_draft(self, user_id: str) -> Draft | None: ...

    async def create_draft(
        self, user_id: str, draft_type: str, content: str, **fields: Any
    ) -> Draft:
        """Create a draft, replacing any existing one for this user."""
        ...

    async def update_draft(self, user_id: str, patch: dict[str, Any]) -> Draft: ...

    async def finalize_draft(self, user_id: str) -> None:
        """Mark the draft sent and clear it."""
        ...

    async def delete_draft(self, user_id: str) -> None:
        """Mark the draft cancelled and clear it."""
        ...

    async def clear_stale_drafts(self, max_age: float) -> int:
        """Remove drafts not updated within ``max_age`` seconds. Returns count."""
        ...


@runtime_checkable
class PollRepository(Protocol):
    async def get_active_poll(self) -> Poll | None: ...

    async def get_poll_response(self, poll_id: str, user_id: str) -> PollAnswer | None: ...

    async def save_poll_response(
        self, poll_id: str, user_id: str, response: str, notes: str | None
    ) -> None: ...


@runtime_checkable
class BroadcastDispatcher(Protocol):
    async def send_announcement(self, content: str, sender_id: str) -> int:
        """Deliver to all opted-in members. Returns delivered count."""
        ...

    async def send_poll(
        self, question: str, sender_id: str, requires_excuse: bool = False
    ) -> int: ...


@runtime_checkable
class EventRepository(Protocol):
    async def get_upcoming_events(self, limit: int) -> list[Event]: ...

    async def update_event(self, event_id: str, patch: dict[str, Any]) -> Event: ...


@runtime_checkable
class ContentSearch(Protocol):
    async def search(self, query: str, limit: int = 5) -> list[ContentItem]: ...


@runtime_checkable
class KnowledgeIngestor(Protocol):
    async def ingest(self, text: str, title: str, submitted_by: str) -> int:
        """Extract facts from ``text``. Returns how many were stored."""
        ...


@dataclass
class Collaborators:
    """Bundle of collaborators handed to ``plan()``.

    Only ``drafts`` is required. Handlers degrade gracefully when an
    optional collaborator is missing.
    """

    drafts: DraftRepository
    polls: PollRepository | None = None
    broadcasts: BroadcastDispatcher | None = None
    events: EventRepository | None = None
    content: ContentSearch | None = None
    past_broadcasts: ContentSearch | None = None
    knowledge: KnowledgeIngestor | None = None


# ---------------------------------------------------------------------------
# StateStore-backed draft repository
# ---------------------------------------------------------------------------


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StoreDraftRepository:
    """DraftRepository keeping one JSON record per user under ``draft:<user>``.

    A single key per user makes "at most one active draft" structural:
    creating a draft overwrites the previous one. Sent and cancelled drafts
    keep their record with the terminal status until the stale sweep
    removes them.
    """

    def __init__(self, store: StateStore, clock: Clock | None = None) -> None:
        self.store = store
        self.clock = clock or _utc_now

    def _key(self, user_id: str) -> str:
        return f"{C.DRAFT_KEY_PREFIX}{user_id}"

    def _now(self) -> float:
        return self.clock().timestamp()

    async def _load(self, user_id: str) -> Draft | None:
        try:
            raw = await self.store.get(self._key(user_id))
        except OSError as exc:
            raise PersistenceFailure(f"cannot read draft for {user_id}: {exc}") from exc
        if not raw:
            return None
        try:
            return Draft.from_dict(json.loads(raw))
        except (ValueError, TypeError) as exc:
            logger.warning("Discarding unreadable draft for %s: %s", user_id, exc)
            await self.store.delete(self._key(user_id))
            return None

    async def _save(self, user_id: str, draft: Draft) -> None:
        try:
            await self.store.set(self._key(user_id), json.dumps(draft.to_dict()))
        except OSError as exc:
            raise PersistenceFailure(f"cannot write draft for {user_id}: {exc}") from exc

    async def get_active_draft(self, user_id: str) -> Draft | None:
        draft = await self._load(user_id)
        if draft is None or not draft.is_active:
            return None
        return draft

    async def create_draft(
        self, user_id: str, draft_type: str, content: str, **fields: Any
    ) -> Draft:
        now = self._now()
        draft = Draft(
            type=draft_type,
            content=content,
            status=C.STATUS_READY if content else C.STATUS_DRAFTING,
            created_at=now,
            updated_at=now,
        )
        for name, value in fields.items():
            setattr(draft, name, value)
        await self._save(user_id, draft)
        logger.info("Draft created for %s: %s/%s", user_id, draft.type, draft.status)
        return draft

    async def update_draft(self, user_id: str, patch: dict[str, Any]) -> Draft:
        draft = await self.get_active_draft(user_id)
        if draft is None:
            raise PersistenceFailure(f"no active draft for {user_id}")
        for name, value in patch.items():
            if not hasattr(draft, name):
                raise ValueError(f"unknown draft field: {name}")
            setattr(draft, name, value)
        draft.updated_at = self._now()
        await self._save(user_id, draft)
        logger.info("Draft updated for %s: %s", user_id, ", ".join(sorted(patch)))
        return draft

    async def _close(self, user_id: str, status: str) -> None:
        draft = await self._load(user_id)
        if draft is None or not draft.is_active:
            return
        draft.status = status
        draft.updated_at = self._now()
        await self._save(user_id, draft)
        logger.info("Draft %s for %s", status, user_id)

    async def finalize_draft(self, user_id: str) -> None:
        await self._close(user_id, C.STATUS_SENT)

    async def delete_draft(self, user_id: str) -> None:
        await self._close(user_id, C.STATUS_CANCELLED)

    async def draft_status(self, user_id: str) -> str:
        """Status of the latest draft. ``idle`` when there is none on record."""
        draft = await self._load(user_id)
        return C.STATUS_IDLE if draft is None else draft.status

    async def clear_stale_drafts(self, max_age: float) -> int:
        cutoff = self._now() - max_age
        cleared = 0
        for key in await self.store.keys(C.DRAFT_KEY_PREFIX):
            raw = await self.store.get(key)
            try:
                updated_at = float(json.loads(raw or "{}").get("updated_at", 0.0))
            except (ValueError, TypeError, AttributeError):
                updated_at = 0.0
            if updated_at < cutoff:
                await self.store.delete(key)
                cleared += 1
        if cleared:
            logger.info("Cleared %d stale draft(s)", cleared)
        return cleared
