"""In-memory collaborators for the CLI simulator and tests.

Nothing here talks to SMS or a database. ``Sandbox`` wires a full
``Collaborators`` bundle around one shared ``StateStore`` so a local chat
session behaves like a small organization.
"""
from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from jarvis.core import constants as C
from jarvis.core.errors import DispatchFailure
from jarvis.core.storage.base import StateStore
from jarvis.core.storage.memory import MemoryStateStore
from jarvis.planner.collaborators import Collaborators, StoreDraftRepository
from jarvis.planner.state import Clock, ContentItem, Event, Poll, PollAnswer
from jarvis.retry import RetryingDispatcher

logger = logging.getLogger(__name__)

_STOPWORDS = {
    "the", "and", "for", "are", "what", "when", "where", "how", "who", "why",
    "can", "does", "will", "about", "with", "is", "a", "an", "of", "to", "in", "on",
}


def _words(text: str) -> set[str]:
    return {w for w in re.findall(r"[a-z0-9']+", text.lower()) if len(w) > 2 and w not in _STOPWORDS}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SentBroadcast:
    kind: str  # "announcement" | "poll"
    content: str
    sender_id: str
    sent_at: datetime
    requires_excuse: bool = False


class InMemoryPolls:
    """PollRepository holding at most one active poll."""

    def __init__(self) -> None:
        self.active: Poll | None = None
        self.responses: dict[tuple[str, str], PollAnswer] = {}
        self._ids = itertools.count(1)

    def open_poll(self, question: str, requires_reason_for_no: bool = False, created_at: datetime | None = None) -> Poll:
        self.active = Poll(f"poll-{next(self._ids)}", question, requires_reason_for_no, created_at)
        return self.active

    async def get_active_poll(self) -> Poll | None:
        return self.active

    async def get_poll_response(self, poll_id: str, user_id: str) -> PollAnswer | None:
        return self.responses.get((poll_id, user_id))

    async def save_poll_response(self, poll_id: str, user_id: str, response: str, notes: str | None) -> None:
        self.responses[(poll_id, user_id)] = PollAnswer(response, notes)


class InMemoryEvents:
    """EventRepository over a plain list."""

    def __init__(self, events: list[Event] | None = None, clock: Clock | None = None) -> None:
        self.events = list(events or [])
        self.clock = clock or _utc_now

    async def get_upcoming_events(self, limit: int) -> list[Event]:
        now = self.clock()
        upcoming = sorted((e for e in self.events if e.starts_at >= now), key=lambda e: e.starts_at)
        return upcoming[:limit]

    async def update_event(self, event_id: str, patch: dict[str, Any]) -> Event:
        for event in self.events:
            if event.id == event_id:
                for name, value in patch.items():
                    if not hasattr(event, name):
                        raise ValueError(f"unknown event field: {name}")
                    setattr(event, name, value)
                return event
        raise KeyError(f"no event {event_id!r}")


class InMemoryBroadcaster:
    """BroadcastDispatcher that records what it sends.

    Members who have opted out are not counted. Set ``fail_with`` to make
    the next dispatch raise.
    """

    def __init__(self, members: list[str] | None = None, clock: Clock | None = None, polls: InMemoryPolls | None = None) -> None:
        self.members = list(members or [])
        self.opted_out: set[str] = set()
        self.sent: list[SentBroadcast] = []
        self.fail_with: Exception | None = None
        self.clock = clock or _utc_now
        self.polls = polls

    def _deliver(self, kind: str, content: str, sender_id: str, requires_excuse: bool = False) -> int:
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error
        if not content.strip():
            raise DispatchFailure("refusing to send empty content")
        self.sent.append(SentBroadcast(kind, content, sender_id, self.clock(), requires_excuse))
        count = len([m for m in self.members if m not in self.opted_out])
        logger.info("Sandbox %s delivered to %d member(s)", kind, count)
        return count

    async def send_announcement(self, content: str, sender_id: str) -> int:
        return self._deliver(C.ANNOUNCEMENT, content, sender_id)

    async def send_poll(self, question: str, sender_id: str, requires_excuse: bool = False) -> int:
        count = self._deliver(C.POLL, question, sender_id, requires_excuse)
        if self.polls is not None:
            self.polls.open_poll(question, requires_excuse, self.clock())
        return count


class KeywordSearch:
    """ContentSearch ranking items by word overlap with the query."""

    def __init__(self, items: list[ContentItem] | None = None) -> None:
        self.items = list(items or [])

    def add(self, item: ContentItem) -> None:
        self.items.append(item)

    async def search(self, query: str, limit: int = 5) -> list[ContentItem]:
        words = _words(query)
        scored = []
        for item in self.items:
            overlap = len(words & _words(f"{item.title} {item.body}"))
            if overlap:
                scored.append((overlap / max(len(words), 1), item))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [
            ContentItem(item.title, item.body, score, item.source, item.event_date, item.recurring, item.sent_at)
            for score, item in scored[:limit]
        ]


class BroadcastArchive:
    """ContentSearch over what an InMemoryBroadcaster has sent."""

    def __init__(self, broadcaster: InMemoryBroadcaster) -> None:
        self.broadcaster = broadcaster

    async def search(self, query: str, limit: int = 5) -> list[ContentItem]:
        words = _words(query)
        items = []
        for sent in reversed(self.broadcaster.sent):
            if words and not words & _words(sent.content):
                continue
            title = "Poll" if sent.kind == C.POLL else "Announcement"
            items.append(ContentItem(title, sent.content, 0.5, "broadcast", sent_at=sent.sent_at))
        return items[:limit]


class SentenceIngestor:
    """KnowledgeIngestor storing each sentence as one fact in a KeywordSearch."""

    def __init__(self, search: KeywordSearch) -> None:
        self.search = search

    async def ingest(self, text: str, title: str, submitted_by: str) -> int:
        facts = [s.strip() for s in re.split(r"(?<=[.!?])\s+|\n+", text) if len(s.strip()) > 3]
        for fact in facts:
            recurring = None
            match = re.search(r"\bevery\s+(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", fact, re.I)
            if match:
                recurring = f"recurring:{match.group(1).lower()}"
            self.search.add(ContentItem(title, fact, recurring=recurring))
        logger.info("Ingested %d fact(s) from %s", len(facts), submitted_by)
        return len(facts)


@dataclass
class Sandbox:
    """A small in-memory organization."""

    store: StateStore = field(default_factory=MemoryStateStore)
    members: list[str] = field(default_factory=lambda: [f"+1555000{i:04d}" for i in range(12)])
    clock: Clock = _utc_now

    def __post_init__(self) -> None:
        self.polls = InMemoryPolls()
        self.broadcaster = InMemoryBroadcaster(self.members, self.clock, self.polls)
        self.content = KeywordSearch()
        self.events = InMemoryEvents(clock=self.clock)
        self.drafts = StoreDraftRepository(self.store, self.clock)

    def seed_demo(self) -> None:
        """Sample events and facts so content and event commands have data."""
        now = self.clock()
        tonight = now.replace(hour=19, minute=0, second=0, microsecond=0)
        if tonight < now:
            tonight += timedelta(days=1)
        self.events.events = [
            Event("evt-1", "Chapter Meeting", tonight, "Student Union 204"),
            Event("evt-2", "Formal", now + timedelta(days=10), "Grand Ballroom"),
        ]
        self.content.items = [
            ContentItem("Active Meeting", "Active meeting is every Wednesday at 8pm at the house",
                        recurring="recurring:wednesday"),
            ContentItem("Formal", "Formal is at the Grand Ballroom, tickets are $40",
                        event_date=now + timedelta(days=10)),
            ContentItem("Dues", "Dues are $150 per semester, pay on the portal"),
        ]

    def collaborators(self, *, retry: bool = False) -> Collaborators:
        """Collaborators bundle. With ``retry`` broadcasts go through RetryingDispatcher."""
        broadcasts = RetryingDispatcher(self.broadcaster) if retry else self.broadcaster
        return Collaborators(
            drafts=self.drafts,
            polls=self.polls,
            broadcasts=broadcasts,
            events=self.events,
            content=self.content,
            past_broadcasts=BroadcastArchive(self.broadcaster),
            knowledge=SentenceIngestor(self.content),
        )
