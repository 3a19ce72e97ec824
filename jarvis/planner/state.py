"""Planner data model and graph state definition."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Literal, TypedDict

from jarvis.core import constants as C

Clock = Callable[[], datetime]


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------


@dataclass
class ConversationTurn:
    """One message in the conversation, appended only."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: float
    action: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationTurn:
        role = data.get("role")
        if role not in ("user", "assistant"):
            raise ValueError(f"invalid turn role: {role!r}")
        return cls(
            role=role,
            content=str(data.get("content", "")),
            timestamp=float(data.get("timestamp", 0.0)),
            action=data.get("action"),
        )


@dataclass
class WeightedTurn(ConversationTurn):
    """A turn annotated with its recency weight in the classification window."""

    weight: float = 0.0


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


@dataclass
class Draft:
    """An in-progress broadcast. At most one active draft per user."""

    type: Literal["announcement", "poll"]
    content: str = ""
    status: str = C.STATUS_DRAFTING
    created_at: float = 0.0
    updated_at: float = 0.0
    pending_mandatory: bool = False   # waiting for "is this mandatory?" yes/no
    pending_link: bool = False        # waiting for an RSVP/form URL
    requires_excuse: bool = False     # poll: "No" answers must carry a reason
    links: list[str] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status in (C.STATUS_DRAFTING, C.STATUS_READY)

    @property
    def is_ready(self) -> bool:
        return self.status == C.STATUS_READY

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Draft:
        return cls(
            type=data.get("type", C.ANNOUNCEMENT),
            content=data.get("content", ""),
            status=data.get("status", C.STATUS_DRAFTING),
            created_at=float(data.get("created_at", 0.0)),
            updated_at=float(data.get("updated_at", 0.0)),
            pending_mandatory=bool(data.get("pending_mandatory", False)),
            pending_link=bool(data.get("pending_link", False)),
            requires_excuse=bool(data.get("requires_excuse", False)),
            links=list(data.get("links") or []),
        )


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


@dataclass
class ClassificationResult:
    """Output of intent classification."""

    action: str
    confidence: float
    subtype: str | None = None
    reasoning: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ClassificationContext:
    """Everything the classifier may look at. Optional flags are explicit."""

    message: str
    history: list[WeightedTurn] = field(default_factory=list)
    draft: Draft | None = None
    is_admin: bool = False
    user_name: str | None = None
    has_active_poll: bool = False
    pending_excuse: bool = False
    pending_confirmation: bool = False
    awaiting_content: bool = False
    awaiting_send: bool = False


@dataclass
class UserContext:
    """The member who sent the message."""

    user_id: str
    name: str | None = None
    is_admin: bool = False
    needs_name: bool = False
    opted_out: bool = False


# ---------------------------------------------------------------------------
# Polls, events, content
# ---------------------------------------------------------------------------


@dataclass
class ParsedPollResponse:
    """Free-text poll reply reduced to Yes/No/Maybe plus notes.

    ``rule`` names the ladder step that matched ("default" when nothing did).
    """

    response: Literal["Yes", "No", "Maybe"]
    notes: str | None = None
    rule: str = "default"

    @property
    def is_explicit(self) -> bool:
        return self.rule != "default"


@dataclass
class Poll:
    id: str
    question: str
    requires_reason_for_no: bool = False
    created_at: datetime | None = None


@dataclass
class PollAnswer:
    response: str
    notes: str | None = None


@dataclass
class Event:
    id: str
    title: str
    starts_at: datetime
    location: str | None = None
    description: str = ""


@dataclass
class ContentItem:
    """One piece of evidence for a content query.

    ``event_date`` marks future-dated items, ``recurring`` a weekday pattern,
    ``sent_at`` a past broadcast's send time.
    """

    title: str
    body: str
    score: float = 0.0
    source: Literal["content", "broadcast"] = "content"
    event_date: datetime | None = None
    recurring: str | None = None
    sent_at: datetime | None = None


# ---------------------------------------------------------------------------
# Handler results and plan I/O
# ---------------------------------------------------------------------------


@dataclass
class ActionResult:
    """What a handler hands back to the orchestrator."""

    action: str
    response: str
    draft: Draft | None = None
    pending_confirmation: dict[str, Any] | None = None
    pending_excuse: str | None = None


@dataclass
class PlanInput:
    """Input for one planner cycle.

    ``prior_state`` is the opaque string returned as ``new_state`` by the
    previous cycle for this user (empty for a fresh conversation).
    """

    user_id: str
    message: str
    user: UserContext
    collaborators: Any                 # jarvis.planner.collaborators.Collaborators
    prior_state: str = ""
    service: Any = None                # LanguageService | None
    personality: Any = None            # Personality | None
    config: Any = None                 # PlannerConfig | None
    clock: Clock | None = None


@dataclass
class PlanResult:
    response: str
    action: str
    classification: ClassificationResult
    new_state: str


class PlannerState(TypedDict, total=False):
    """State passed through the planner graph.

    Fields are grouped by lifecycle stage:
    - Input: set by plan() before graph invocation
    - Context: set by load_session / build_context
    - Classification: set by classify
    - Output: set by the action node and record_outbound
    """

    # --- Input ---
    user_id: str
    message: str
    user: UserContext
    prior_state: str

    # --- Context ---
    session: Any                       # jarvis.planner.history.ConversationSession
    is_empty: bool
    draft: Draft | None
    poll: Poll | None
    context: ClassificationContext

    # --- Classification ---
    classification: ClassificationResult

    # --- Output ---
    result: ActionResult
    response: str
    action: str
    new_state: str

    # --- Runtime refs (set by plan(), not persisted) ---
    _collaborators: Any
    _service: Any
    _personality: Any
    _config: Any
    _clock: Clock
