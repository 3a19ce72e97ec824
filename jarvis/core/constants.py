"""Shared constants — action taxonomy, weights, defaults."""
from __future__ import annotations

# --- Action taxonomy (the literal names exchanged with the language service) ---
DRAFT_WRITE = "draft_write"
DRAFT_SEND = "draft_send"
POLL_RESPONSE = "poll_response"
CONTENT_QUERY = "content_query"
CAPABILITY_QUERY = "capability_query"
KNOWLEDGE_UPLOAD = "knowledge_upload"
EVENT_UPDATE = "event_update"
CHAT = "chat"

ACTIONS: tuple[str, ...] = (
    DRAFT_WRITE,
    DRAFT_SEND,
    POLL_RESPONSE,
    CONTENT_QUERY,
    CAPABILITY_QUERY,
    KNOWLEDGE_UPLOAD,
    EVENT_UPDATE,
    CHAT,
)

ADMIN_ONLY_ACTIONS = frozenset({KNOWLEDGE_UPLOAD, EVENT_UPDATE})
BROADCAST_ACTIONS = frozenset({DRAFT_WRITE, DRAFT_SEND})

# --- Draft types / statuses ---
ANNOUNCEMENT = "announcement"
POLL = "poll"
DRAFT_TYPES = (ANNOUNCEMENT, POLL)

STATUS_IDLE = "idle"
STATUS_DRAFTING = "drafting"
STATUS_READY = "ready"
STATUS_SENT = "sent"
STATUS_CANCELLED = "cancelled"

# --- Poll answers ---
YES = "Yes"
NO = "No"
MAYBE = "Maybe"

# --- History ---
HISTORY_WINDOW = 5
HISTORY_WEIGHTS: tuple[float, ...] = (1.0, 0.8, 0.6, 0.4, 0.2)
RAW_HISTORY_CAP = 2 * HISTORY_WINDOW

# --- Classification ---
FAST_PATH_MIN_CONFIDENCE = 0.95
FALLBACK_CONFIDENCE = 0.5
LOW_CONFIDENCE_WARNING = 0.7

# --- Drafts ---
MIN_SEND_LENGTH = 3
MIN_CONTENT_LENGTH = 5

# --- Personality ---
STYLING_THRESHOLD = 100
TONE_LEVELS = ("mild", "medium", "spicy")

# --- Timing (seconds) ---
EVENT_NOTICE_WINDOW = 2 * 60 * 60
STALE_DRAFT_AGE = 24 * 60 * 60
STALE_STATE_AGE = 60 * 60

# --- Store key prefixes ---
DRAFT_KEY_PREFIX = "draft:"
CONVERSATION_KEY_PREFIX = "conversation:"
