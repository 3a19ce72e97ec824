"""Stale-state sweep for the external periodic job.

The planner never expires anything on its own. A cron-style caller runs
``sweep_stale_state`` to drop drafts idle for more than a day and
conversation state idle for more than an hour.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime

from jarvis.core import constants as C
from jarvis.core.config import PlannerConfig
from jarvis.core.storage.base import StateStore
from jarvis.planner.collaborators import DraftRepository
from jarvis.planner.state import Draft

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    drafts_cleared: int = 0
    states_cleared: int = 0


def is_draft_stale(draft: Draft, now: datetime, max_age: float = C.STALE_DRAFT_AGE) -> bool:
    return now.timestamp() - draft.updated_at > max_age


def is_state_stale(raw_state: str | None, now: datetime, max_age: float = C.STALE_STATE_AGE) -> bool:
    """Unreadable state counts as stale."""
    if not raw_state:
        return True
    try:
        data = json.loads(raw_state)
        updated_at = float(data.get("updated_at", 0.0)) if isinstance(data, dict) else 0.0
    except (ValueError, TypeError):
        return True
    return now.timestamp() - updated_at > max_age


async def sweep_stale_state(
    store: StateStore,
    drafts: DraftRepository,
    now: datetime,
    config: PlannerConfig | None = None,
) -> SweepReport:
    """Clear stale drafts (via the repository) and stale conversation state."""
    config = config or PlannerConfig()
    report = SweepReport()
    report.drafts_cleared = await drafts.clear_stale_drafts(config.stale_draft_age)

    for key in await store.keys(C.CONVERSATION_KEY_PREFIX):
        if is_state_stale(await store.get(key), now, config.stale_state_age):
            await store.delete(key)
            report.states_cleared += 1

    logger.info(
        "Sweep cleared %d draft(s) and %d conversation state(s)",
        report.drafts_cleared, report.states_cleared,
    )
    return report
