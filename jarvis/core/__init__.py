"""Jarvis core — embeddable planner engine.

Public API::

    from jarvis.core import PlannerEngine, PlannerConfig
    from jarvis.core.storage import StateStore, FilesystemStateStore

    engine = PlannerEngine(PlannerConfig(), collaborators, store=FilesystemStateStore("/var/lib/jarvis"))
    result = await engine.handle(user, "announce meeting tonight at 7pm")
"""
from __future__ import annotations

from jarvis.core.config import PersonalitySettings, PlannerConfig, PlannerConfigError
from jarvis.core.engine import PlannerEngine
from jarvis.core.errors import (
    ClassificationFailure,
    DispatchFailure,
    LanguageServiceError,
    PersistenceFailure,
    PlannerError,
    ValidationFailure,
)
from jarvis.core.storage import FilesystemStateStore, MemoryStateStore, StateStore

__all__ = [
    "ClassificationFailure",
    "DispatchFailure",
    "FilesystemStateStore",
    "LanguageServiceError",
    "MemoryStateStore",
    "PersistenceFailure",
    "PersonalitySettings",
    "PlannerConfig",
    "PlannerConfigError",
    "PlannerEngine",
    "PlannerError",
    "StateStore",
    "ValidationFailure",
]
