"""State stores for the planner.

Public API::

    from jarvis.core.storage import StateStore, MemoryStateStore, FilesystemStateStore
"""
from __future__ import annotations

from jarvis.core.storage.base import StateStore
from jarvis.core.storage.filesystem import FilesystemStateStore
from jarvis.core.storage.memory import MemoryStateStore

__all__ = ["FilesystemStateStore", "MemoryStateStore", "StateStore"]
