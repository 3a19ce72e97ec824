"""StateStore protocol — abstract key/value interface for per-user state.

Implementations:
- MemoryStateStore (default, process-local)
- FilesystemStateStore (one file per key under a root directory)
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class StateStore(Protocol):
    """Opaque string values addressed by keys such as ``draft:<user>``.

    No transactional isolation: callers serialize access per user.
    """

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if missing."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a key. No error if missing."""
        ...

    async def keys(self, prefix: str = "") -> list[str]:
        """List keys starting with ``prefix`` (sorted)."""
        ...
