"""Filesystem state store — the default for CLI usage.

Each key becomes one file under the root directory. Keys are
percent-encoded so phone numbers and prefixes map to safe file names.
"""
from __future__ import annotations

from pathlib import Path
from urllib.parse import quote, unquote

_SUFFIX = ".state"


class FilesystemStateStore:
    """Local filesystem StateStore.

    Args:
        root: Base directory. Created if missing.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        """Resolve a key to a file under root."""
        if not key:
            raise ValueError("Empty state key")
        resolved = (self.root / (quote(key, safe="") + _SUFFIX)).resolve()
        # Safety: prevent path traversal outside root
        if resolved.parent != self.root.resolve():
            raise ValueError(f"Path traversal detected: {key}")
        return resolved

    async def get(self, key: str) -> str | None:
        p = self._resolve(key)
        if not p.is_file():
            return None
        return p.read_text(encoding="utf-8")

    async def set(self, key: str, value: str) -> None:
        p = self._resolve(key)
        tmp = p.with_name(p.name + ".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(p)

    async def delete(self, key: str) -> None:
        p = self._resolve(key)
        if p.is_file():
            p.unlink()

    async def keys(self, prefix: str = "") -> list[str]:
        found = []
        for p in sorted(self.root.iterdir()):
            if p.is_file() and p.name.endswith(_SUFFIX):
                key = unquote(p.name[: -len(_SUFFIX)])
                if key.startswith(prefix):
                    found.append(key)
        return found

    def __repr__(self) -> str:
        return f"FilesystemStateStore(root={self.root!r})"
