"""In-memory key-value store.

Stores values in a plain Python dict guarded by ``asyncio.Lock``.  All data
is lost when the process exits.  Primarily useful for tests and the demo CLI.

Classes
-------
- InMemoryKeyValueStore  — dict-backed ephemeral store
"""
from __future__ import annotations

import asyncio

from chat_session_controller.storage.base import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Ephemeral in-process store backed by a Python dict.

    Parameters
    ----------
    initial_data:
        Optional pre-populated mapping.  A shallow copy is taken so the
        caller's dict is not mutated.
    """

    def __init__(self, initial_data: dict[str, str] | None = None) -> None:
        self._store: dict[str, str] = dict(initial_data or {})
        self._lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # KeyValueStore interface
    # ------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._store.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._store[key] = value

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key not in self._store:
                return False
            del self._store[key]
            return True

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def keys(self) -> list[str]:
        """Return all stored keys in insertion order."""
        return list(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"InMemoryKeyValueStore(keys={len(self._store)})"


__all__ = ["InMemoryKeyValueStore"]
