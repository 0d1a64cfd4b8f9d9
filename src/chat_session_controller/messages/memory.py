"""In-memory message repository.

Keeps each session's history in a Python list guarded by ``asyncio.Lock``.
All data is lost when the process exits.

Classes
-------
- InMemoryMessageRepository  — list-backed ephemeral repository
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime

from chat_session_controller.messages.repository import (
    MessageNotFoundError,
    MessageRepository,
)
from chat_session_controller.session.state import Message, sort_messages


class InMemoryMessageRepository(MessageRepository):
    """Ephemeral repository keyed by session id.

    Parameters
    ----------
    id_factory:
        Optional callable producing the "backend" id assigned to each
        appended message.  When omitted the client id is kept.
    """

    def __init__(self, id_factory: Callable[[], str] | None = None) -> None:
        self._histories: dict[str, list[Message]] = {}
        self._id_factory = id_factory
        self._lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # MessageRepository interface
    # ------------------------------------------------------------------

    async def fetch_page(
        self,
        session_id: str,
        limit: int,
        before: datetime | None = None,
    ) -> list[Message]:
        async with self._lock:
            history = sort_messages(self._histories.get(session_id, []))
        if before is not None:
            history = [m for m in history if m.timestamp < before]
        if limit <= 0:
            return []
        return [m.model_copy() for m in history[-limit:]]

    async def append(self, session_id: str, message: Message) -> Message:
        confirmed = message.model_copy()
        if self._id_factory is not None:
            confirmed.message_id = self._id_factory()
        async with self._lock:
            self._histories.setdefault(session_id, []).append(confirmed)
        return confirmed.model_copy()

    async def update(self, session_id: str, message: Message) -> Message:
        async with self._lock:
            history = self._histories.get(session_id, [])
            for index, stored in enumerate(history):
                if stored.message_id == message.message_id:
                    history[index] = message.model_copy()
                    return message.model_copy()
        raise MessageNotFoundError(session_id, message.message_id)

    async def search(self, session_id: str, query: str) -> list[Message]:
        needle = query.casefold()
        async with self._lock:
            history = sort_messages(self._histories.get(session_id, []))
        return [m.model_copy() for m in history if needle in m.text.casefold()]

    async def clear(self, session_id: str) -> None:
        async with self._lock:
            self._histories.pop(session_id, None)

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def count(self, session_id: str) -> int:
        """Return the number of stored messages for ``session_id``."""
        return len(self._histories.get(session_id, []))

    def __repr__(self) -> str:
        return f"InMemoryMessageRepository(sessions={len(self._histories)})"


__all__ = ["InMemoryMessageRepository"]
