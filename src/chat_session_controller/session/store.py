"""Session metadata and "last active session" persistence.

Classes
-------
- SessionStore  — caches ``Session`` metadata and the last-session pointer
"""
from __future__ import annotations

import logging

from chat_session_controller.session.state import Session
from chat_session_controller.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

_SESSION_KEY_PREFIX = "session:"


class SessionStore:
    """Persist session metadata and the id of the last active session.

    Errors raised by the underlying ``KeyValueStore`` propagate; callers
    that treat persistence as best-effort handle them.

    Parameters
    ----------
    store:
        Key-value store used for persistence.
    last_session_key:
        Key under which the last active session id is stored.
    """

    def __init__(self, store: KeyValueStore, last_session_key: str = "last_session_id") -> None:
        self._store = store
        self._last_session_key = last_session_key

    # ------------------------------------------------------------------
    # Session metadata
    # ------------------------------------------------------------------

    async def save_session(self, session: Session) -> None:
        """Cache ``session`` metadata under ``session:<id>``."""
        await self._store.set(_SESSION_KEY_PREFIX + session.session_id, session.model_dump_json())

    async def load_session(self, session_id: str) -> Session | None:
        """Return cached metadata for ``session_id``, or None if absent."""
        raw = await self._store.get(_SESSION_KEY_PREFIX + session_id)
        if raw is None:
            return None
        return Session.model_validate_json(raw)

    async def forget_session(self, session_id: str) -> bool:
        return await self._store.delete(_SESSION_KEY_PREFIX + session_id)

    # ------------------------------------------------------------------
    # Last-session pointer
    # ------------------------------------------------------------------

    async def set_last_session_id(self, session_id: str) -> None:
        await self._store.set(self._last_session_key, session_id)
        logger.debug("SessionStore: last session set to %r", session_id)

    async def get_last_session_id(self) -> str | None:
        value = await self._store.get(self._last_session_key)
        return value or None

    async def clear_last_session_id(self) -> bool:
        return await self._store.delete(self._last_session_key)

    def __repr__(self) -> str:
        return f"SessionStore(store={self._store!r})"
