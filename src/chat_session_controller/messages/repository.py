"""Abstract base class for message repositories.

A repository owns the persisted message history of every session.  It is
write-through: ``append`` returns the backend-confirmed copy of the
message, which may carry a corrected id or timestamp.

Classes
-------
- PersistenceError      — a write to the repository failed
- MessageNotFoundError  — the addressed message does not exist
- MessageRepository     — abstract base for all repositories
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from chat_session_controller.session.state import Message


class PersistenceError(RuntimeError):
    """Raised when a message could not be written to the repository."""

    def __init__(self, session_id: str, reason: str) -> None:
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Could not persist message for session {session_id!r}: {reason}")


class MessageNotFoundError(KeyError):
    """Raised when a message id is not present in a session's history."""

    def __init__(self, session_id: str, message_id: str) -> None:
        self.session_id = session_id
        self.message_id = message_id
        super().__init__(f"Message {message_id!r} not found in session {session_id!r}.")


class MessageRepository(ABC):
    """Protocol for paginated, write-through message persistence."""

    @abstractmethod
    async def fetch_page(
        self,
        session_id: str,
        limit: int,
        before: datetime | None = None,
    ) -> list[Message]:
        """Return one page of history for ``session_id``.

        Pages are walked most-recent-first: the page holds the ``limit``
        newest messages strictly older than ``before`` (or the newest
        overall when ``before`` is None), returned oldest to newest.
        Calling twice with the same cursor returns the same page.

        Parameters
        ----------
        session_id:
            Session whose history is read.
        limit:
            Maximum number of messages to return.
        before:
            Exclusive upper bound on ``timestamp``.

        Returns
        -------
        list[Message]
            Chronologically ordered messages.
        """

    @abstractmethod
    async def append(self, session_id: str, message: Message) -> Message:
        """Persist ``message`` at the end of the session's history.

        Returns
        -------
        Message
            The confirmed message.

        Raises
        ------
        PersistenceError
            If the write failed.
        """

    @abstractmethod
    async def update(self, session_id: str, message: Message) -> Message:
        """Replace the stored message with the same ``message_id``.

        Raises
        ------
        MessageNotFoundError
            If no such message is stored for ``session_id``.
        PersistenceError
            If the write failed.
        """

    @abstractmethod
    async def search(self, session_id: str, query: str) -> list[Message]:
        """Return messages of ``session_id`` whose text contains ``query``.

        Matching is case-insensitive.  Results are chronologically ordered.
        """

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        """Remove every stored message of ``session_id``."""


__all__ = ["MessageNotFoundError", "MessageRepository", "PersistenceError"]
