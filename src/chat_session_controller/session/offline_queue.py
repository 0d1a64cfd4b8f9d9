"""FIFO queue of sends that failed with a network error.

Classes
-------
- OfflineQueue  — ordered store of ``OfflineQueueEntry`` with retry limits
- FlushReport   — outcome of one flush pass
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from chat_session_controller.session.state import Message, OfflineQueueEntry


@dataclass
class FlushReport:
    """Outcome of one sequential flush pass.

    Parameters
    ----------
    sent:
        Entries delivered during the pass, in delivery order.
    abandoned:
        Entries dropped because they exceeded the retry limit, expired, or
        failed with a terminal error.
    stopped_on:
        The entry that failed and blocked the rest of the queue, if any.
    """

    sent: list[OfflineQueueEntry] = field(default_factory=list)
    abandoned: list[OfflineQueueEntry] = field(default_factory=list)
    stopped_on: OfflineQueueEntry | None = None

    @property
    def attempted(self) -> bool:
        return bool(self.sent or self.abandoned or self.stopped_on)


class OfflineQueue:
    """Ordered queue of messages awaiting re-delivery.

    Entries are delivered strictly in the order they were enqueued.  An
    entry is abandoned once it has failed ``max_attempts`` times or has been
    waiting longer than ``max_age``.

    Parameters
    ----------
    max_attempts:
        Failed attempts after which an entry is abandoned.
    max_age:
        Maximum time an entry may wait before it is abandoned.
    """

    def __init__(self, max_attempts: int = 3, max_age: timedelta = timedelta(days=7)) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.max_age = max_age
        self._entries: list[OfflineQueueEntry] = []

    def enqueue(
        self, message: Message, session_id: str | None, error: str = ""
    ) -> OfflineQueueEntry:
        """Append ``message`` to the tail of the queue and return the entry.

        A message already queued under the same ``message_id`` is updated in
        place instead of being queued twice.
        """
        for entry in self._entries:
            if entry.message.message_id == message.message_id:
                entry.message = message
                entry.attempts += 1
                entry.last_error = error
                return entry
        entry = OfflineQueueEntry(message=message, session_id=session_id, last_error=error)
        self._entries.append(entry)
        return entry

    def peek(self) -> OfflineQueueEntry | None:
        return self._entries[0] if self._entries else None

    def remove(self, entry_id: str) -> OfflineQueueEntry | None:
        for index, entry in enumerate(self._entries):
            if entry.entry_id == entry_id:
                return self._entries.pop(index)
        return None

    def remove_message(self, message_id: str) -> OfflineQueueEntry | None:
        """Drop the entry holding ``message_id``, if queued."""
        for entry in self._entries:
            if entry.message.message_id == message_id:
                return self.remove(entry.entry_id)
        return None

    def record_failure(self, entry: OfflineQueueEntry, error: str) -> None:
        entry.attempts += 1
        entry.last_error = error

    def should_abandon(self, entry: OfflineQueueEntry, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return entry.attempts >= self.max_attempts or entry.is_expired(now, self.max_age)

    def entries(self) -> list[OfflineQueueEntry]:
        """Return a snapshot of the queue, head first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"OfflineQueue(entries={len(self._entries)}, max_attempts={self.max_attempts})"


__all__ = ["FlushReport", "OfflineQueue"]
