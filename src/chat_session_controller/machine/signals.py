"""One-shot signals emitted next to the state.

Signals report events the presentation layer reacts to once (a toast, a
share sheet).  They are queued and delivered at most once; re-rendering
the state never replays them.

Classes
-------
- ExportSuccess          — history written to ``path``
- OfflineQueueProcessed  — a flush pass delivered ``count`` messages
- MessageSendFailed      — one send failed; the message stays in the list
- IntentRejected         — an intent failed validation or a precondition
- OperationFailed        — a non-load operation failed
- SignalChannel          — bounded FIFO delivery of signals
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Union

logger = logging.getLogger(__name__)

DEFAULT_SIGNAL_BUFFER = 256


@dataclass(frozen=True)
class ExportSuccess:
    path: str


@dataclass(frozen=True)
class OfflineQueueProcessed:
    count: int
    abandoned: int = 0


@dataclass(frozen=True)
class MessageSendFailed:
    message_id: str
    reason: str
    retryable: bool
    queued: bool


@dataclass(frozen=True)
class IntentRejected:
    intent: str
    reason: str


@dataclass(frozen=True)
class OperationFailed:
    operation: str
    reason: str


Signal = Union[ExportSuccess, OfflineQueueProcessed, MessageSendFailed, IntentRejected, OperationFailed]


class SignalChannel:
    """Bounded FIFO of signals; each signal is handed out exactly once.

    Parameters
    ----------
    maxsize:
        Number of undelivered signals kept.  When a presentation layer does
        not drain the channel the oldest signal is dropped to make room.
    """

    def __init__(self, maxsize: int = DEFAULT_SIGNAL_BUFFER) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self._queue: asyncio.Queue[Signal] = asyncio.Queue(maxsize=maxsize)
        self._dropped = 0

    @property
    def dropped(self) -> int:
        """Number of signals discarded because nobody drained the channel."""
        return self._dropped

    def emit(self, signal: Signal) -> None:
        if self._queue.full():
            stale = self._queue.get_nowait()
            self._dropped += 1
            logger.warning("SignalChannel: full, dropped undelivered %s", type(stale).__name__)
        self._queue.put_nowait(signal)

    async def next(self) -> Signal:
        """Wait for and return the next signal."""
        return await self._queue.get()

    def drain(self) -> list[Signal]:
        """Return every pending signal without waiting."""
        signals: list[Signal] = []
        while not self._queue.empty():
            signals.append(self._queue.get_nowait())
        return signals

    def __len__(self) -> int:
        return self._queue.qsize()
