"""Conversation state variants.

``ConversationState`` is a closed union: exactly one variant is active at a
time and it is the single source of truth for the presentation layer.
Consumers branch on it exhaustively, ending with ``assert_never`` so that a
new variant fails type checking everywhere it is not handled.

Classes
-------
- Uninitialized  — nothing resolved yet
- Loading        — a session load, switch, or creation is in flight
- Ready          — steady state for normal chat
- Recording      — voice capture in progress
- Failed         — the triggering load failed; a retry re-enters Loading
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from chat_session_controller.session.state import Message


@dataclass(frozen=True)
class Uninitialized:
    pass


@dataclass(frozen=True)
class Loading:
    session_id: str | None = None


@dataclass(frozen=True)
class Ready:
    """Steady chat state.

    Parameters
    ----------
    messages:
        Messages in display order.
    session_id:
        Current backend session, or None before the first send.
    is_typing:
        True while at least one send awaits its reply.
    is_recording:
        Mirrors the recorder; False whenever this variant is active.
    is_playing_voice:
        True while a voice message plays.
    is_playing_tts:
        True while text-to-speech plays.
    quick_suggestions:
        Suggestion texts in the current language.
    search_results:
        Matches of the last search, or None when no search is active.
    language:
        Current language code.
    has_more_history:
        True when older messages can be loaded.
    queued_count:
        Number of messages waiting in the offline queue.
    is_online:
        False while connectivity is lost; sends are queued instead.
    """

    messages: tuple[Message, ...] = ()
    session_id: str | None = None
    is_typing: bool = False
    is_recording: bool = False
    is_playing_voice: bool = False
    is_playing_tts: bool = False
    quick_suggestions: tuple[str, ...] = ()
    search_results: tuple[Message, ...] | None = None
    language: str = "en"
    has_more_history: bool = False
    queued_count: int = 0
    is_online: bool = True

    def find(self, message_id: str) -> Message | None:
        for message in self.messages:
            if message.message_id == message_id:
                return message
        return None


@dataclass(frozen=True)
class Recording:
    is_recording: bool = True
    elapsed: float = 0.0
    waveform: tuple[float, ...] = ()


@dataclass(frozen=True)
class Failed:
    message: str
    retryable: bool = True


ConversationState = Union[Uninitialized, Loading, Ready, Recording, Failed]

__all__ = [
    "ConversationState",
    "Failed",
    "Loading",
    "Ready",
    "Recording",
    "Uninitialized",
]
