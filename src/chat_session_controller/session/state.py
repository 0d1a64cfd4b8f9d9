"""Conversation domain models.

All types are Pydantic BaseModel subclasses to enable runtime validation,
JSON serialisation, and cheap copying via ``model_copy``.

Classes
-------
- MessageSender          — enum: USER, ASSISTANT
- MessageStatus          — enum: PENDING, SENT, FAILED
- MessageType            — enum: TEXT, VOICE
- Message                — one chat message, optimistic or confirmed
- Session                — backend session metadata
- OfflineQueueEntry      — a failed send awaiting a retry
- QuickSuggestion        — a canned prompt with translations
- PersonalizedSuggestions — suggestions fetched for one session
- UserContext            — opaque per-user data passed along with sends
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageSender(str, Enum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(str, Enum):
    """Delivery state of a message.

    Optimistic user messages start as PENDING and are reconciled to SENT or
    FAILED once the backend answers.  Assistant replies are always SENT.
    """

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class MessageType(str, Enum):
    TEXT = "text"
    VOICE = "voice"


class Message(BaseModel):
    """A single chat message.

    Parameters
    ----------
    message_id:
        Client-generated identifier for optimistic entries; replaced by the
        backend-issued id once the message is confirmed.
    text:
        Message body.  May be empty for a voice message with no transcript.
    sender:
        ``MessageSender.USER`` or ``MessageSender.ASSISTANT``.
    timestamp:
        Creation time (UTC).
    status:
        Delivery state (see ``MessageStatus``).
    message_type:
        ``TEXT`` or ``VOICE``.
    audio_path:
        Path to the recorded audio for voice messages.
    audio_duration:
        Recording length in seconds.
    suggestions:
        Ordered follow-up suggestions attached to an assistant reply.
    is_favorite:
        User-toggled favourite flag.
    is_saved_as_faq:
        Set once the message has been saved as an FAQ entry.
    language:
        Language code the message was written in.
    error:
        Last failure reason when ``status`` is FAILED.
    """

    message_id: str = Field(default_factory=lambda: str(uuid4()))
    text: str
    sender: MessageSender
    timestamp: datetime = Field(default_factory=_utcnow)
    status: MessageStatus = MessageStatus.SENT
    message_type: MessageType = MessageType.TEXT
    audio_path: str | None = None
    audio_duration: float | None = None
    suggestions: list[str] = Field(default_factory=list)
    is_favorite: bool = False
    is_saved_as_faq: bool = False
    language: str | None = None
    error: str | None = None

    model_config = {"frozen": False}

    @property
    def is_user(self) -> bool:
        return self.sender is MessageSender.USER

    def mark_pending(self) -> Message:
        """Return a copy with status PENDING and the error cleared."""
        return self.model_copy(update={"status": MessageStatus.PENDING, "error": None})

    def mark_sent(self, message_id: str | None = None) -> Message:
        """Return a confirmed copy, optionally adopting a backend id."""
        update: dict[str, object] = {"status": MessageStatus.SENT, "error": None}
        if message_id:
            update["message_id"] = message_id
        return self.model_copy(update=update)

    def mark_failed(self, error: str) -> Message:
        """Return a copy with status FAILED and ``error`` recorded."""
        return self.model_copy(update={"status": MessageStatus.FAILED, "error": error})


class Session(BaseModel):
    """Metadata for one backend chat session.

    A session with an id exists in the backend only after a first message was
    sent through it, or after an explicit "new chat" action.

    Parameters
    ----------
    session_id:
        Backend-issued identifier.
    title:
        Human-readable title.
    created_at:
        Creation timestamp (UTC).
    last_activity_at:
        Timestamp of the last send (UTC).
    message_count:
        Number of messages exchanged in the session.
    language:
        Preferred language code for the session.
    """

    session_id: str
    title: str = "New Chat"
    created_at: datetime = Field(default_factory=_utcnow)
    last_activity_at: datetime = Field(default_factory=_utcnow)
    message_count: int = Field(default=0, ge=0)
    language: str = "en"

    model_config = {"frozen": False}

    def touch(self, added_messages: int = 1) -> None:
        """Record activity: bump ``last_activity_at`` and the message count."""
        self.message_count += added_messages
        self.last_activity_at = _utcnow()


class OfflineQueueEntry(BaseModel):
    """A user message whose send failed with a network error.

    Parameters
    ----------
    entry_id:
        Queue-local identifier.
    message:
        The message to re-send.
    session_id:
        Target session, or None when the original send was meant to create
        the session lazily.
    attempts:
        Number of failed send attempts so far.
    last_error:
        Reason of the most recent failure.
    enqueued_at:
        When the entry was first queued (UTC).
    """

    entry_id: str = Field(default_factory=lambda: str(uuid4()))
    message: Message
    session_id: str | None = None
    attempts: int = Field(default=1, ge=0)
    last_error: str = ""
    enqueued_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": False}

    def is_expired(self, now: datetime, max_age: timedelta) -> bool:
        return now - self.enqueued_at > max_age


class QuickSuggestion(BaseModel):
    """A canned prompt the user can send with one tap."""

    suggestion_id: str = Field(default_factory=lambda: str(uuid4()))
    text: str
    category: str = ""
    translations: dict[str, str] = Field(default_factory=dict)

    def translate(self, language: str) -> str:
        return self.translations.get(language, self.text)


class PersonalizedSuggestions(BaseModel):
    """Suggestions computed by the backend for one session."""

    session_id: str | None = None
    suggestions: list[QuickSuggestion] = Field(default_factory=list)
    follow_ups: list[str] = Field(default_factory=list)

    def texts(self, language: str) -> list[str]:
        """Return suggestion texts in ``language`` followed by follow-ups."""
        return [s.translate(language) for s in self.suggestions] + list(self.follow_ups)


class UserContext(BaseModel):
    """Opaque, read-mostly data about the user, forwarded with each send."""

    user_id: str = ""
    preferences: dict[str, str] = Field(default_factory=dict)
    attributes: dict[str, str] = Field(default_factory=dict)

    def as_send_context(self) -> dict[str, str]:
        context = dict(self.attributes)
        context.update(self.preferences)
        if self.user_id:
            context["user_id"] = self.user_id
        return context


def sort_messages(messages: list[Message]) -> list[Message]:
    """Order messages by timestamp, keeping insertion order for ties."""
    return sorted(messages, key=lambda message: message.timestamp)


def derive_title(text: str | None, now: datetime | None = None) -> str:
    """Build a session title from the first message of a conversation.

    Takes the first four words, truncated to 30 characters.  Falls back to a
    ``Chat <day>/<month> <hh>:<mm>`` title when ``text`` is empty.
    """
    if not text or not text.strip():
        now = now or _utcnow()
        return f"Chat {now.day}/{now.month} {now.hour}:{now.minute:02d}"
    words = " ".join(text.split()[:4])
    return f"{words[:30]}..." if len(words) > 30 else words
