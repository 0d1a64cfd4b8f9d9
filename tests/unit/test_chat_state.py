"""Unit tests for chat_session_controller.session.state."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from chat_session_controller.session.state import (
    Message,
    MessageSender,
    MessageStatus,
    MessageType,
    OfflineQueueEntry,
    PersonalizedSuggestions,
    QuickSuggestion,
    Session,
    UserContext,
    derive_title,
    sort_messages,
)


def _user(text: str = "hi", **kwargs: object) -> Message:
    return Message(text=text, sender=MessageSender.USER, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Message
# ---------------------------------------------------------------------------


class TestMessage:
    def test_defaults(self) -> None:
        message = _user()
        assert message.status is MessageStatus.SENT
        assert message.message_type is MessageType.TEXT
        assert message.suggestions == []
        assert message.is_favorite is False
        assert message.timestamp.tzinfo is not None

    def test_ids_are_unique(self) -> None:
        assert _user().message_id != _user().message_id

    def test_is_user(self) -> None:
        assert _user().is_user
        assert not Message(text="x", sender=MessageSender.ASSISTANT).is_user

    def test_mark_pending_clears_error(self) -> None:
        failed = _user().mark_failed("offline")
        pending = failed.mark_pending()
        assert pending.status is MessageStatus.PENDING
        assert pending.error is None
        assert failed.status is MessageStatus.FAILED

    def test_mark_sent_adopts_backend_id(self) -> None:
        message = _user(status=MessageStatus.PENDING)
        sent = message.mark_sent("msg-42")
        assert sent.message_id == "msg-42"
        assert sent.status is MessageStatus.SENT

    def test_mark_sent_keeps_client_id_without_backend_id(self) -> None:
        message = _user(status=MessageStatus.PENDING)
        assert message.mark_sent().message_id == message.message_id

    def test_mark_failed_records_error(self) -> None:
        failed = _user().mark_failed("network down")
        assert failed.status is MessageStatus.FAILED
        assert failed.error == "network down"

    def test_json_round_trip(self) -> None:
        message = _user("voice", message_type=MessageType.VOICE, audio_path="/tmp/a.aac")
        restored = Message.model_validate_json(message.model_dump_json())
        assert restored == message


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class TestSession:
    def test_touch_bumps_count_and_activity(self) -> None:
        session = Session(session_id="s1")
        before = session.last_activity_at
        session.touch(2)
        assert session.message_count == 2
        assert session.last_activity_at >= before

    def test_negative_count_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Session(session_id="s1", message_count=-1)


# ---------------------------------------------------------------------------
# OfflineQueueEntry
# ---------------------------------------------------------------------------


class TestOfflineQueueEntry:
    def test_starts_with_one_attempt(self) -> None:
        entry = OfflineQueueEntry(message=_user())
        assert entry.attempts == 1
        assert entry.session_id is None

    def test_is_expired(self) -> None:
        entry = OfflineQueueEntry(message=_user())
        now = entry.enqueued_at + timedelta(days=8)
        assert entry.is_expired(now, timedelta(days=7))
        assert not entry.is_expired(entry.enqueued_at, timedelta(days=7))


# ---------------------------------------------------------------------------
# Suggestions and user context
# ---------------------------------------------------------------------------


class TestSuggestions:
    def test_translate_falls_back_to_text(self) -> None:
        suggestion = QuickSuggestion(text="Make a quiz", translations={"hi": "प्रश्नोत्तरी बनाएं"})
        assert suggestion.translate("hi") == "प्रश्नोत्तरी बनाएं"
        assert suggestion.translate("te") == "Make a quiz"

    def test_texts_appends_follow_ups(self) -> None:
        suggestions = PersonalizedSuggestions(
            suggestions=[QuickSuggestion(text="Tell a story")],
            follow_ups=["Make it shorter"],
        )
        assert suggestions.texts("en") == ["Tell a story", "Make it shorter"]

    def test_user_context_as_send_context(self) -> None:
        context = UserContext(
            user_id="u1",
            preferences={"grade": "5"},
            attributes={"grade": "4", "school": "north"},
        )
        assert context.as_send_context() == {"grade": "5", "school": "north", "user_id": "u1"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestDeriveTitle:
    def test_first_four_words(self) -> None:
        assert derive_title("Create a lesson plan for maths") == "Create a lesson plan"

    def test_truncates_to_thirty_characters(self) -> None:
        title = derive_title("Photosynthesis explanation requirements comprehensively")
        assert title.endswith("...")
        assert len(title) == 33

    def test_empty_text_uses_timestamp(self) -> None:
        now = datetime(2024, 3, 9, 14, 5, tzinfo=timezone.utc)
        assert derive_title("   ", now=now) == "Chat 9/3 14:05"


class TestSortMessages:
    def test_orders_by_timestamp_and_keeps_ties_stable(self) -> None:
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        late = _user("late", timestamp=base + timedelta(seconds=5))
        first_tie = _user("a", timestamp=base)
        second_tie = _user("b", timestamp=base)
        ordered = sort_messages([late, first_tie, second_tie])
        assert [m.text for m in ordered] == ["a", "b", "late"]
