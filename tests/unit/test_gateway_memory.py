"""Unit tests for chat_session_controller.gateway.memory.InMemoryGateway."""
from __future__ import annotations

import pytest

from chat_session_controller.gateway.base import FailureKind, GatewayError
from chat_session_controller.gateway.memory import InMemoryGateway, canned_reply
from chat_session_controller.session.state import MessageSender, Session


class TestCannedReply:
    def test_topic_is_picked_from_keywords(self) -> None:
        assert "lesson plan" in canned_reply("Help me plan maths")
        assert "quiz" in canned_reply("A short TEST please")
        assert "story" in canned_reply("Tell a story")

    def test_unknown_language_falls_back_to_english(self) -> None:
        assert canned_reply("hello", "fr") == canned_reply("hello", "en")

    def test_hindi_reply_differs(self) -> None:
        assert canned_reply("hello", "hi") != canned_reply("hello", "en")


class TestSend:
    @pytest.mark.asyncio
    async def test_send_without_session_creates_one(self) -> None:
        gateway = InMemoryGateway()
        result = await gateway.send(None, "Create a lesson plan for fractions")
        assert result.session_id in gateway.sessions
        assert gateway.sessions[result.session_id].title == "Create a lesson plan"
        assert gateway.calls["session_created"] == 1
        assert result.reply.sender is MessageSender.ASSISTANT
        assert result.user_message_id is not None

    @pytest.mark.asyncio
    async def test_session_title_from_context(self) -> None:
        gateway = InMemoryGateway()
        result = await gateway.send(None, "hi", {"session_title": "Greetings"})
        assert gateway.sessions[result.session_id].title == "Greetings"

    @pytest.mark.asyncio
    async def test_send_to_existing_session_touches_it(self) -> None:
        gateway = InMemoryGateway()
        gateway.add_session(Session(session_id="s1"))
        await gateway.send("s1", "hi")
        assert gateway.sessions["s1"].message_count == 2
        assert gateway.sent_texts == ["hi"]

    @pytest.mark.asyncio
    async def test_context_language_wins(self) -> None:
        gateway = InMemoryGateway()
        gateway.add_session(Session(session_id="s1", language="en"))
        result = await gateway.send("s1", "Make a quiz", {"language": "te"})
        assert result.reply.text == canned_reply("Make a quiz", "te")
        assert result.reply.language == "te"

    @pytest.mark.asyncio
    async def test_unknown_session(self) -> None:
        with pytest.raises(GatewayError) as excinfo:
            await InMemoryGateway().send("ghost", "hi")
        assert excinfo.value.kind is FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_scripted_failures_are_consumed_in_order(self) -> None:
        gateway = InMemoryGateway()
        gateway.fail_next(FailureKind.NETWORK)
        gateway.fail_next(FailureKind.AUTH)
        with pytest.raises(GatewayError) as first:
            await gateway.send(None, "a")
        with pytest.raises(GatewayError) as second:
            await gateway.send(None, "b")
        await gateway.send(None, "c")
        assert first.value.retryable is True
        assert second.value.retryable is False
        assert gateway.sent_texts == ["c"]
        assert gateway.calls["send"] == 3


class TestSessions:
    @pytest.mark.asyncio
    async def test_create_and_get(self) -> None:
        gateway = InMemoryGateway()
        created = await gateway.create_session("Science")
        fetched = await gateway.get_session(created.session_id)
        assert fetched == created

    @pytest.mark.asyncio
    async def test_get_unknown(self) -> None:
        with pytest.raises(GatewayError) as excinfo:
            await InMemoryGateway().get_session("ghost")
        assert excinfo.value.kind is FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        gateway = InMemoryGateway()
        created = await gateway.create_session("Science")
        await gateway.delete_session(created.session_id)
        assert gateway.sessions == {}
        with pytest.raises(GatewayError):
            await gateway.delete_session(created.session_id)

    @pytest.mark.asyncio
    async def test_list_sessions_limit(self) -> None:
        gateway = InMemoryGateway()
        for title in ("a", "b", "c"):
            await gateway.create_session(title)
        assert len(await gateway.list_sessions(limit=2)) == 2


class TestSuggestionsAndContext:
    @pytest.mark.asyncio
    async def test_category_filter(self) -> None:
        suggestions = await InMemoryGateway().get_suggestions(None, "assessment")
        assert [s.text for s in suggestions.suggestions] == ["Make a quiz"]

    @pytest.mark.asyncio
    async def test_all_suggestions(self) -> None:
        suggestions = await InMemoryGateway().get_suggestions("s1")
        assert suggestions.session_id == "s1"
        assert len(suggestions.suggestions) == 3

    @pytest.mark.asyncio
    async def test_user_context(self) -> None:
        context = await InMemoryGateway().get_user_context()
        assert context.user_id == "local-user"


class TestGatewayError:
    def test_default_message(self) -> None:
        err = GatewayError(FailureKind.SERVER_REJECTED)
        assert err.message == "server rejected"
        assert str(err) == "server_rejected: server rejected"
