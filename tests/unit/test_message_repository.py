"""Unit tests for chat_session_controller.messages."""
from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from chat_session_controller.messages.memory import InMemoryMessageRepository
from chat_session_controller.messages.repository import MessageNotFoundError, PersistenceError
from chat_session_controller.session.state import Message, MessageSender

_BASE = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def _message(index: int) -> Message:
    return Message(
        text=f"message {index}",
        sender=MessageSender.USER if index % 2 == 0 else MessageSender.ASSISTANT,
        timestamp=_BASE + timedelta(minutes=index),
    )


class TestFetchPage:
    @pytest.mark.asyncio
    async def test_newest_page_is_oldest_to_newest(self) -> None:
        repository = InMemoryMessageRepository()
        for index in (3, 0, 4, 1, 2):
            await repository.append("s1", _message(index))
        page = await repository.fetch_page("s1", limit=2)
        assert [m.text for m in page] == ["message 3", "message 4"]

    @pytest.mark.asyncio
    async def test_walks_backwards_with_cursor(self) -> None:
        repository = InMemoryMessageRepository()
        for index in range(5):
            await repository.append("s1", _message(index))
        first = await repository.fetch_page("s1", limit=2)
        second = await repository.fetch_page("s1", limit=2, before=first[0].timestamp)
        third = await repository.fetch_page("s1", limit=2, before=second[0].timestamp)
        assert [m.text for m in second] == ["message 1", "message 2"]
        assert [m.text for m in third] == ["message 0"]

    @pytest.mark.asyncio
    async def test_same_cursor_same_page(self) -> None:
        repository = InMemoryMessageRepository()
        for index in range(4):
            await repository.append("s1", _message(index))
        cursor = _BASE + timedelta(minutes=3)
        assert await repository.fetch_page("s1", 2, cursor) == await repository.fetch_page(
            "s1", 2, cursor
        )

    @pytest.mark.asyncio
    async def test_unknown_session_and_zero_limit(self) -> None:
        repository = InMemoryMessageRepository()
        await repository.append("s1", _message(0))
        assert await repository.fetch_page("ghost", 10) == []
        assert await repository.fetch_page("s1", 0) == []


class TestAppendAndUpdate:
    @pytest.mark.asyncio
    async def test_append_returns_copy(self) -> None:
        repository = InMemoryMessageRepository()
        message = _message(0)
        stored = await repository.append("s1", message)
        assert stored == message
        assert stored is not message
        assert repository.count("s1") == 1

    @pytest.mark.asyncio
    async def test_id_factory_assigns_ids(self) -> None:
        counter = itertools.count(1)
        repository = InMemoryMessageRepository(id_factory=lambda: f"db-{next(counter)}")
        first = await repository.append("s1", _message(0))
        second = await repository.append("s1", _message(1))
        assert (first.message_id, second.message_id) == ("db-1", "db-2")

    @pytest.mark.asyncio
    async def test_update_replaces_message(self) -> None:
        repository = InMemoryMessageRepository()
        stored = await repository.append("s1", _message(0))
        await repository.update("s1", stored.model_copy(update={"is_favorite": True}))
        page = await repository.fetch_page("s1", 10)
        assert page[0].is_favorite is True

    @pytest.mark.asyncio
    async def test_update_unknown_raises(self) -> None:
        repository = InMemoryMessageRepository()
        with pytest.raises(MessageNotFoundError) as excinfo:
            await repository.update("s1", _message(0))
        assert excinfo.value.session_id == "s1"


class TestSearchAndClear:
    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self) -> None:
        repository = InMemoryMessageRepository()
        await repository.append("s1", Message(text="Plan a LESSON", sender=MessageSender.USER))
        await repository.append("s1", Message(text="Quiz time", sender=MessageSender.USER))
        found = await repository.search("s1", "lesson")
        assert [m.text for m in found] == ["Plan a LESSON"]

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        repository = InMemoryMessageRepository()
        await repository.append("s1", _message(0))
        await repository.clear("s1")
        assert repository.count("s1") == 0


class TestErrors:
    def test_persistence_error_message(self) -> None:
        err = PersistenceError("s1", "disk full")
        assert "disk full" in str(err)
        assert err.session_id == "s1"

    def test_not_found_is_key_error(self) -> None:
        assert isinstance(MessageNotFoundError("s1", "m1"), KeyError)
