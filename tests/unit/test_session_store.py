"""Unit tests for chat_session_controller.session.store.SessionStore."""
from __future__ import annotations

import pytest

from chat_session_controller.session.state import Session
from chat_session_controller.session.store import SessionStore
from chat_session_controller.storage.memory import InMemoryKeyValueStore


@pytest.fixture()
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def store(kv: InMemoryKeyValueStore) -> SessionStore:
    return SessionStore(kv)


class TestLastSessionPointer:
    @pytest.mark.asyncio
    async def test_round_trip(self, store: SessionStore) -> None:
        await store.set_last_session_id("sess-1")
        assert await store.get_last_session_id() == "sess-1"

    @pytest.mark.asyncio
    async def test_absent_pointer_is_none(self, store: SessionStore) -> None:
        assert await store.get_last_session_id() is None

    @pytest.mark.asyncio
    async def test_clear(self, store: SessionStore) -> None:
        await store.set_last_session_id("sess-1")
        assert await store.clear_last_session_id() is True
        assert await store.get_last_session_id() is None

    @pytest.mark.asyncio
    async def test_custom_key(self, kv: InMemoryKeyValueStore) -> None:
        store = SessionStore(kv, last_session_key="pointer")
        await store.set_last_session_id("sess-9")
        assert kv.keys() == ["pointer"]


class TestSessionMetadata:
    @pytest.mark.asyncio
    async def test_save_and_load(self, store: SessionStore, kv: InMemoryKeyValueStore) -> None:
        session = Session(session_id="sess-1", title="Fractions", message_count=4)
        await store.save_session(session)
        assert "session:sess-1" in kv.keys()
        assert await store.load_session("sess-1") == session

    @pytest.mark.asyncio
    async def test_load_missing(self, store: SessionStore) -> None:
        assert await store.load_session("ghost") is None

    @pytest.mark.asyncio
    async def test_forget(self, store: SessionStore) -> None:
        await store.save_session(Session(session_id="sess-1"))
        assert await store.forget_session("sess-1") is True
        assert await store.load_session("sess-1") is None
