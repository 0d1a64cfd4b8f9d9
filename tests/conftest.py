"""Shared fixtures for chat-session-controller tests.

``ScriptedGateway`` extends the in-memory gateway with per-text gates and
failures so tests can decide when, and whether, each backend call returns.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from chat_session_controller.audio.simulated import SimulatedPlayer, SimulatedRecorder
from chat_session_controller.gateway.base import FailureKind, GatewayError, SendResult
from chat_session_controller.gateway.memory import InMemoryGateway
from chat_session_controller.machine.controller import ConversationStateMachine
from chat_session_controller.messages.memory import InMemoryMessageRepository
from chat_session_controller.session.exporter import HistoryExporter
from chat_session_controller.session.lifecycle import SessionLifecycleManager
from chat_session_controller.session.offline_queue import OfflineQueue
from chat_session_controller.session.state import Session
from chat_session_controller.session.store import SessionStore
from chat_session_controller.storage.base import KeyValueStore
from chat_session_controller.storage.memory import InMemoryKeyValueStore


class ScriptedGateway(InMemoryGateway):
    """In-memory gateway whose calls can be held open or made to fail."""

    def __init__(self, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.send_gates: dict[str, asyncio.Event] = {}
        self.session_gates: dict[str, asyncio.Event] = {}
        self.failing_texts: dict[str, FailureKind] = {}
        self.failing_sessions: dict[str, FailureKind] = {}
        self.waiting: list[str] = []

    def hold(self, text: str) -> asyncio.Event:
        """Block sends of ``text`` until the returned event is set."""
        gate = asyncio.Event()
        self.send_gates[text] = gate
        return gate

    def hold_session(self, session_id: str) -> asyncio.Event:
        """Block ``get_session(session_id)`` until the returned event is set."""
        gate = asyncio.Event()
        self.session_gates[session_id] = gate
        return gate

    async def send(
        self,
        session_id: str | None,
        text: str,
        context: dict[str, str] | None = None,
    ) -> SendResult:
        gate = self.send_gates.get(text)
        if gate is not None:
            self.waiting.append(text)
            await gate.wait()
        kind = self.failing_texts.get(text)
        if kind is not None:
            self.calls["send"] += 1
            raise GatewayError(kind, f"cannot deliver {text!r}")
        return await super().send(session_id, text, context)

    async def get_session(self, session_id: str) -> Session:
        gate = self.session_gates.get(session_id)
        if gate is not None:
            self.waiting.append(session_id)
            await gate.wait()
        kind = self.failing_sessions.get(session_id)
        if kind is not None:
            raise GatewayError(kind, f"cannot fetch {session_id!r}")
        return await super().get_session(session_id)


class BrokenKeyValueStore(KeyValueStore):
    """Store whose every operation fails, like an unavailable disk."""

    async def get(self, key: str) -> str | None:
        raise OSError("storage unavailable")

    async def set(self, key: str, value: str) -> None:
        raise OSError("storage unavailable")

    async def delete(self, key: str) -> bool:
        raise OSError("storage unavailable")


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture()
def repository() -> InMemoryMessageRepository:
    return InMemoryMessageRepository()


@pytest.fixture()
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def session_store(kv_store: InMemoryKeyValueStore) -> SessionStore:
    return SessionStore(kv_store)


@pytest.fixture()
def lifecycle(
    gateway: ScriptedGateway,
    repository: InMemoryMessageRepository,
    session_store: SessionStore,
) -> SessionLifecycleManager:
    return SessionLifecycleManager(
        gateway=gateway,
        repository=repository,
        session_store=session_store,
        offline_queue=OfflineQueue(max_attempts=3),
    )


@pytest.fixture()
def recorder() -> SimulatedRecorder:
    return SimulatedRecorder(transcript="Tell me a story about the moon", seed=7)


@pytest.fixture()
def player() -> SimulatedPlayer:
    return SimulatedPlayer()


@pytest.fixture()
def exporter(tmp_path: Path) -> HistoryExporter:
    return HistoryExporter(export_dir=tmp_path / "exports")


@pytest.fixture()
def machine(
    lifecycle: SessionLifecycleManager,
    gateway: ScriptedGateway,
    repository: InMemoryMessageRepository,
    recorder: SimulatedRecorder,
    player: SimulatedPlayer,
    exporter: HistoryExporter,
) -> ConversationStateMachine:
    return ConversationStateMachine(
        lifecycle=lifecycle,
        gateway=gateway,
        repository=repository,
        recorder=recorder,
        player=player,
        exporter=exporter,
        tick_seconds=0.01,
        waveform_bars=5,
    )
