"""Quickstart wiring for chat-session-controller.

Example
-------
::

    from chat_session_controller import SendMessage, create_controller

    controller = create_controller()
    controller.dispatch(SendMessage("Hello"))
    await controller.wait_idle()
    print(controller.state)

"""
from __future__ import annotations

from chat_session_controller.audio.base import AudioRecorder, SpeechPlayer
from chat_session_controller.config import ControllerConfig
from chat_session_controller.gateway.base import BackendGateway
from chat_session_controller.machine.controller import ConversationStateMachine
from chat_session_controller.messages.repository import MessageRepository
from chat_session_controller.session.exporter import HistoryExporter
from chat_session_controller.storage.base import KeyValueStore


def create_controller(
    config: ControllerConfig | None = None,
    gateway: BackendGateway | None = None,
    repository: MessageRepository | None = None,
    store: KeyValueStore | None = None,
    recorder: AudioRecorder | None = None,
    player: SpeechPlayer | None = None,
    exporter: HistoryExporter | None = None,
) -> ConversationStateMachine:
    """Assemble a controller, defaulting every collaborator to an in-memory one.

    Parameters
    ----------
    config:
        Settings; ``ControllerConfig()`` when omitted.
    gateway:
        Backend; an ``InMemoryGateway`` when omitted.
    repository:
        Message history; an ``InMemoryMessageRepository`` when omitted.
    store:
        Key-value store for the last-session pointer; in-memory when omitted.
    recorder:
        Microphone capture; a ``SimulatedRecorder`` when omitted.
    player:
        Playback; a ``SimulatedPlayer`` when omitted.
    exporter:
        Export writer; a ``HistoryExporter`` into ``config.export_dir`` when
        omitted.

    Returns
    -------
    ConversationStateMachine
        A controller in the ``Uninitialized`` state.
    """
    from chat_session_controller.audio.simulated import SimulatedPlayer, SimulatedRecorder
    from chat_session_controller.gateway.memory import InMemoryGateway
    from chat_session_controller.messages.memory import InMemoryMessageRepository
    from chat_session_controller.session.lifecycle import SessionLifecycleManager
    from chat_session_controller.session.offline_queue import OfflineQueue
    from chat_session_controller.session.store import SessionStore
    from chat_session_controller.storage.memory import InMemoryKeyValueStore

    config = config or ControllerConfig()
    gateway = gateway if gateway is not None else InMemoryGateway()
    repository = repository if repository is not None else InMemoryMessageRepository()
    store = store if store is not None else InMemoryKeyValueStore()

    lifecycle = SessionLifecycleManager(
        gateway=gateway,
        repository=repository,
        session_store=SessionStore(store, last_session_key=config.last_session_key),
        offline_queue=OfflineQueue(
            max_attempts=config.max_send_attempts,
            max_age=config.offline_max_age,
        ),
        page_size=config.page_size,
    )
    return ConversationStateMachine(
        lifecycle=lifecycle,
        gateway=gateway,
        repository=repository,
        recorder=recorder if recorder is not None else SimulatedRecorder(),
        player=player if player is not None else SimulatedPlayer(),
        exporter=exporter if exporter is not None else HistoryExporter(config.export_dir),
        language=config.default_language,
        tick_seconds=config.recording_tick_seconds,
        waveform_bars=config.waveform_bars,
        signal_buffer=config.signal_buffer,
    )


__all__ = ["create_controller"]
