"""chat-session-controller — Conversation session lifecycle and state machine.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import chat_session_controller
>>> chat_session_controller.__version__
'0.1.0'
"""
from __future__ import annotations

# Data model
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
)

# Session lifecycle
from chat_session_controller.session.store import SessionStore
from chat_session_controller.session.offline_queue import FlushReport, OfflineQueue
from chat_session_controller.session.lifecycle import (
    SessionCreationInProgressError,
    SessionLifecycleManager,
    SessionNotFoundError,
    SwitchSupersededError,
)
from chat_session_controller.session.serializer import (
    ExportDocument,
    HistorySerializer,
    SchemaVersionError,
)
from chat_session_controller.session.exporter import HistoryExporter

# Storage backends
from chat_session_controller.storage.base import KeyValueStore
from chat_session_controller.storage.memory import InMemoryKeyValueStore
from chat_session_controller.storage.filesystem import FilesystemKeyValueStore
from chat_session_controller.storage.sqlite import SQLiteKeyValueStore

# Message history
from chat_session_controller.messages.repository import (
    MessageNotFoundError,
    MessageRepository,
    PersistenceError,
)
from chat_session_controller.messages.memory import InMemoryMessageRepository

# Backend gateway
from chat_session_controller.gateway.base import (
    BackendGateway,
    FailureKind,
    GatewayError,
    SendResult,
)
from chat_session_controller.gateway.memory import InMemoryGateway

# Audio
from chat_session_controller.audio.base import AudioHandle, AudioRecorder, SpeechPlayer
from chat_session_controller.audio.simulated import SimulatedPlayer, SimulatedRecorder

# State machine
from chat_session_controller.machine.controller import ConversationStateMachine
from chat_session_controller.machine.states import (
    ConversationState,
    Failed,
    Loading,
    Ready,
    Recording,
    Uninitialized,
)
from chat_session_controller.machine.intents import (
    CancelRecording,
    ChangeLanguage,
    ClearChat,
    ConnectivityChanged,
    ExportHistory,
    Initialize,
    Intent,
    LoadOlderMessages,
    LoadQuickSuggestions,
    LoadSession,
    NewChat,
    PlayTextToSpeech,
    PlayVoiceMessage,
    ProcessOfflineQueue,
    Retry,
    RetryMessage,
    SaveAsFaq,
    SearchMessages,
    SendMessage,
    StartRecording,
    StopPlayback,
    StopRecording,
    ToggleFavorite,
)
from chat_session_controller.machine.signals import (
    ExportSuccess,
    IntentRejected,
    MessageSendFailed,
    OfflineQueueProcessed,
    OperationFailed,
    Signal,
)

# Configuration and quickstart
from chat_session_controller.config import ControllerConfig
from chat_session_controller.convenience import create_controller

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Data model
    "Message",
    "MessageSender",
    "MessageStatus",
    "MessageType",
    "OfflineQueueEntry",
    "PersonalizedSuggestions",
    "QuickSuggestion",
    "Session",
    "UserContext",
    # Session lifecycle
    "ExportDocument",
    "FlushReport",
    "HistoryExporter",
    "HistorySerializer",
    "OfflineQueue",
    "SchemaVersionError",
    "SessionCreationInProgressError",
    "SessionLifecycleManager",
    "SessionNotFoundError",
    "SessionStore",
    "SwitchSupersededError",
    # Storage
    "FilesystemKeyValueStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
    # Messages
    "InMemoryMessageRepository",
    "MessageNotFoundError",
    "MessageRepository",
    "PersistenceError",
    # Gateway
    "BackendGateway",
    "FailureKind",
    "GatewayError",
    "InMemoryGateway",
    "SendResult",
    # Audio
    "AudioHandle",
    "AudioRecorder",
    "SimulatedPlayer",
    "SimulatedRecorder",
    "SpeechPlayer",
    # State machine
    "ConversationState",
    "ConversationStateMachine",
    "Failed",
    "Loading",
    "Ready",
    "Recording",
    "Uninitialized",
    "CancelRecording",
    "ChangeLanguage",
    "ClearChat",
    "ConnectivityChanged",
    "ExportHistory",
    "Initialize",
    "Intent",
    "LoadOlderMessages",
    "LoadQuickSuggestions",
    "LoadSession",
    "NewChat",
    "PlayTextToSpeech",
    "PlayVoiceMessage",
    "ProcessOfflineQueue",
    "Retry",
    "RetryMessage",
    "SaveAsFaq",
    "SearchMessages",
    "SendMessage",
    "StartRecording",
    "StopPlayback",
    "StopRecording",
    "ToggleFavorite",
    "ExportSuccess",
    "IntentRejected",
    "MessageSendFailed",
    "OfflineQueueProcessed",
    "OperationFailed",
    "Signal",
    # Configuration
    "ControllerConfig",
    "create_controller",
]
