"""Conversation state machine subpackage.

Public surface
--------------
- ConversationStateMachine — dispatches intents, publishes states and signals
- ConversationState        — union of Uninitialized, Loading, Ready, Recording, Failed
- Intent                   — union of every intent dataclass
- Signal                   — union of every one-shot signal dataclass
"""
from __future__ import annotations

from chat_session_controller.machine.controller import ConversationStateMachine, ValidationError
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
    SignalChannel,
)
from chat_session_controller.machine.states import (
    ConversationState,
    Failed,
    Loading,
    Ready,
    Recording,
    Uninitialized,
)

__all__ = [
    "CancelRecording",
    "ChangeLanguage",
    "ClearChat",
    "ConnectivityChanged",
    "ConversationState",
    "ConversationStateMachine",
    "ExportHistory",
    "ExportSuccess",
    "Failed",
    "Initialize",
    "Intent",
    "IntentRejected",
    "LoadOlderMessages",
    "LoadQuickSuggestions",
    "LoadSession",
    "Loading",
    "MessageSendFailed",
    "NewChat",
    "OfflineQueueProcessed",
    "OperationFailed",
    "PlayTextToSpeech",
    "PlayVoiceMessage",
    "ProcessOfflineQueue",
    "Ready",
    "Recording",
    "Retry",
    "RetryMessage",
    "SaveAsFaq",
    "SearchMessages",
    "SendMessage",
    "Signal",
    "SignalChannel",
    "StartRecording",
    "StopPlayback",
    "StopRecording",
    "ToggleFavorite",
    "Uninitialized",
    "ValidationError",
]
