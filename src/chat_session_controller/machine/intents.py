"""User intents accepted by ``ConversationStateMachine.dispatch``."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from chat_session_controller.session.serializer import ExportFormat
from chat_session_controller.session.state import MessageType


@dataclass(frozen=True)
class Initialize:
    """Resume the last session if one is remembered, else start empty."""


@dataclass(frozen=True)
class LoadSession:
    session_id: str


@dataclass(frozen=True)
class NewChat:
    title: str | None = None


@dataclass(frozen=True)
class SendMessage:
    text: str
    message_type: MessageType = MessageType.TEXT
    audio_path: str | None = None
    audio_duration: float | None = None


@dataclass(frozen=True)
class RetryMessage:
    message_id: str


@dataclass(frozen=True)
class StartRecording:
    pass


@dataclass(frozen=True)
class StopRecording:
    auto_send: bool = True


@dataclass(frozen=True)
class CancelRecording:
    pass


@dataclass(frozen=True)
class PlayVoiceMessage:
    path: str


@dataclass(frozen=True)
class PlayTextToSpeech:
    text: str
    language: str | None = None


@dataclass(frozen=True)
class StopPlayback:
    pass


@dataclass(frozen=True)
class SearchMessages:
    query: str


@dataclass(frozen=True)
class ToggleFavorite:
    message_id: str


@dataclass(frozen=True)
class SaveAsFaq:
    message_id: str


@dataclass(frozen=True)
class ExportHistory:
    format: ExportFormat = "json"


@dataclass(frozen=True)
class ProcessOfflineQueue:
    pass


@dataclass(frozen=True)
class ClearChat:
    delete_session: bool = False


@dataclass(frozen=True)
class ConnectivityChanged:
    """Report that the network went away or came back."""

    online: bool


@dataclass(frozen=True)
class ChangeLanguage:
    language: str


@dataclass(frozen=True)
class LoadQuickSuggestions:
    category: str = ""


@dataclass(frozen=True)
class LoadOlderMessages:
    pass


@dataclass(frozen=True)
class Retry:
    """Repeat the load that left the machine in ``Failed``."""


Intent = Union[
    Initialize,
    LoadSession,
    NewChat,
    SendMessage,
    RetryMessage,
    StartRecording,
    StopRecording,
    CancelRecording,
    PlayVoiceMessage,
    PlayTextToSpeech,
    StopPlayback,
    SearchMessages,
    ToggleFavorite,
    SaveAsFaq,
    ExportHistory,
    ProcessOfflineQueue,
    ClearChat,
    ConnectivityChanged,
    ChangeLanguage,
    LoadQuickSuggestions,
    LoadOlderMessages,
    Retry,
]
