"""Session subpackage.

Owns the conversation data model, the current-session lifecycle, the
offline queue, and export of a conversation's history.

Public surface
--------------
- Session, Message, OfflineQueueEntry — core data model
- MessageSender / MessageStatus / MessageType — message enums
- QuickSuggestion, PersonalizedSuggestions, UserContext — backend extras
- SessionStore             — last-session pointer and metadata cache
- SessionLifecycleManager  — lazy / explicit creation, switching, flushing
- OfflineQueue, FlushReport — queued sends and the outcome of a flush
- HistorySerializer, ExportDocument — JSON/YAML with schema versioning
- HistoryExporter          — writes export files
"""
from __future__ import annotations

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
from chat_session_controller.session.store import SessionStore
from chat_session_controller.session.offline_queue import FlushReport, OfflineQueue
from chat_session_controller.session.lifecycle import (
    SentExchange,
    SessionCreationInProgressError,
    SessionLifecycleManager,
    SessionNotFoundError,
    SwitchResult,
    SwitchSupersededError,
)
from chat_session_controller.session.serializer import (
    ExportDocument,
    HistorySerializer,
    SchemaVersionError,
)
from chat_session_controller.session.exporter import HistoryExporter

__all__ = [
    "ExportDocument",
    "FlushReport",
    "HistoryExporter",
    "HistorySerializer",
    "Message",
    "MessageSender",
    "MessageStatus",
    "MessageType",
    "OfflineQueue",
    "OfflineQueueEntry",
    "PersonalizedSuggestions",
    "QuickSuggestion",
    "SchemaVersionError",
    "SentExchange",
    "Session",
    "SessionCreationInProgressError",
    "SessionLifecycleManager",
    "SessionNotFoundError",
    "SessionStore",
    "SwitchResult",
    "SwitchSupersededError",
    "UserContext",
    "derive_title",
    "sort_messages",
]
