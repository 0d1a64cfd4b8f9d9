"""Message repository subpackage.

Public surface
--------------
- MessageRepository          — abstract base class
- InMemoryMessageRepository  — in-process lists (useful for testing)
- PersistenceError           — a write failed
- MessageNotFoundError       — a message id is unknown
"""
from __future__ import annotations

from chat_session_controller.messages.memory import InMemoryMessageRepository
from chat_session_controller.messages.repository import (
    MessageNotFoundError,
    MessageRepository,
    PersistenceError,
)

__all__ = [
    "InMemoryMessageRepository",
    "MessageNotFoundError",
    "MessageRepository",
    "PersistenceError",
]
