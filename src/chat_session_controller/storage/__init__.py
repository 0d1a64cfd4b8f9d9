"""Key-value storage subpackage.

All stores implement the ``KeyValueStore`` ABC.  The SQLite store guards
its third-party import so that the package remains installable without the
``sqlite`` extra.

Public surface
--------------
- KeyValueStore           — abstract base class
- InMemoryKeyValueStore   — in-process dict (useful for testing)
- FilesystemKeyValueStore — one file per key
- SQLiteKeyValueStore     — aiosqlite-backed table (requires aiosqlite)
"""
from __future__ import annotations

from chat_session_controller.storage.base import KeyValueStore
from chat_session_controller.storage.filesystem import FilesystemKeyValueStore
from chat_session_controller.storage.memory import InMemoryKeyValueStore
from chat_session_controller.storage.sqlite import SQLiteKeyValueStore

__all__ = [
    "FilesystemKeyValueStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
]
