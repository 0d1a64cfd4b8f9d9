#!/usr/bin/env python3
"""Example: Storage Backends

Shows the last-session pointer surviving a controller restart with the
in-memory, filesystem, and SQLite key-value stores.

Usage:
    python examples/02_storage_backends.py

Requirements:
    pip install 'chat-session-controller[sqlite]'
"""
from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

from chat_session_controller import (
    FilesystemKeyValueStore,
    InMemoryGateway,
    InMemoryKeyValueStore,
    InMemoryMessageRepository,
    Initialize,
    KeyValueStore,
    Ready,
    SendMessage,
    SQLiteKeyValueStore,
    create_controller,
)


async def demo_store(label: str, store: KeyValueStore) -> None:
    gateway = InMemoryGateway()
    repository = InMemoryMessageRepository()

    first = create_controller(gateway=gateway, repository=repository, store=store)
    first.dispatch(SendMessage("Make a quiz on the solar system"))
    await first.wait_idle()
    await first.close()

    second = create_controller(gateway=gateway, repository=repository, store=store)
    second.dispatch(Initialize())
    await second.wait_idle()
    state = second.state
    assert isinstance(state, Ready)
    print(f"  [{label}] restored {state.session_id} with {len(state.messages)} messages")
    await second.close()


async def main() -> None:
    print("In-memory store:")
    await demo_store("memory", InMemoryKeyValueStore())

    with tempfile.TemporaryDirectory() as tmpdir:
        print("\nFilesystem store:")
        await demo_store("filesystem", FilesystemKeyValueStore(Path(tmpdir) / "kv"))
        print(f"  Files written: {[p.name for p in (Path(tmpdir) / 'kv').iterdir()]}")

        print("\nSQLite store:")
        await demo_store("sqlite", SQLiteKeyValueStore(Path(tmpdir) / "controller.db"))


if __name__ == "__main__":
    asyncio.run(main())
