"""Filesystem key-value store.

Persists each key as an individual file under a configurable directory.
Defaults to ``~/.chat-session-controller/``.

Classes
-------
- FilesystemKeyValueStore  — one-file-per-key storage
"""
from __future__ import annotations

import asyncio
import os
from pathlib import Path

from chat_session_controller.storage.base import KeyValueStore

_DEFAULT_STORAGE_DIR: Path = Path.home() / ".chat-session-controller"
_FILE_EXTENSION = ".value"


class FilesystemKeyValueStore(KeyValueStore):
    """Stores each value as ``<storage_dir>/<key>.value``.

    Parameters
    ----------
    storage_dir:
        Root directory for value files.  Defaults to
        ``~/.chat-session-controller/``.  Created on first write if absent.
    """

    def __init__(self, storage_dir: str | Path | None = None) -> None:
        self._storage_dir: Path = (
            Path(storage_dir) if storage_dir is not None else _DEFAULT_STORAGE_DIR
        )

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _path_for(self, key: str) -> Path:
        # Guard against path traversal; ":" is not portable in file names.
        safe_name = os.path.basename(key).replace(":", "_")
        return self._storage_dir / f"{safe_name}{_FILE_EXTENSION}"

    # ------------------------------------------------------------------
    # KeyValueStore interface
    # ------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read, self._path_for(key))

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, self._path_for(key), value)

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._remove, self._path_for(key))

    # ------------------------------------------------------------------
    # Blocking file operations, run in a worker thread
    # ------------------------------------------------------------------

    @staticmethod
    def _read(path: Path) -> str | None:
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, path: Path, value: str) -> None:
        self._storage_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)

    @staticmethod
    def _remove(path: Path) -> bool:
        if not path.exists():
            return False
        path.unlink()
        return True

    def __repr__(self) -> str:
        return f"FilesystemKeyValueStore(storage_dir={str(self._storage_dir)!r})"


__all__ = ["FilesystemKeyValueStore"]
