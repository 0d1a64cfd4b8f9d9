"""SQLite key-value store — requires aiosqlite (guarded import).

Classes
-------
- SQLiteKeyValueStore  — aiosqlite-backed async key-value storage
"""
from __future__ import annotations

from pathlib import Path

from chat_session_controller.storage.base import KeyValueStore

_AIOSQLITE_IMPORT_ERROR = (
    "SQLiteKeyValueStore requires the 'aiosqlite' package. "
    "Install it with: pip install aiosqlite  or  pip install 'chat-session-controller[sqlite]'"
)

_DEFAULT_DB_PATH: Path = Path.home() / ".chat-session-controller" / "controller.db"

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

_UPSERT_SQL = """
INSERT INTO kv (key, value, updated_at)
VALUES (?, ?, datetime('now'))
ON CONFLICT(key) DO UPDATE SET
    value      = excluded.value,
    updated_at = excluded.updated_at
"""


class SQLiteKeyValueStore(KeyValueStore):
    """Persists key-value pairs in a local SQLite database using aiosqlite.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Defaults to
        ``~/.chat-session-controller/controller.db``.  The parent directory
        and table are created automatically on first use.
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        try:
            import aiosqlite as _aiosqlite  # noqa: F401
        except ImportError as exc:
            raise ImportError(_AIOSQLITE_IMPORT_ERROR) from exc

        self._db_path: Path = Path(db_path) if db_path is not None else _DEFAULT_DB_PATH
        self._schema_initialised = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _ensure_schema(self) -> None:
        """Create the kv table on first use."""
        if self._schema_initialised:
            return
        import aiosqlite

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as conn:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute(_CREATE_TABLE_SQL)
            await conn.commit()
        self._schema_initialised = True

    # ------------------------------------------------------------------
    # KeyValueStore interface
    # ------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            async with conn.execute("SELECT value FROM kv WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        return None if row is None else str(row[0])

    async def set(self, key: str, value: str) -> None:
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            await conn.execute(_UPSERT_SQL, (key, value))
            await conn.commit()

    async def delete(self, key: str) -> bool:
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(str(self._db_path)) as conn:
            cursor = await conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            await conn.commit()
        return cursor.rowcount > 0

    def __repr__(self) -> str:
        return f"SQLiteKeyValueStore(db_path={str(self._db_path)!r})"


__all__ = ["SQLiteKeyValueStore"]
