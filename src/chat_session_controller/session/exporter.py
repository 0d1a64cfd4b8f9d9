"""Write a conversation's history to an export file.

Classes
-------
- HistoryExporter  — serializes an ``ExportDocument`` into ``export_dir``
"""
from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from chat_session_controller.session.serializer import (
    ExportDocument,
    ExportFormat,
    HistorySerializer,
)
from chat_session_controller.session.state import Message, Session

logger = logging.getLogger(__name__)

_DEFAULT_EXPORT_DIR: Path = Path.home() / ".chat-session-controller" / "exports"
_EXTENSIONS: dict[str, str] = {"json": ".json", "yaml": ".yaml"}


class HistoryExporter:
    """Export chat history as JSON or YAML files.

    Each export is written to
    ``<export_dir>/chat_<session id or "draft">_<UTC timestamp>.<ext>``.

    Parameters
    ----------
    export_dir:
        Target directory.  Created on first export if absent.
    serializer:
        Optional custom serializer.
    """

    def __init__(
        self,
        export_dir: str | Path | None = None,
        serializer: HistorySerializer | None = None,
    ) -> None:
        self._export_dir = Path(export_dir) if export_dir is not None else _DEFAULT_EXPORT_DIR
        self._serializer = serializer or HistorySerializer()

    @property
    def export_dir(self) -> Path:
        return self._export_dir

    def build_document(self, session: Session | None, messages: list[Message]) -> ExportDocument:
        return ExportDocument(session=session, messages=list(messages))

    async def export(
        self,
        session: Session | None,
        messages: list[Message],
        format: ExportFormat = "json",
    ) -> Path:
        """Write the conversation to a new file and return its path.

        Raises
        ------
        OSError
            If the file could not be written.
        """
        document = self.build_document(session, messages)
        payload = self._serializer.serialize(document, format)

        stem = os.path.basename(session.session_id) if session is not None else "draft"
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        path = self._export_dir / f"chat_{stem}_{stamp}{_EXTENSIONS[format]}"
        await asyncio.to_thread(self._write, path, payload)
        logger.debug("HistoryExporter: wrote %d messages to %s", len(messages), path)
        return path

    def _write(self, path: Path, payload: str) -> None:
        self._export_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(payload, encoding="utf-8")

    def __repr__(self) -> str:
        return f"HistoryExporter(export_dir={str(self._export_dir)!r})"
