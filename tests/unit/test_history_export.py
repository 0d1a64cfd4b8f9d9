"""Unit tests for the history serializer and exporter."""
from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest
import yaml

from chat_session_controller.session.exporter import HistoryExporter
from chat_session_controller.session.serializer import (
    ExportDocument,
    HistorySerializer,
    SchemaVersionError,
)
from chat_session_controller.session.state import Message, MessageSender, Session


@pytest.fixture()
def document() -> ExportDocument:
    return ExportDocument(
        session=Session(session_id="sess-1", title="Fractions"),
        messages=[
            Message(text="What is 1/2 + 1/4?", sender=MessageSender.USER),
            Message(text="Three quarters.", sender=MessageSender.ASSISTANT, is_favorite=True),
        ],
    )


# ---------------------------------------------------------------------------
# HistorySerializer
# ---------------------------------------------------------------------------


class TestHistorySerializer:
    def test_json_round_trip(self, document: ExportDocument) -> None:
        serializer = HistorySerializer()
        restored = serializer.from_json(serializer.to_json(document))
        assert restored.messages == document.messages
        assert restored.session == document.session

    def test_yaml_round_trip(self, document: ExportDocument) -> None:
        serializer = HistorySerializer()
        restored = serializer.deserialize(serializer.serialize(document, "yaml"), "yaml")
        assert restored.messages[1].is_favorite is True

    def test_checksum_is_embedded(self, document: ExportDocument) -> None:
        data = json.loads(HistorySerializer().to_json(document))
        assert len(data["checksum"]) == 64

    def test_tampered_document_is_rejected(self, document: ExportDocument) -> None:
        serializer = HistorySerializer()
        data = json.loads(serializer.to_json(document))
        data["messages"][0]["text"] = "edited"
        with pytest.raises(ValueError, match="Checksum mismatch"):
            serializer.from_json(json.dumps(data))

    def test_checksum_validation_can_be_disabled(self, document: ExportDocument) -> None:
        data = json.loads(HistorySerializer().to_json(document))
        data["messages"][0]["text"] = "edited"
        restored = HistorySerializer(validate_checksum=False).from_json(json.dumps(data))
        assert restored.messages[0].text == "edited"

    def test_unknown_schema_version(self, document: ExportDocument) -> None:
        data = json.loads(HistorySerializer().to_json(document))
        data["schema_version"] = "9.9"
        with pytest.raises(SchemaVersionError) as excinfo:
            HistorySerializer().from_json(json.dumps(data))
        assert excinfo.value.version == "9.9"


# ---------------------------------------------------------------------------
# HistoryExporter
# ---------------------------------------------------------------------------


class TestHistoryExporter:
    @pytest.mark.asyncio
    async def test_export_json(self, tmp_path: Path, document: ExportDocument) -> None:
        exporter = HistoryExporter(tmp_path / "exports")
        path = await exporter.export(document.session, document.messages)

        assert path.parent == tmp_path / "exports"
        assert path.name.startswith("chat_sess-1_")
        assert path.suffix == ".json"
        restored = HistorySerializer().from_json(path.read_text(encoding="utf-8"))
        assert len(restored.messages) == 2

    @pytest.mark.asyncio
    async def test_export_yaml_without_session(
        self, tmp_path: Path, document: ExportDocument
    ) -> None:
        exporter = HistoryExporter(tmp_path)
        path = await exporter.export(None, document.messages, "yaml")

        assert path.name.startswith("chat_draft_")
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data["session"] is None
        assert data["messages"][0]["text"] == "What is 1/2 + 1/4?"

    @pytest.mark.asyncio
    async def test_consecutive_exports_do_not_collide(
        self, tmp_path: Path, document: ExportDocument
    ) -> None:
        exporter = HistoryExporter(tmp_path)
        first = await exporter.export(document.session, document.messages)
        second = await exporter.export(document.session, document.messages)
        assert first != second

    @pytest.mark.asyncio
    async def test_file_is_written_off_the_event_loop(
        self, tmp_path: Path, document: ExportDocument, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        loop_thread = threading.get_ident()
        threads: list[int] = []
        write_text = Path.write_text

        def recording_write(path: Path, *args: object, **kwargs: object) -> int:
            threads.append(threading.get_ident())
            return write_text(path, *args, **kwargs)  # type: ignore[arg-type]

        monkeypatch.setattr(Path, "write_text", recording_write)
        path = await HistoryExporter(tmp_path).export(document.session, document.messages)

        assert path.exists()
        assert threads and loop_thread not in threads

    def test_repr(self, tmp_path: Path) -> None:
        assert str(tmp_path) in repr(HistoryExporter(tmp_path))
