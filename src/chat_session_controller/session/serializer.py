"""Chat history serialization with schema versioning.

Supports JSON and YAML round-trips of an ``ExportDocument``.  The schema
version and a SHA-256 checksum are embedded in every document so that
readers can reject documents they do not understand or that were edited.

Classes
-------
- ExportDocument      — a session plus its messages, ready for export
- SchemaVersionError  — unsupported document version
- HistorySerializer   — serialize/deserialize ExportDocument to JSON or YAML
"""
from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import ClassVar, Literal

import yaml
from pydantic import BaseModel, Field

from chat_session_controller.session.state import Message, Session

_SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset({"1.0"})

ExportFormat = Literal["json", "yaml"]


class ExportDocument(BaseModel):
    """Exportable snapshot of one conversation.

    Parameters
    ----------
    schema_version:
        Document schema version.
    exported_at:
        When the snapshot was taken (UTC).
    session:
        Session metadata, or None for a conversation not yet backed by a
        backend session.
    messages:
        Messages in display order.
    checksum:
        SHA-256 of the canonical JSON of the document (excluding this field).
    """

    SCHEMA_VERSION: ClassVar[str] = "1.0"

    schema_version: str = "1.0"
    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    session: Session | None = None
    messages: list[Message] = Field(default_factory=list)
    checksum: str = ""

    def compute_checksum(self) -> str:
        """Compute, store, and return the document checksum."""
        data = self.model_dump(mode="json")
        data.pop("checksum", None)
        canonical_json = json.dumps(data, sort_keys=True)
        self.checksum = hashlib.sha256(canonical_json.encode()).hexdigest()
        return self.checksum


class SchemaVersionError(ValueError):
    """Raised when a serialised document uses an unsupported schema version."""

    def __init__(self, version: str) -> None:
        self.version = version
        supported = ", ".join(sorted(_SUPPORTED_SCHEMA_VERSIONS))
        super().__init__(
            f"Unsupported schema version {version!r}. "
            f"Supported versions: {supported}"
        )


class HistorySerializer:
    """Serialize and deserialize ``ExportDocument`` objects.

    Parameters
    ----------
    validate_checksum:
        When True (default), loading verifies the embedded checksum and
        raises ``ValueError`` on mismatch.
    """

    def __init__(self, validate_checksum: bool = True) -> None:
        self.validate_checksum = validate_checksum

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def to_json(self, document: ExportDocument, *, indent: int = 2) -> str:
        document.compute_checksum()
        return json.dumps(document.model_dump(mode="json"), indent=indent, ensure_ascii=False)

    def from_json(self, raw: str) -> ExportDocument:
        """Deserialize a document produced by ``to_json``.

        Raises
        ------
        SchemaVersionError
            If the ``schema_version`` field is not supported.
        ValueError
            If ``validate_checksum`` is True and the checksum does not match.
        """
        return self._deserialize(json.loads(raw))

    # ------------------------------------------------------------------
    # YAML
    # ------------------------------------------------------------------

    def to_yaml(self, document: ExportDocument) -> str:
        document.compute_checksum()
        data = document.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=True)

    def from_yaml(self, raw: str) -> ExportDocument:
        return self._deserialize(yaml.safe_load(raw))

    # ------------------------------------------------------------------
    # Format dispatch
    # ------------------------------------------------------------------

    def serialize(self, document: ExportDocument, format: ExportFormat = "json") -> str:
        if format == "yaml":
            return self.to_yaml(document)
        return self.to_json(document)

    def deserialize(self, raw: str, format: ExportFormat = "json") -> ExportDocument:
        if format == "yaml":
            return self.from_yaml(raw)
        return self.from_json(raw)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _deserialize(self, data: dict[str, object]) -> ExportDocument:
        version = str(data.get("schema_version", ""))
        if version not in _SUPPORTED_SCHEMA_VERSIONS:
            raise SchemaVersionError(version)

        document = ExportDocument.model_validate(data)

        if self.validate_checksum and document.checksum:
            stored = document.checksum
            computed = document.compute_checksum()
            if stored != computed:
                raise ValueError(
                    f"Checksum mismatch in export document: "
                    f"stored={stored!r} computed={computed!r}"
                )
        return document
