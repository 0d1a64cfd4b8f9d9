"""Unit tests for chat_session_controller.config.ControllerConfig."""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from chat_session_controller.config import ControllerConfig


class TestDefaults:
    def test_defaults(self) -> None:
        config = ControllerConfig()
        assert config.page_size == 50
        assert config.max_send_attempts == 3
        assert config.offline_max_age == timedelta(days=7)
        assert config.export_format == "json"
        assert config.storage_dir.name == ".chat-session-controller"
        assert config.signal_buffer == 256

    def test_from_mapping_none(self) -> None:
        assert ControllerConfig.from_mapping(None) == ControllerConfig()


class TestValidation:
    @pytest.mark.parametrize(
        "data",
        [
            {"page_size": 0},
            {"offline_max_age_days": 0},
            {"export_format": "csv"},
            {"default_language": ""},
            {"signal_buffer": 0},
            {"unknown_key": 1},
        ],
    )
    def test_invalid_values(self, data: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            ControllerConfig.from_mapping(data)


class TestFromYaml:
    def test_loads_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "page_size: 10\nexport_format: yaml\nexport_dir: /tmp/exports\n",
            encoding="utf-8",
        )
        config = ControllerConfig.from_yaml(path)
        assert config.page_size == 10
        assert config.export_format == "yaml"
        assert config.export_dir == Path("/tmp/exports")

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert ControllerConfig.from_yaml(path) == ControllerConfig()

    def test_non_mapping_is_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="must contain a mapping"):
            ControllerConfig.from_yaml(path)
