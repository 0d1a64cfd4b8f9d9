"""Controller configuration.

Classes
-------
- ControllerConfig  — validated settings for one controller instance
"""
from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

_HOME: Path = Path.home() / ".chat-session-controller"


class ControllerConfig(BaseModel):
    """Settings consumed by ``create_controller`` and the CLI.

    Unknown keys are rejected so that a typo in a YAML file fails loudly
    instead of silently falling back to a default.

    Parameters
    ----------
    page_size:
        Messages loaded per history page.
    default_language:
        Language code a new controller starts in.
    max_send_attempts:
        Failed attempts after which a queued message is abandoned.
    offline_max_age_days:
        Days a queued message may wait before it is abandoned.
    export_dir:
        Directory export files are written to.
    export_format:
        Default export format.
    recording_tick_seconds:
        Interval of the recording timer and waveform updates.
    waveform_bars:
        Number of input-level samples shown while recording.
    last_session_key:
        Storage key of the last-session pointer.
    storage_dir:
        Directory of the filesystem key-value store.
    signal_buffer:
        Undelivered one-shot signals kept before the oldest is dropped.
    """

    page_size: int = Field(default=50, ge=1)
    default_language: str = Field(default="en", min_length=1)
    max_send_attempts: int = Field(default=3, ge=1)
    offline_max_age_days: float = Field(default=7, gt=0)
    export_dir: Path = _HOME / "exports"
    export_format: Literal["json", "yaml"] = "json"
    recording_tick_seconds: float = Field(default=1.0, gt=0)
    waveform_bars: int = Field(default=20, ge=1)
    last_session_key: str = Field(default="last_session_id", min_length=1)
    storage_dir: Path = _HOME
    signal_buffer: int = Field(default=256, ge=1)

    model_config = {"extra": "forbid"}

    @property
    def offline_max_age(self) -> timedelta:
        return timedelta(days=self.offline_max_age_days)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ControllerConfig:
        """Validate ``data`` into a config; None yields the defaults.

        Raises
        ------
        pydantic.ValidationError
            If a value is invalid or a key is unknown.
        """
        return cls.model_validate(dict(data or {}))

    @classmethod
    def from_yaml(cls, path: str | Path) -> ControllerConfig:
        """Load a config from a YAML mapping file.

        Raises
        ------
        ValueError
            If the document is not a mapping.
        pydantic.ValidationError
            If a value is invalid or a key is unknown.
        """
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        if data is not None and not isinstance(data, Mapping):
            raise ValueError(f"Config file {str(path)!r} must contain a mapping.")
        return cls.from_mapping(data)


__all__ = ["ControllerConfig"]
