"""Abstract audio boundary.

The controller never touches raw audio.  It starts and stops a recorder,
samples its input level for the waveform, and asks a player to play a
file or speak a text.

Classes
-------
- AudioHandle    — a finished recording
- AudioRecorder  — microphone capture
- SpeechPlayer   — audio playback and text-to-speech
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioHandle:
    """A finished recording.

    Parameters
    ----------
    path:
        Location of the recorded file.
    duration:
        Recording length in seconds.
    transcript:
        Speech-to-text result, if the recorder produced one.
    """

    path: str
    duration: float = 0.0
    transcript: str | None = None


class AudioRecorder(ABC):
    """Protocol for microphone capture.

    ``cancel`` must be safe to call at any time, including when no
    recording is active, so callers can release the device on every path.
    """

    @abstractmethod
    async def start(self) -> None:
        """Begin capturing audio.

        Raises
        ------
        RuntimeError
            If the microphone is unavailable or already recording.
        """

    @abstractmethod
    async def stop(self) -> AudioHandle:
        """Finish the recording and return its handle."""

    @abstractmethod
    async def cancel(self) -> None:
        """Abort any recording in progress and release the device."""

    @abstractmethod
    def level(self) -> float:
        """Return the current input level in the range [0.0, 1.0]."""

    @property
    @abstractmethod
    def is_recording(self) -> bool:
        """True while a capture is active."""


class SpeechPlayer(ABC):
    """Protocol for audio playback and text-to-speech."""

    @abstractmethod
    async def play(self, path: str) -> None:
        """Play an audio file; returns when playback finishes."""

    @abstractmethod
    async def play_text(self, text: str, language: str) -> None:
        """Speak ``text`` in ``language``; returns when speech finishes."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop any playback in progress."""


__all__ = ["AudioHandle", "AudioRecorder", "SpeechPlayer"]
