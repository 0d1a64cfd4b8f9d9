"""Hardware-free audio implementations.

Classes
-------
- SimulatedRecorder  — pretends to record; produces a handle with a transcript
- SimulatedPlayer    — pretends to play for a fixed duration
"""
from __future__ import annotations

import asyncio
import random
import time
from pathlib import Path

from chat_session_controller.audio.base import AudioHandle, AudioRecorder, SpeechPlayer


class SimulatedRecorder(AudioRecorder):
    """Recorder that captures nothing.

    Parameters
    ----------
    transcript:
        Transcript attached to every finished recording.
    output_dir:
        Directory used to build the (never written) recording paths.
    seed:
        Seed for the random input levels.
    """

    def __init__(
        self,
        transcript: str | None = None,
        output_dir: str | Path = "/tmp",
        seed: int | None = None,
    ) -> None:
        self.transcript = transcript
        self._output_dir = Path(output_dir)
        self._random = random.Random(seed)
        self._started_at: float | None = None
        self.starts = 0
        self.cancels = 0

    @property
    def is_recording(self) -> bool:
        return self._started_at is not None

    async def start(self) -> None:
        if self._started_at is not None:
            raise RuntimeError("Recording is already in progress")
        self._started_at = time.monotonic()
        self.starts += 1

    async def stop(self) -> AudioHandle:
        if self._started_at is None:
            raise RuntimeError("No recording in progress")
        duration = time.monotonic() - self._started_at
        self._started_at = None
        path = self._output_dir / f"voice_recording_{int(time.time() * 1000)}.aac"
        return AudioHandle(path=str(path), duration=duration, transcript=self.transcript)

    async def cancel(self) -> None:
        if self._started_at is not None:
            self.cancels += 1
        self._started_at = None

    def level(self) -> float:
        return self._random.random() if self._started_at is not None else 0.0


class SimulatedPlayer(SpeechPlayer):
    """Player that sleeps instead of producing sound.

    Parameters
    ----------
    duration:
        Seconds each ``play`` or ``play_text`` call lasts unless stopped.
    """

    def __init__(self, duration: float = 0.0) -> None:
        self.duration = duration
        self.played: list[str] = []
        self.spoken: list[tuple[str, str]] = []
        self._stopped = asyncio.Event()

    async def play(self, path: str) -> None:
        self.played.append(path)
        await self._wait()

    async def play_text(self, text: str, language: str) -> None:
        self.spoken.append((text, language))
        await self._wait()

    async def stop(self) -> None:
        self._stopped.set()

    async def _wait(self) -> None:
        self._stopped.clear()
        if self.duration <= 0:
            return
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self.duration)
        except asyncio.TimeoutError:
            pass
