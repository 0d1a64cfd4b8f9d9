"""Unit tests for chat_session_controller.audio.simulated."""
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from chat_session_controller.audio.simulated import SimulatedPlayer, SimulatedRecorder


class TestSimulatedRecorder:
    @pytest.mark.asyncio
    async def test_start_stop_returns_handle(self, tmp_path: Path) -> None:
        recorder = SimulatedRecorder(transcript="hello", output_dir=str(tmp_path))
        await recorder.start()
        assert recorder.is_recording
        handle = await recorder.stop()
        assert not recorder.is_recording
        assert handle.transcript == "hello"
        assert handle.path.endswith(".aac")
        assert handle.duration >= 0

    @pytest.mark.asyncio
    async def test_double_start_raises(self) -> None:
        recorder = SimulatedRecorder()
        await recorder.start()
        with pytest.raises(RuntimeError):
            await recorder.start()

    @pytest.mark.asyncio
    async def test_stop_without_start_raises(self) -> None:
        with pytest.raises(RuntimeError):
            await SimulatedRecorder().stop()

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self) -> None:
        recorder = SimulatedRecorder()
        await recorder.cancel()
        await recorder.start()
        await recorder.cancel()
        await recorder.cancel()
        assert recorder.cancels == 1
        assert not recorder.is_recording

    @pytest.mark.asyncio
    async def test_level_is_silent_when_idle(self) -> None:
        recorder = SimulatedRecorder(seed=1)
        assert recorder.level() == 0.0
        await recorder.start()
        assert 0.0 <= recorder.level() < 1.0


class TestSimulatedPlayer:
    @pytest.mark.asyncio
    async def test_records_what_was_played(self) -> None:
        player = SimulatedPlayer()
        await player.play("/tmp/a.aac")
        await player.play_text("hello", "hi")
        assert player.played == ["/tmp/a.aac"]
        assert player.spoken == [("hello", "hi")]

    @pytest.mark.asyncio
    async def test_stop_interrupts_playback(self) -> None:
        player = SimulatedPlayer(duration=5.0)
        playing = asyncio.create_task(player.play("/tmp/a.aac"))
        await asyncio.sleep(0.01)
        await player.stop()
        await asyncio.wait_for(playing, timeout=1.0)
