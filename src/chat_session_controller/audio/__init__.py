"""Audio boundary subpackage.

Public surface
--------------
- AudioHandle        — finished recording
- AudioRecorder      — abstract microphone capture
- SpeechPlayer       — abstract playback and text-to-speech
- SimulatedRecorder  — hardware-free recorder
- SimulatedPlayer    — hardware-free player
"""
from __future__ import annotations

from chat_session_controller.audio.base import AudioHandle, AudioRecorder, SpeechPlayer
from chat_session_controller.audio.simulated import SimulatedPlayer, SimulatedRecorder

__all__ = [
    "AudioHandle",
    "AudioRecorder",
    "SimulatedPlayer",
    "SimulatedRecorder",
    "SpeechPlayer",
]
