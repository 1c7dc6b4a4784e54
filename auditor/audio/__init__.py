"""
Audio Alert Module.

Provides procedural alert waveforms, the output device and the audio engine.
"""

from .waveforms import (
    WaveformKind,
    ToneEvent,
    SirenGenerator,
    BeepGenerator,
    PulseGenerator,
    get_generator,
)
from .device import DeviceUnavailable, OutputDevice, PygameOutputDevice, StubOutputDevice, create_output_device
from .settings import EngineSettings, SettingsStore
from .engine import AudioEngine

__all__ = [
    "WaveformKind",
    "ToneEvent",
    "SirenGenerator",
    "BeepGenerator",
    "PulseGenerator",
    "get_generator",
    "DeviceUnavailable",
    "OutputDevice",
    "PygameOutputDevice",
    "StubOutputDevice",
    "create_output_device",
    "EngineSettings",
    "SettingsStore",
    "AudioEngine",
]
