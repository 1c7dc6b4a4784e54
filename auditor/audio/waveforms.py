"""
Procedural alert waveforms.

Each generator turns (severity, master volume, start time) into a fixed
sequence of ToneEvents and hands them to a scheduling sink. Generators keep
no state between calls, so the same inputs always yield the same plan.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from auditor.alerts.types import Severity


class WaveformKind(Enum):
    """User-selectable alert sound."""
    SIREN = "siren"
    BEEP = "beep"
    PULSE = "pulse"


class Oscillator(Enum):
    """Oscillator shape used to render a tone."""
    SINE = "sine"
    SAWTOOTH = "sawtooth"
    SQUARE = "square"


class Envelope(Enum):
    """Amplitude envelope shape."""
    EXPONENTIAL = "exponential"  # Decay from peak gain to floor gain
    TRAPEZOID = "trapezoid"      # Linear attack, hold, linear release


@dataclass(frozen=True)
class ToneEvent:
    """
    A single tone scheduled relative to the start of a waveform.

    Attributes:
        start_offset: Seconds after the waveform start time
        frequency: Carrier frequency in Hz (base frequency for ramped tones)
        duration: Tone length in seconds
        peak_gain: Gain at the loudest point of the envelope
        oscillator: Carrier shape
        envelope: Envelope shape
        floor_gain: Gain reached at the end of an exponential decay
        peak_frequency: Pitch ramp target in Hz, None for a fixed pitch
        mod_rate: Frequency modulator rate in Hz (0 disables FM)
        mod_depth: Frequency modulator depth in Hz
        edge_time: Attack/release length in seconds for trapezoid envelopes
    """
    start_offset: float
    frequency: float
    duration: float
    peak_gain: float
    oscillator: Oscillator = Oscillator.SINE
    envelope: Envelope = Envelope.EXPONENTIAL
    floor_gain: float = 0.001
    peak_frequency: Optional[float] = None
    mod_rate: float = 0.0
    mod_depth: float = 0.0
    edge_time: float = 0.0

    @property
    def end_offset(self) -> float:
        """Offset at which the tone stops."""
        return self.start_offset + self.duration

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """(offset, frequency, duration, gain) summary of the tone."""
        return (self.start_offset, self.frequency, self.duration, self.peak_gain)


# Siren pitch ramp: base -> peak at 20% of the tone, peak -> base at 80%
PITCH_RAMP_POINTS = (0.2, 0.8)

# Scheduling handle: receives a tone and the absolute device time to start it
ToneSink = Callable[[ToneEvent, float], None]


@dataclass(frozen=True)
class SirenParams:
    """Siren parameters for one severity."""
    base_freq: float
    peak_freq: float
    mod_rate: float
    duration: float
    volume: float


@dataclass(frozen=True)
class RepeatParams:
    """Parameters for waveforms made of repeated identical tones."""
    frequency: float
    count: int
    interval: float
    duration: float
    volume: float


def clamp_volume(master_volume: float) -> float:
    """
    Clamp a master volume into [0, 1].

    Raises:
        ValueError: If the volume is NaN or infinite
    """
    volume = float(master_volume)
    if not math.isfinite(volume):
        raise ValueError(f"Volume must be a finite number, got {master_volume!r}")
    return min(max(volume, 0.0), 1.0)


class WaveformGenerator(ABC):
    """Base class for the severity-driven alert waveforms."""

    kind: WaveformKind
    BASE_GAIN: float = 0.3
    PARAMS: Dict[Severity, object] = {}

    def params_for(self, severity: Severity):
        """
        Look up the parameter row for a severity.

        SAFE never reaches a generator under normal policy; when it does
        (forced preview) it uses the LOW row.
        """
        if severity is Severity.SAFE:
            severity = Severity.LOW
        return self.PARAMS[severity]

    def effective_gain(self, severity: Severity, master_volume: float) -> float:
        """Peak gain for a tone: base gain x master volume x severity multiplier."""
        return self.BASE_GAIN * clamp_volume(master_volume) * self.params_for(severity).volume

    @abstractmethod
    def plan(self, severity: Severity, master_volume: float) -> List[ToneEvent]:
        """
        Build the ordered tone sequence for a severity.

        Args:
            severity: Event severity
            master_volume: Master volume in [0, 1]

        Returns:
            Tones ordered by start offset
        """

    def schedule(
        self,
        sink: ToneSink,
        severity: Severity,
        master_volume: float,
        start_time: float,
    ) -> List[ToneEvent]:
        """
        Schedule the waveform against a device clock.

        Args:
            sink: Scheduling handle receiving (tone, absolute start time)
            severity: Event severity
            master_volume: Master volume in [0, 1]
            start_time: Device clock time of the first tone

        Returns:
            The tones that were scheduled
        """
        tones = self.plan(severity, master_volume)
        for tone in tones:
            sink(tone, start_time + tone.start_offset)
        return tones


class SirenGenerator(WaveformGenerator):
    """
    FM siren: sawtooth carrier modulated by a sine, with a base->peak->base
    pitch ramp and an exponential decay.
    """

    kind = WaveformKind.SIREN
    BASE_GAIN = 0.3
    MOD_DEPTH_HZ = 100.0
    FLOOR_GAIN = 0.01

    PARAMS = {
        Severity.LOW: SirenParams(base_freq=220, peak_freq=300, mod_rate=3, duration=0.4, volume=0.4),
        Severity.MEDIUM: SirenParams(base_freq=440, peak_freq=600, mod_rate=6, duration=0.5, volume=0.7),
        Severity.HIGH: SirenParams(base_freq=880, peak_freq=1200, mod_rate=12, duration=0.6, volume=1.0),
        Severity.CRITICAL: SirenParams(base_freq=1000, peak_freq=1600, mod_rate=20, duration=0.9, volume=1.2),
    }

    def plan(self, severity: Severity, master_volume: float) -> List[ToneEvent]:
        params = self.params_for(severity)
        return [
            ToneEvent(
                start_offset=0.0,
                frequency=params.base_freq,
                duration=params.duration,
                peak_gain=self.effective_gain(severity, master_volume),
                oscillator=Oscillator.SAWTOOTH,
                envelope=Envelope.EXPONENTIAL,
                floor_gain=self.FLOOR_GAIN,
                peak_frequency=params.peak_freq,
                mod_rate=params.mod_rate,
                mod_depth=self.MOD_DEPTH_HZ,
            )
        ]


class BeepGenerator(WaveformGenerator):
    """Short sine beeps with a fast exponential decay."""

    kind = WaveformKind.BEEP
    BASE_GAIN = 0.3
    FLOOR_GAIN = 0.001

    PARAMS = {
        Severity.LOW: RepeatParams(frequency=440, count=1, interval=0.2, duration=0.15, volume=0.5),
        Severity.MEDIUM: RepeatParams(frequency=800, count=1, interval=0.2, duration=0.2, volume=0.7),
        Severity.HIGH: RepeatParams(frequency=1200, count=2, interval=0.18, duration=0.15, volume=1.0),
        Severity.CRITICAL: RepeatParams(frequency=1500, count=3, interval=0.12, duration=0.08, volume=1.1),
    }

    def plan(self, severity: Severity, master_volume: float) -> List[ToneEvent]:
        params = self.params_for(severity)
        gain = self.effective_gain(severity, master_volume)
        return [
            ToneEvent(
                start_offset=i * params.interval,
                frequency=params.frequency,
                duration=params.duration,
                peak_gain=gain,
                oscillator=Oscillator.SINE,
                envelope=Envelope.EXPONENTIAL,
                floor_gain=self.FLOOR_GAIN,
            )
            for i in range(params.count)
        ]


class PulseGenerator(WaveformGenerator):
    """Square-wave bursts with a trapezoidal envelope."""

    kind = WaveformKind.PULSE
    BASE_GAIN = 0.4
    EDGE_TIME_S = 0.01

    PARAMS = {
        Severity.LOW: RepeatParams(frequency=55, count=1, interval=0.15, duration=0.4, volume=0.5),
        Severity.MEDIUM: RepeatParams(frequency=80, count=1, interval=0.15, duration=0.3, volume=0.8),
        Severity.HIGH: RepeatParams(frequency=110, count=2, interval=0.15, duration=0.1, volume=1.0),
        Severity.CRITICAL: RepeatParams(frequency=150, count=4, interval=0.1, duration=0.06, volume=1.2),
    }

    def plan(self, severity: Severity, master_volume: float) -> List[ToneEvent]:
        params = self.params_for(severity)
        gain = self.effective_gain(severity, master_volume)
        return [
            ToneEvent(
                start_offset=i * params.interval,
                frequency=params.frequency,
                duration=params.duration,
                peak_gain=gain,
                oscillator=Oscillator.SQUARE,
                envelope=Envelope.TRAPEZOID,
                floor_gain=0.0,
                edge_time=self.EDGE_TIME_S,
            )
            for i in range(params.count)
        ]


GENERATORS: Dict[WaveformKind, WaveformGenerator] = {
    WaveformKind.SIREN: SirenGenerator(),
    WaveformKind.BEEP: BeepGenerator(),
    WaveformKind.PULSE: PulseGenerator(),
}


def get_generator(kind: WaveformKind) -> WaveformGenerator:
    """Get the generator for a waveform kind."""
    return GENERATORS[kind]
