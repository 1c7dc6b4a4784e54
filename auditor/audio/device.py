"""
Audio output devices.

The pygame mixer is the real output; tones are rendered with numpy and
started immediately with leading silence so they sound at their scheduled
device time. The stub device records tones instead of playing them.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, List, Tuple

import numpy as np

from auditor.audio.synthesis import (
    DEFAULT_SAMPLE_RATE,
    render_tone,
    pad_leading_silence,
    to_pcm16,
)
from auditor.audio.waveforms import ToneEvent

logger = logging.getLogger(__name__)


class DeviceUnavailable(Exception):
    """Audio output could not be acquired or resumed."""


class OutputDevice(ABC):
    """
    Abstract audio output with its own playback clock.

    Lifecycle: open() -> [suspend()/resume()] -> close().
    """

    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE):
        self._sample_rate = sample_rate
        self._is_open = False
        self._is_suspended = False

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def is_suspended(self) -> bool:
        return self._is_suspended

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Device clock in seconds since open()."""

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the output.

        Raises:
            DeviceUnavailable: If the platform denies audio access
        """

    @abstractmethod
    def resume(self) -> None:
        """Resume a suspended device."""

    @abstractmethod
    def suspend(self) -> None:
        """Pause output without releasing the device."""

    @abstractmethod
    def close(self) -> None:
        """Release the output. Safe to call more than once."""

    @abstractmethod
    def schedule_tone(self, tone: ToneEvent, at: float) -> None:
        """
        Start a tone at device time `at` without blocking.

        Raises:
            DeviceUnavailable: If the device cannot accept audio
        """

    def __enter__(self) -> "OutputDevice":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class PygameOutputDevice(OutputDevice):
    """
    Output device backed by the pygame mixer.

    Each tone becomes a pygame Sound padded with silence up to its start
    time; the mixer plays overlapping sounds on separate channels.
    """

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        buffer_size: int = 512,
        max_voices: int = 16,
    ):
        """
        Initialize pygame output device.

        Args:
            sample_rate: Mixer sample rate in Hz
            buffer_size: Mixer buffer size in samples
            max_voices: Number of mixer channels (simultaneous tones)
        """
        super().__init__(sample_rate)
        self._buffer_size = buffer_size
        self._max_voices = max_voices
        self._pygame = None
        self._mixer_channels = 1
        self._opened_at = 0.0
        # pygame stops a Sound when its last reference goes away
        self._voices: Deque[object] = deque(maxlen=max_voices)

    @property
    def current_time(self) -> float:
        if not self._is_open:
            return 0.0
        return time.monotonic() - self._opened_at

    def open(self) -> None:
        if self._is_open:
            return

        try:
            import pygame
        except ImportError as e:
            raise DeviceUnavailable("pygame is not installed") from e

        try:
            pygame.mixer.pre_init(
                frequency=self._sample_rate, size=-16, channels=1, buffer=self._buffer_size
            )
            pygame.mixer.init()
            init = pygame.mixer.get_init()
            if init is None:
                raise DeviceUnavailable("pygame mixer did not initialize")
            self._sample_rate, _, self._mixer_channels = init
            pygame.mixer.set_num_channels(self._max_voices)
        except pygame.error as e:
            raise DeviceUnavailable(f"Audio output unavailable: {e}") from e

        self._pygame = pygame
        self._opened_at = time.monotonic()
        self._is_open = True
        self._is_suspended = False
        logger.info(
            f"Audio output opened: {self._sample_rate} Hz, "
            f"{self._mixer_channels} channel(s)"
        )

    def resume(self) -> None:
        if not self._is_open:
            raise DeviceUnavailable("Audio output is not open")
        if self._is_suspended:
            try:
                self._pygame.mixer.unpause()
            except self._pygame.error as e:
                raise DeviceUnavailable(f"Audio output could not resume: {e}") from e
            self._is_suspended = False
            logger.debug("Audio output resumed")

    def suspend(self) -> None:
        if self._is_open and not self._is_suspended:
            try:
                self._pygame.mixer.pause()
            except self._pygame.error as e:
                raise DeviceUnavailable(f"Audio output could not pause: {e}") from e
            self._is_suspended = True
            logger.debug("Audio output suspended")

    def close(self) -> None:
        if not self._is_open:
            return
        try:
            self._pygame.mixer.stop()
            self._pygame.mixer.quit()
        except self._pygame.error as e:
            logger.warning(f"Error closing audio output: {e}")
        finally:
            self._voices.clear()
            self._is_open = False
            self._is_suspended = False
            logger.info("Audio output closed")

    def schedule_tone(self, tone: ToneEvent, at: float) -> None:
        if not self._is_open:
            raise DeviceUnavailable("Audio output is not open")

        samples = render_tone(tone, self._sample_rate)
        samples = pad_leading_silence(samples, at - self.current_time, self._sample_rate)
        pcm = to_pcm16(samples)
        if self._mixer_channels > 1:
            pcm = np.ascontiguousarray(np.column_stack([pcm] * self._mixer_channels))

        try:
            sound = self._pygame.sndarray.make_sound(pcm)
            sound.play()
        except self._pygame.error as e:
            raise DeviceUnavailable(f"Tone playback failed: {e}") from e

        self._voices.append(sound)


class StubOutputDevice(OutputDevice):
    """
    Record-only output device.

    Used when audio is disabled by configuration; keeps every scheduled
    tone with its start time and exposes a manually advanced clock.
    """

    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE):
        super().__init__(sample_rate)
        self._clock = 0.0
        self.scheduled: List[Tuple[float, ToneEvent]] = []

    @property
    def current_time(self) -> float:
        return self._clock

    def advance(self, seconds: float) -> None:
        """Move the device clock forward."""
        self._clock += seconds

    def open(self) -> None:
        if not self._is_open:
            self._is_open = True
            logger.info("Stub audio output opened")

    def resume(self) -> None:
        self._is_suspended = False

    def suspend(self) -> None:
        self._is_suspended = True

    def close(self) -> None:
        self._is_open = False

    def schedule_tone(self, tone: ToneEvent, at: float) -> None:
        if not self._is_open:
            raise DeviceUnavailable("Stub audio output is not open")
        logger.debug(
            f"Stub tone at {at:.3f}s: {tone.frequency:.0f} Hz, "
            f"{tone.duration * 1000:.0f} ms, gain {tone.peak_gain:.3f}"
        )
        self.scheduled.append((at, tone))


def create_output_device(
    enabled: bool = True,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    buffer_size: int = 512,
) -> OutputDevice:
    """
    Factory function to create the audio output device.

    Returns PygameOutputDevice when audio is enabled, StubOutputDevice otherwise.
    The device is not opened here.
    """
    if enabled:
        return PygameOutputDevice(sample_rate=sample_rate, buffer_size=buffer_size)
    return StubOutputDevice(sample_rate=sample_rate)
