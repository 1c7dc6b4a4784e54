"""Audio engine: owns the output device and dispatches alert waveforms."""

import logging
from typing import Callable, List, Optional

from auditor.alerts.types import Severity
from auditor.audio.device import OutputDevice, DeviceUnavailable, create_output_device
from auditor.audio.settings import EngineSettings, SettingsStore
from auditor.audio.waveforms import (
    ToneEvent,
    WaveformKind,
    BeepGenerator,
    clamp_volume,
    get_generator,
)

logger = logging.getLogger(__name__)


class AudioEngine:
    """
    Plays severity-scaled alert waveforms on an exclusively owned device.

    Features:
    - Lazy device creation, only on a user gesture or first playback
    - Mute and SAFE suppression, bypassed by forced previews
    - Graceful degradation: a device failure disables playback until the
      next user gesture instead of raising
    - Every settings change is persisted through the settings store

    Usage:
        with AudioEngine(settings, store) as engine:
            engine.prime()                 # user pressed "start"
            engine.play(Severity.HIGH)
    """

    def __init__(
        self,
        settings: EngineSettings,
        store: Optional[SettingsStore] = None,
        device_factory: Callable[[], OutputDevice] = create_output_device,
    ):
        """
        Initialize audio engine.

        Args:
            settings: Shared engine settings (mutated only through the setters)
            store: Persistence for settings changes
            device_factory: Creates the output device on first use
        """
        self._settings = settings
        self._store = store
        self._device_factory = device_factory
        self._device: Optional[OutputDevice] = None
        self._blocked = False

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def device(self) -> Optional[OutputDevice]:
        """The output device, or None before first use."""
        return self._device

    @property
    def is_blocked(self) -> bool:
        """True after a device failure, until the next user gesture."""
        return self._blocked

    def ensure_device_ready(self) -> OutputDevice:
        """
        Create the device on first use and resume it if suspended.

        Returns:
            The ready output device

        Raises:
            DeviceUnavailable: If the platform denies audio access
        """
        if self._device is None:
            self._device = self._device_factory()

        if not self._device.is_open:
            self._device.open()
        if self._device.is_suspended:
            self._device.resume()

        self._blocked = False
        return self._device

    def play(self, severity: Severity, force: bool = False) -> bool:
        """
        Play the alert waveform for a severity.

        Args:
            severity: Event severity
            force: Manual preview; bypasses mute and SAFE suppression

        Returns:
            True if tones were scheduled, False if skipped
        """
        if not force and self._settings.muted:
            return False
        if not force and severity is Severity.SAFE:
            return False
        if not force and self._blocked:
            return False

        generator = get_generator(self._settings.waveform_kind)
        return self._schedule(
            lambda device: generator.schedule(
                device.schedule_tone,
                severity,
                self._settings.master_volume,
                device.current_time,
            )
        )

    def preview(self, severity: Severity = Severity.HIGH) -> bool:
        """Play the current sound at full policy bypass (settings preview)."""
        return self.play(severity, force=True)

    def prime(self) -> bool:
        """
        Acquire the device in response to a user gesture and play the
        confirmation chirp.

        Returns:
            True if the device is ready
        """
        chirp = BeepGenerator()
        return self._schedule(
            lambda device: chirp.schedule(
                device.schedule_tone,
                Severity.LOW,
                self._settings.master_volume,
                device.current_time,
            )
        )

    def _schedule(self, dispatch: Callable[[OutputDevice], List[ToneEvent]]) -> bool:
        try:
            device = self.ensure_device_ready()
            tones = dispatch(device)
        except DeviceUnavailable as e:
            logger.warning(f"Audio unavailable, alerts continue without sound: {e}")
            self._blocked = True
            return False

        logger.debug(f"Scheduled {len(tones)} tone(s) at t={device.current_time:.3f}s")
        return True

    def set_waveform_kind(self, kind: WaveformKind) -> None:
        self._settings.waveform_kind = WaveformKind(kind)
        self._persist()

    def set_master_volume(self, volume: float) -> None:
        self._settings.master_volume = clamp_volume(volume)
        self._persist()

    def set_muted(self, muted: bool) -> None:
        self._settings.muted = bool(muted)
        self._persist()

    def _persist(self) -> None:
        if self._store is not None:
            self._store.save(self._settings)

    def suspend(self) -> None:
        """Pause output without releasing the device."""
        if self._device is None:
            return
        try:
            self._device.suspend()
        except DeviceUnavailable as e:
            logger.warning(f"Audio output could not be suspended: {e}")
            self._blocked = True

    def close(self) -> None:
        """Release the output device."""
        if self._device is not None:
            self._device.close()
            self._device = None

    def __enter__(self) -> "AudioEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
