"""
Engine settings and their persistence.

Settings survive across sessions in a small JSON file. Missing or corrupt
values fall back to the defaults (siren, 0.5, unmuted).
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from auditor.audio.waveforms import WaveformKind, clamp_volume

logger = logging.getLogger(__name__)

DEFAULT_WAVEFORM = WaveformKind.SIREN
DEFAULT_VOLUME = 0.5
VOLUME_STEP = 0.05


@dataclass
class EngineSettings:
    """User-controlled audio settings."""
    waveform_kind: WaveformKind = DEFAULT_WAVEFORM
    master_volume: float = DEFAULT_VOLUME
    muted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sound": self.waveform_kind.value,
            "volume": round(self.master_volume, 4),
            "muted": self.muted,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineSettings":
        """Build settings from stored values, ignoring anything invalid."""
        settings = cls()

        try:
            settings.waveform_kind = WaveformKind(data.get("sound", DEFAULT_WAVEFORM.value))
        except ValueError:
            logger.warning(f"Ignoring unknown stored sound: {data.get('sound')!r}")

        try:
            settings.master_volume = clamp_volume(data.get("volume", DEFAULT_VOLUME))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid stored volume: {data.get('volume')!r}")

        muted = data.get("muted", False)
        if isinstance(muted, bool):
            settings.muted = muted

        return settings


def snap_volume(volume: float) -> float:
    """Clamp a volume to [0, 1] and round it to the nearest VOLUME_STEP."""
    return round(round(clamp_volume(volume) / VOLUME_STEP) * VOLUME_STEP, 2)


class SettingsStore:
    """
    JSON file store for EngineSettings.

    Usage:
        store = SettingsStore("settings.json")
        settings = store.load()
        ...
        store.save(settings)
    """

    def __init__(self, path: Optional[str] = None):
        """
        Args:
            path: Settings file path; None keeps settings in memory only
        """
        self._path = Path(path) if path else None

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def load(self) -> EngineSettings:
        """Read settings, falling back to defaults for anything absent."""
        if self._path is None or not self._path.exists():
            return EngineSettings()

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read settings from {self._path}: {e}")
            return EngineSettings()

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed settings file: {self._path}")
            return EngineSettings()

        return EngineSettings.from_dict(data)

    def save(self, settings: EngineSettings) -> bool:
        """
        Persist settings.

        Returns:
            True if written, False if there is no file or the write failed
        """
        if self._path is None:
            return False

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(settings.to_dict(), f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Settings write error: {e}")
            return False
