"""
Configuration management for the Industrial Safety Auditor.

Handles loading, validation, and access to system configuration.
"""

import yaml
from dataclasses import dataclass, field
from typing import Tuple, Optional, Any, Dict
from pathlib import Path

from auditor.alerts.types import Severity
from auditor.alerts.orchestrator import FLASH_DURATIONS_MS, BANNER_DURATION_MS


@dataclass
class SystemConfig:
    """Top-level system configuration."""
    log_level: str = "INFO"
    telemetry_file: str = "telemetry.jsonl"
    telemetry_flush_interval_s: float = 1.0
    settings_file: str = "auditor_settings.json"


@dataclass
class CaptureConfig:
    """Frame capture configuration."""
    resolution: Tuple[int, int] = (1280, 720)
    camera_index: int = 0
    interval_ms: int = 5000
    jpeg_quality: int = 70


@dataclass
class OracleConfig:
    """Vision oracle configuration."""
    model: str = "gemini-3-flash-preview"
    api_key_env: str = "GEMINI_API_KEY"
    temperature: float = 0.2
    thinking_budget: int = 2048


@dataclass
class AudioConfig:
    """Audio output configuration."""
    enabled: bool = True
    sample_rate: int = 44100
    buffer_size: int = 512


@dataclass
class AlertConfig:
    """Alert channel timing."""
    banner_duration_ms: int = BANNER_DURATION_MS
    flash_durations_ms: Dict[Severity, int] = field(default_factory=lambda: dict(FLASH_DURATIONS_MS))


@dataclass
class ExportConfig:
    """CSV export configuration."""
    directory: str = "."
    export_on_stop: bool = False


@dataclass
class Config:
    """Complete system configuration."""
    system: SystemConfig = field(default_factory=SystemConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    export: ExportConfig = field(default_factory=ExportConfig)


def _parse_flash_durations(data: Dict[str, Any]) -> Dict[Severity, int]:
    """Parse per-severity flash durations, keeping defaults for missing keys."""
    durations = dict(FLASH_DURATIONS_MS)
    for key, value in data.items():
        durations[Severity.parse(key)] = int(value)
    return durations


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default config.yaml

    Returns:
        Populated Config object

    Raises:
        yaml.YAMLError: If config file is malformed
        ValueError: If a value has the wrong type or an unknown severity
    """
    if config_path is None:
        # Look for config.yaml in project root
        config_path = Path(__file__).parent.parent / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        return Config()

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    config = Config()

    if "system" in data:
        sys_data = data["system"]
        config.system = SystemConfig(
            log_level=sys_data.get("log_level", "INFO"),
            telemetry_file=sys_data.get("telemetry_file", "telemetry.jsonl"),
            telemetry_flush_interval_s=sys_data.get("telemetry_flush_interval_s", 1.0),
            settings_file=sys_data.get("settings_file", "auditor_settings.json"),
        )

    if "capture" in data:
        cap_data = data["capture"]
        resolution = cap_data.get("resolution", [1280, 720])
        config.capture = CaptureConfig(
            resolution=tuple(resolution),
            camera_index=cap_data.get("camera_index", 0),
            interval_ms=cap_data.get("interval_ms", 5000),
            jpeg_quality=cap_data.get("jpeg_quality", 70),
        )

    if "oracle" in data:
        oracle_data = data["oracle"]
        config.oracle = OracleConfig(
            model=oracle_data.get("model", "gemini-3-flash-preview"),
            api_key_env=oracle_data.get("api_key_env", "GEMINI_API_KEY"),
            temperature=oracle_data.get("temperature", 0.2),
            thinking_budget=oracle_data.get("thinking_budget", 2048),
        )

    if "audio" in data:
        audio_data = data["audio"]
        config.audio = AudioConfig(
            enabled=audio_data.get("enabled", True),
            sample_rate=audio_data.get("sample_rate", 44100),
            buffer_size=audio_data.get("buffer_size", 512),
        )

    if "alerts" in data:
        alert_data = data["alerts"]
        config.alerts = AlertConfig(
            banner_duration_ms=alert_data.get("banner_duration_ms", BANNER_DURATION_MS),
            flash_durations_ms=_parse_flash_durations(alert_data.get("flash_durations_ms", {})),
        )

    if "export" in data:
        export_data = data["export"]
        config.export = ExportConfig(
            directory=export_data.get("directory", "."),
            export_on_stop=export_data.get("export_on_stop", False),
        )

    return config
