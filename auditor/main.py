#!/usr/bin/env python3
"""
Industrial Safety Auditor - Main Entry Point

Samples a camera or video feed every few seconds, asks a Gemini vision model
for an OSHA-style verdict, and raises flash, banner and audio alerts scaled
to the reported severity.

Usage:
    # Webcam, default 5 s cadence
    python -m auditor.main --source webcam

    # Recorded footage, faster cadence, siren at 70 %
    python -m auditor.main --source video --video-path yard.mp4 --interval-ms 3000 --volume 0.7

    # Audition the critical alarm and exit
    python -m auditor.main --preview critical --sound pulse
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
import time
from pathlib import Path
from typing import Optional, Set

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from auditor.config import Config, load_config
from auditor.capture import create_camera_adapter, FrameSource, CaptureConfig
from auditor.alerts import AlertOrchestrator, AlertState, Severity, export_csv
from auditor.analysis import AnalysisGate, GeminiOracle
from auditor.audio import AudioEngine, SettingsStore, WaveformKind, create_output_device, get_generator
from auditor.audio.settings import snap_volume
from auditor.telemetry import TelemetryLogger
from auditor.utils.timing import LoopScheduler

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def log_alert_state(state: AlertState) -> None:
    """Console stand-in for the flash overlay and the alert banner."""
    flash = state.active_severity.display_name if state.active_severity else "-"
    if state.last_alert is not None:
        banner = f"{state.last_alert.severity.display_name}: {state.last_alert.message}"
    else:
        banner = "-"
    logger.info(f"[DISPLAY] flash={flash} banner={banner}")


class SafetyAuditor:
    """
    Main application class for the Industrial Safety Auditor.

    One monitoring session:
    1. start(): user gesture, acquires audio and plays the ready chirp
    2. run(): capture a frame every interval and submit it to the gate
    3. The gate calls the oracle; each verdict becomes a SafetyEvent
    4. The orchestrator logs the event and drives flash, banner and audio
    5. stop(): cancel in-flight analysis, export, reset, release devices
    """

    def __init__(
        self,
        config: Config,
        source: FrameSource,
        video_path: Optional[str] = None,
    ):
        """
        Initialize Safety Auditor.

        Args:
            config: System configuration
            source: Frame source type
            video_path: Path to video file (if source is VIDEO_FILE)
        """
        self._config = config
        self._source = source
        self._video_path = video_path

        # Running state
        self._stop_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()
        self._frames_captured = 0

        # Module instances (initialized in setup)
        self._camera = None
        self._oracle = None
        self._audio: Optional[AudioEngine] = None
        self._orchestrator: Optional[AlertOrchestrator] = None
        self._gate: Optional[AnalysisGate] = None
        self._telemetry: Optional[TelemetryLogger] = None

        # Signal handling
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    @property
    def audio(self) -> Optional[AudioEngine]:
        return self._audio

    @property
    def orchestrator(self) -> Optional[AlertOrchestrator]:
        return self._orchestrator

    def setup(self) -> bool:
        """
        Initialize all system modules.

        Returns:
            True if all critical modules initialized successfully
        """
        logger.info("=" * 60)
        logger.info("Industrial Safety Auditor - Initializing")
        logger.info("=" * 60)

        # 1. Oracle first: without it there is nothing to monitor
        if not self._setup_oracle():
            return False

        # 2. Camera
        if not self._setup_camera():
            return False

        # 3. Audio engine (device stays closed until start())
        self._setup_audio()

        # 4. Telemetry
        self._setup_telemetry()

        # 5. Orchestrator and gate
        self._setup_alerts()

        logger.info("=" * 60)
        logger.info("System initialization complete")
        logger.info("=" * 60)
        return True

    def _setup_oracle(self) -> bool:
        """Create the Gemini oracle. CRITICAL - aborts without an API key."""
        oracle_config = self._config.oracle
        api_key = os.environ.get(oracle_config.api_key_env)
        if not api_key:
            logger.critical(f"Environment variable {oracle_config.api_key_env} is not set")
            logger.critical("System cannot start without oracle credentials")
            return False

        self._oracle = GeminiOracle(
            api_key=api_key,
            model=oracle_config.model,
            temperature=oracle_config.temperature,
            thinking_budget=oracle_config.thinking_budget,
        )
        logger.info(f"Oracle initialized: {oracle_config.model}")
        return True

    def _setup_camera(self) -> bool:
        """Initialize camera adapter."""
        try:
            capture_config = CaptureConfig(
                resolution=self._config.capture.resolution,
                source=self._source,
                video_path=self._video_path,
                camera_index=self._config.capture.camera_index,
                jpeg_quality=self._config.capture.jpeg_quality,
            )

            self._camera = create_camera_adapter(capture_config)

            if not self._camera.initialize():
                logger.error("Camera initialization failed")
                return False

            logger.info(f"Camera initialized: {self._source.value}")
            return True

        except ValueError as e:
            logger.error(f"Camera setup failed: {e}")
            return False

    def _setup_audio(self) -> None:
        """Initialize the audio engine from persisted settings."""
        audio_config = self._config.audio
        self._audio = build_audio_engine(self._config)
        settings = self._audio.settings
        logger.info(
            f"Audio engine initialized (output={'pygame' if audio_config.enabled else 'stub'}, "
            f"sound={settings.waveform_kind.value}, volume={settings.master_volume:.2f}, "
            f"muted={settings.muted})"
        )

    def _setup_telemetry(self) -> None:
        """Initialize telemetry logger."""
        log_file = Path(PROJECT_ROOT) / self._config.system.telemetry_file

        self._telemetry = TelemetryLogger(
            log_file=str(log_file),
            flush_interval=self._config.system.telemetry_flush_interval_s,
        )
        self._telemetry.start()
        logger.info(f"Telemetry logging to: {log_file}")

    def _setup_alerts(self) -> None:
        """Initialize orchestrator and analysis gate."""
        self._orchestrator = AlertOrchestrator(
            audio=self._audio,
            scheduler=LoopScheduler(),
            flash_durations_ms=self._config.alerts.flash_durations_ms,
            banner_duration_ms=self._config.alerts.banner_duration_ms,
        )
        self._orchestrator.add_listener(log_alert_state)

        self._gate = AnalysisGate(
            self._oracle,
            on_event=self._orchestrator.handle_event,
            telemetry=self._telemetry,
        )
        logger.info("Alert orchestrator initialized")

    def start(self) -> None:
        """Begin monitoring: the user gesture that unlocks audio output."""
        if self._audio.prime():
            logger.info("Audio ready")
        else:
            logger.warning("Audio unavailable - continuing with visual alerts only")

    async def run(self) -> None:
        """
        Run the capture loop until stopped.

        A frame is captured every interval and submitted to the gate without
        waiting for the verdict; the gate drops frames while an analysis is
        in flight.
        """
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        interval_s = self._config.capture.interval_ms / 1000.0

        self.start()
        logger.info(f"Monitoring started (interval {self._config.capture.interval_ms} ms)")

        try:
            while not self._stop_event.is_set():
                frame = await asyncio.to_thread(self._camera.capture)
                if frame is not None:
                    self._frames_captured += 1
                    self._spawn_analysis(frame)
                elif not self._camera.is_healthy():
                    logger.error("Capture source is no longer healthy - stopping")
                    break

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval_s)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.stop()

    def _spawn_analysis(self, frame) -> None:
        task = asyncio.create_task(self._gate.submit(frame))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def stop(self) -> None:
        """End the session: cancel analysis, export, clear alert state and release audio."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        if self._config.export.export_on_stop:
            path = export_csv(self._orchestrator.event_log, self._config.export.directory)
            if path is not None:
                logger.info(f"Exported audit log: {path}")

        event_log = self._orchestrator.event_log
        logger.info(
            f"Session summary: {self._frames_captured} frames captured, "
            f"{self._gate.submitted} analysed, {self._gate.dropped} dropped, "
            f"{self._gate.failed} failed, {len(event_log)} events"
        )
        if event_log.latest is not None:
            logger.info(
                f"Last event: {event_log.latest.severity.display_name} "
                f"at {event_log.latest.location}: {event_log.latest.message}"
            )
        if self._audio.is_blocked:
            logger.warning("Audio output was unavailable for part of the session")

        self._orchestrator.reset()
        self._audio.close()
        logger.info("Monitoring stopped")

    def request_stop(self) -> None:
        """Ask the capture loop to exit; safe to call from any thread."""
        if self._loop is not None and self._stop_event is not None:
            self._loop.call_soon_threadsafe(self._stop_event.set)

    def cleanup(self) -> None:
        """Clean up all resources."""
        logger.info("Cleaning up...")

        if self._telemetry:
            self._telemetry.stop()

        if self._audio:
            self._audio.close()

        if self._camera:
            self._camera.release()

        logger.info("Cleanup complete")

    def _signal_handler(self, signum, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        self.request_stop()


def build_audio_engine(config: Config) -> AudioEngine:
    """Create an AudioEngine backed by the persisted settings file."""
    audio_config = config.audio
    store = SettingsStore(str(Path(PROJECT_ROOT) / config.system.settings_file))
    return AudioEngine(
        settings=store.load(),
        store=store,
        device_factory=lambda: create_output_device(
            enabled=audio_config.enabled,
            sample_rate=audio_config.sample_rate,
            buffer_size=audio_config.buffer_size,
        ),
    )


def apply_audio_overrides(engine: AudioEngine, args: argparse.Namespace) -> None:
    """Apply --sound/--volume/--mute to the engine; each change is persisted."""
    if args.sound:
        engine.set_waveform_kind(WaveformKind(args.sound))
    if args.volume is not None:
        engine.set_master_volume(args.volume)
    if args.mute is not None:
        engine.set_muted(args.mute)


def run_preview(engine: AudioEngine, severity: Severity) -> int:
    """Play one alert at the current settings and wait for it to finish."""
    settings = engine.settings
    generator = get_generator(settings.waveform_kind)
    tones = generator.plan(severity, settings.master_volume)
    duration_s = max((tone.end_offset for tone in tones), default=0.0)

    logger.info(f"Previewing {settings.waveform_kind.value} at {severity.display_name}")
    try:
        if not engine.preview(severity):
            logger.error("Preview failed - audio device unavailable")
            return 1
        time.sleep(duration_s + 0.2)
        return 0
    finally:
        engine.close()


def volume_arg(value: str) -> float:
    """argparse type for --volume: a finite number, snapped to the volume step."""
    try:
        return snap_volume(float(value))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid volume: {value!r}")


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Industrial Safety Auditor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Webcam, default 5 s cadence
  python -m auditor.main --source webcam

  # Recorded footage with CSV export on exit
  python -m auditor.main --source video --video-path yard.mp4 --export-csv

  # Audition the critical alarm and exit
  python -m auditor.main --preview critical --sound siren
        """,
    )

    # Input source
    source_group = parser.add_argument_group("Input Source")
    source_group.add_argument(
        "--source",
        type=str,
        choices=["webcam", "video"],
        default="webcam",
        help="Frame source (default: webcam)",
    )
    source_group.add_argument(
        "--video-path",
        type=str,
        default=None,
        help="Path to video file (required if source=video)",
    )
    source_group.add_argument(
        "--camera-index",
        type=int,
        default=None,
        help="Camera index for webcam source (default: from config)",
    )
    source_group.add_argument(
        "--interval-ms",
        type=int,
        default=None,
        help="Analysis cadence in milliseconds (default: from config)",
    )

    # Audio
    audio_group = parser.add_argument_group("Audio")
    audio_group.add_argument(
        "--sound",
        type=str,
        choices=[kind.value for kind in WaveformKind],
        default=None,
        help="Alert sound (saved for future sessions)",
    )
    audio_group.add_argument(
        "--volume",
        type=volume_arg,
        default=None,
        help="Master volume 0.0-1.0 in 0.05 steps (saved for future sessions)",
    )
    mute_mutex = audio_group.add_mutually_exclusive_group()
    mute_mutex.add_argument(
        "--mute",
        dest="mute",
        action="store_const",
        const=True,
        default=None,
        help="Silence alert audio (saved for future sessions)",
    )
    mute_mutex.add_argument(
        "--unmute",
        dest="mute",
        action="store_const",
        const=False,
        help="Re-enable alert audio",
    )
    audio_group.add_argument(
        "--no-audio",
        action="store_true",
        help="Use the silent stub output device",
    )
    audio_group.add_argument(
        "--preview",
        type=str,
        choices=[s.value for s in Severity if s.is_alerting],
        default=None,
        help="Play the alert for SEVERITY at the current settings and exit",
    )

    # Configuration
    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration YAML file",
    )
    config_group.add_argument(
        "--export-csv",
        action="store_true",
        help="Export the event log to CSV when monitoring stops",
    )
    config_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from config)",
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    # Set logging level
    logging.getLogger().setLevel(getattr(logging, args.log_level or config.system.log_level))

    # Apply CLI overrides
    if args.camera_index is not None:
        config.capture.camera_index = args.camera_index

    if args.interval_ms is not None:
        if args.interval_ms <= 0:
            logger.error(f"Invalid interval: {args.interval_ms}")
            return 1
        config.capture.interval_ms = args.interval_ms

    if args.no_audio:
        config.audio.enabled = False

    if args.export_csv:
        config.export.export_on_stop = True

    if args.preview:
        engine = build_audio_engine(config)
        apply_audio_overrides(engine, args)
        return run_preview(engine, Severity.parse(args.preview))

    # Determine frame source
    source_map = {
        "webcam": FrameSource.WEBCAM,
        "video": FrameSource.VIDEO_FILE,
    }
    source = source_map[args.source]

    # Validate video path
    if source == FrameSource.VIDEO_FILE and not args.video_path:
        logger.error("--video-path required when source=video")
        return 1

    # Create and run application
    app = SafetyAuditor(config=config, source=source, video_path=args.video_path)

    try:
        if not app.setup():
            logger.critical("System setup failed - aborting")
            return 1

        apply_audio_overrides(app.audio, args)
        asyncio.run(app.run())
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1
    finally:
        app.cleanup()


if __name__ == "__main__":
    sys.exit(main())
