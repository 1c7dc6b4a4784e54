"""
Alert orchestrator - fans each analysed event out to the alert channels.

Channels:
- Event log: every event, including SAFE
- Flash: full-screen colour for a severity-specific duration
- Banner: persistent "last alert" for HIGH and CRITICAL only
- Audio: waveform for every non-SAFE event
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .types import Severity, SafetyEvent, AlertWindow
from .event_log import EventLog

logger = logging.getLogger(__name__)

FLASH_DURATIONS_MS: Dict[Severity, int] = {
    Severity.CRITICAL: 1200,
    Severity.HIGH: 900,
    Severity.MEDIUM: 700,
    Severity.LOW: 400,
    Severity.SAFE: 500,
}

BANNER_DURATION_MS = 5000
BANNER_SEVERITIES = frozenset({Severity.HIGH, Severity.CRITICAL})


@dataclass(frozen=True)
class AlertState:
    """Snapshot of the visual channels."""
    active_severity: Optional[Severity]
    last_alert: Optional[SafetyEvent]


class TimedChannel:
    """
    A value that clears itself after a timeout.

    A new activation cancels the pending clear and bumps the channel token;
    a clear only applies if its token is still current, so a late timer
    never wipes a newer value.
    """

    def __init__(self, name: str, scheduler, on_change: Callable[[], None]):
        """
        Args:
            name: Channel name for logging
            scheduler: Object with call_later(delay_s, callback) -> handle
            on_change: Called whenever the value changes
        """
        self._name = name
        self._scheduler = scheduler
        self._on_change = on_change
        self._value: Optional[Any] = None
        self._token = 0
        self._handle = None

    @property
    def value(self) -> Optional[Any]:
        return self._value

    @property
    def is_active(self) -> bool:
        return self._value is not None

    @property
    def has_pending_timer(self) -> bool:
        return self._handle is not None

    def activate(self, value: Any, duration_ms: int) -> None:
        """Set the value and schedule it to clear after duration_ms."""
        self._cancel_pending()
        self._token += 1
        token = self._token
        self._value = value
        self._handle = self._scheduler.call_later(
            duration_ms / 1000.0, lambda: self._expire(token)
        )
        self._on_change()

    def reset(self) -> None:
        """Cancel any pending clear and drop the value."""
        self._cancel_pending()
        self._token += 1
        if self._value is not None:
            self._value = None
            self._on_change()

    def _expire(self, token: int) -> None:
        if token != self._token:
            logger.debug(f"Ignoring stale {self._name} timer")
            return
        self._handle = None
        self._value = None
        self._on_change()

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AlertOrchestrator:
    """
    Drives log, flash, banner and audio for each incoming SafetyEvent.

    Runs for the whole monitoring session; reset() on session stop cancels
    all timers and clears accumulated state.
    """

    def __init__(
        self,
        audio,
        scheduler,
        event_log: Optional[EventLog] = None,
        flash_durations_ms: Optional[Dict[Severity, int]] = None,
        banner_duration_ms: int = BANNER_DURATION_MS,
    ):
        """
        Initialize alert orchestrator.

        Args:
            audio: Audio engine used for alert sounds
            scheduler: Timer scheduler (see utils.timing.LoopScheduler)
            event_log: Log receiving every event
            flash_durations_ms: Per-severity flash durations
            banner_duration_ms: Banner display time
        """
        self._audio = audio
        self._event_log = event_log if event_log is not None else EventLog()
        self._flash_durations_ms = dict(FLASH_DURATIONS_MS)
        if flash_durations_ms:
            self._flash_durations_ms.update(flash_durations_ms)
        self._banner_duration_ms = banner_duration_ms
        self._listeners: List[Callable[[AlertState], None]] = []

        self._flash = TimedChannel("flash", scheduler, self._notify)
        self._banner = TimedChannel("banner", scheduler, self._notify)

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def active_severity(self) -> Optional[Severity]:
        """Severity currently flashing, or None."""
        return self._flash.value

    @property
    def last_alert(self) -> Optional[SafetyEvent]:
        """Event shown in the persistent banner, or None."""
        return self._banner.value

    @property
    def state(self) -> AlertState:
        return AlertState(active_severity=self._flash.value, last_alert=self._banner.value)

    @property
    def has_pending_timers(self) -> bool:
        return self._flash.has_pending_timer or self._banner.has_pending_timer

    def add_listener(self, callback: Callable[[AlertState], None]) -> None:
        """Register a callback receiving an AlertState on every channel change."""
        self._listeners.append(callback)

    def flash_duration_ms(self, severity: Severity) -> int:
        return self._flash_durations_ms[severity]

    def handle_event(self, event: SafetyEvent) -> AlertWindow:
        """
        Dispatch one event to every channel.

        Args:
            event: Newly produced event

        Returns:
            AlertWindow describing the effects that were started
        """
        self._event_log.append(event)

        duration_ms = self.flash_duration_ms(event.severity)
        self._flash.activate(event.severity, duration_ms)

        banner_active = event.severity in BANNER_SEVERITIES
        if banner_active:
            self._banner.activate(event, self._banner_duration_ms)

        if event.severity.is_alerting:
            logger.warning(
                f"[{event.severity.value.upper()}] {event.message} @ {event.location}"
            )
            played = self._audio.play(event.severity, force=False)
            logger.info(
                f"[AUDIO TRIGGER] Type: {self._audio.settings.waveform_kind.value}, "
                f"Severity: {event.severity.value}, played={played}"
            )
        else:
            logger.info(f"[SAFE] {event.message} @ {event.location}")

        return AlertWindow(
            severity=event.severity,
            visual_duration_ms=duration_ms,
            banner_active=banner_active,
        )

    def reset(self) -> None:
        """Cancel pending timers and clear channels and the event log."""
        self._flash.reset()
        self._banner.reset()
        self._event_log.clear()
        logger.info("Alert orchestrator reset")

    def _notify(self) -> None:
        state = self.state
        for callback in self._listeners:
            try:
                callback(state)
            except Exception as e:
                logger.exception(f"Alert listener error: {e}")
