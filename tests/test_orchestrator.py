#!/usr/bin/env python3
"""
Alert Orchestrator Tests.

Drives the flash and banner channels with a simulated-time scheduler and
checks the audio policy for each severity.

Run all tests:
    pytest tests/test_orchestrator.py -v
"""

from unittest.mock import Mock

import pytest

from auditor.alerts.orchestrator import AlertOrchestrator, AlertState, TimedChannel
from auditor.alerts.types import Severity
from auditor.audio.settings import EngineSettings


def make_audio(muted=False):
    audio = Mock()
    audio.settings = EngineSettings(muted=muted)
    audio.play.return_value = not muted
    return audio


# ==============================================================================
# Timed channel
# ==============================================================================

class TestTimedChannel:
    """Test self-clearing channel values."""

    def test_clears_after_duration(self, scheduler):
        channel = TimedChannel("flash", scheduler, on_change=Mock())
        channel.activate("x", 400)

        scheduler.advance(399)
        assert channel.value == "x"
        scheduler.advance(1)
        assert channel.value is None
        assert not channel.has_pending_timer

    def test_reactivation_cancels_previous_timer(self, scheduler):
        channel = TimedChannel("flash", scheduler, on_change=Mock())
        channel.activate("first", 400)
        first_handle = scheduler.handles[0]
        channel.activate("second", 1200)

        assert first_handle.cancelled
        scheduler.advance(400)
        assert channel.value == "second"

    def test_stale_timer_ignored(self, scheduler):
        """A timer that fires after a newer activation does not clear it."""
        channel = TimedChannel("flash", scheduler, on_change=Mock())
        channel.activate("first", 400)
        stale_callback = scheduler.handles[0].callback
        channel.activate("second", 1200)

        stale_callback()
        assert channel.value == "second"

    def test_on_change_called(self, scheduler):
        on_change = Mock()
        channel = TimedChannel("banner", scheduler, on_change=on_change)
        channel.activate("x", 100)
        scheduler.advance(100)
        assert on_change.call_count == 2


# ==============================================================================
# Visual channels
# ==============================================================================

class TestFlashChannel:
    """Test flash durations per severity."""

    @pytest.mark.parametrize("severity,duration_ms", [
        (Severity.CRITICAL, 1200),
        (Severity.HIGH, 900),
        (Severity.MEDIUM, 700),
        (Severity.LOW, 400),
        (Severity.SAFE, 500),
    ])
    def test_flash_duration(self, scheduler, make_event, severity, duration_ms):
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        window = orchestrator.handle_event(make_event(severity=severity))

        assert window.visual_duration_ms == duration_ms
        scheduler.advance(duration_ms - 1)
        assert orchestrator.active_severity == severity
        scheduler.advance(1)
        assert orchestrator.active_severity is None

    def test_newer_event_preempts_flash(self, scheduler, make_event):
        """A LOW flash arriving mid-CRITICAL runs its own full duration."""
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        orchestrator.handle_event(make_event(severity=Severity.CRITICAL))
        scheduler.advance(1000)
        orchestrator.handle_event(make_event(severity=Severity.LOW))

        scheduler.advance(300)
        assert orchestrator.active_severity == Severity.LOW
        scheduler.advance(100)
        assert orchestrator.active_severity is None

    def test_configured_durations(self, scheduler, make_event):
        orchestrator = AlertOrchestrator(
            make_audio(), scheduler, flash_durations_ms={Severity.HIGH: 250}
        )
        orchestrator.handle_event(make_event(severity=Severity.HIGH))
        scheduler.advance(250)
        assert orchestrator.active_severity is None


class TestBannerChannel:
    """Test the persistent high/critical banner."""

    @pytest.mark.parametrize("severity", [Severity.HIGH, Severity.CRITICAL])
    def test_banner_for_high_and_critical(self, scheduler, make_event, severity):
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        event = make_event(severity=severity)
        window = orchestrator.handle_event(event)

        assert window.banner_active is True
        scheduler.advance(4999)
        assert orchestrator.last_alert is event
        scheduler.advance(1)
        assert orchestrator.last_alert is None

    @pytest.mark.parametrize("severity", [Severity.LOW, Severity.MEDIUM, Severity.SAFE])
    def test_no_banner_below_high(self, scheduler, make_event, severity):
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        window = orchestrator.handle_event(make_event(severity=severity))

        assert window.banner_active is False
        assert orchestrator.last_alert is None

    def test_lower_event_keeps_banner(self, scheduler, make_event):
        """A MEDIUM event does not clear or extend a running banner."""
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        critical = make_event(severity=Severity.CRITICAL)
        orchestrator.handle_event(critical)
        scheduler.advance(2000)
        orchestrator.handle_event(make_event(severity=Severity.MEDIUM))

        assert orchestrator.last_alert is critical
        scheduler.advance(3000)
        assert orchestrator.last_alert is None

    def test_newer_banner_restarts_timer(self, scheduler, make_event):
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        orchestrator.handle_event(make_event(severity=Severity.HIGH))
        scheduler.advance(4000)
        second = make_event(severity=Severity.CRITICAL)
        orchestrator.handle_event(second)

        scheduler.advance(4000)
        assert orchestrator.last_alert is second
        scheduler.advance(1000)
        assert orchestrator.last_alert is None


# ==============================================================================
# Audio policy
# ==============================================================================

class TestAudioDispatch:
    """Test which events reach the audio engine."""

    @pytest.mark.parametrize("severity", [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL])
    def test_alerting_severities_play(self, scheduler, make_event, severity):
        audio = make_audio()
        AlertOrchestrator(audio, scheduler).handle_event(make_event(severity=severity))
        audio.play.assert_called_once_with(severity, force=False)

    def test_safe_never_plays(self, scheduler, make_event):
        audio = make_audio()
        AlertOrchestrator(audio, scheduler).handle_event(make_event(severity=Severity.SAFE))
        audio.play.assert_not_called()


# ==============================================================================
# End-to-end scenarios with the real audio engine
# ==============================================================================

class TestScenarios:
    """Events flowing through the orchestrator into a recording device."""

    def test_critical_event(self, scheduler, make_event, audio_engine, stub_device):
        """Banner 5000 ms, flash 1200 ms, siren with critical parameters."""
        from auditor.audio.waveforms import SirenGenerator

        orchestrator = AlertOrchestrator(audio_engine, scheduler)
        orchestrator.handle_event(make_event(
            severity=Severity.CRITICAL, message="No harness", location="Zone A",
            reasoning=("Worker detected.", "No harness."),
        ))

        assert [tone for _, tone in stub_device.scheduled] == SirenGenerator().plan(Severity.CRITICAL, 0.5)
        scheduler.advance(1200)
        assert orchestrator.active_severity is None
        assert orchestrator.last_alert is not None
        scheduler.advance(3800)
        assert orchestrator.last_alert is None

    def test_safe_event(self, scheduler, make_event, audio_engine, stub_device):
        """No audio, no banner, 500 ms flash, still logged."""
        orchestrator = AlertOrchestrator(audio_engine, scheduler)
        orchestrator.handle_event(make_event(severity=Severity.SAFE))

        assert stub_device.scheduled == []
        assert audio_engine.device is None
        assert orchestrator.last_alert is None
        assert len(orchestrator.event_log) == 1
        scheduler.advance(500)
        assert orchestrator.active_severity is None

    def test_muted_high_event(self, scheduler, make_event, audio_engine, stub_device):
        """Muted: no tones, but flash and banner still run."""
        audio_engine.set_muted(True)
        orchestrator = AlertOrchestrator(audio_engine, scheduler)
        event = make_event(severity=Severity.HIGH)
        orchestrator.handle_event(event)

        assert stub_device.scheduled == []
        assert orchestrator.active_severity == Severity.HIGH
        assert orchestrator.last_alert is event

    def test_device_failure_keeps_visuals(self, scheduler, make_event):
        from auditor.audio.device import DeviceUnavailable
        from auditor.audio.engine import AudioEngine

        engine = AudioEngine(EngineSettings(), device_factory=Mock(side_effect=DeviceUnavailable("gone")))
        orchestrator = AlertOrchestrator(engine, scheduler)
        orchestrator.handle_event(make_event(severity=Severity.CRITICAL))

        assert orchestrator.active_severity == Severity.CRITICAL
        assert orchestrator.last_alert is not None
        assert len(orchestrator.event_log) == 1


# ==============================================================================
# Session state
# ==============================================================================

class TestSessionState:
    """Test logging, listeners and reset."""

    def test_every_event_logged_in_order(self, scheduler, make_event):
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        events = [make_event(severity=s) for s in (Severity.SAFE, Severity.HIGH, Severity.HIGH)]
        for event in events:
            orchestrator.handle_event(event)

        assert list(orchestrator.event_log) == events

    def test_reset_clears_everything(self, scheduler, make_event):
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        orchestrator.handle_event(make_event(severity=Severity.CRITICAL))

        orchestrator.reset()

        assert orchestrator.active_severity is None
        assert orchestrator.last_alert is None
        assert not orchestrator.has_pending_timers
        assert len(orchestrator.event_log) == 0
        assert scheduler.pending == []

    def test_listener_receives_state(self, scheduler, make_event):
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        states = []
        orchestrator.add_listener(states.append)

        event = make_event(severity=Severity.HIGH)
        orchestrator.handle_event(event)

        assert states[-1] == AlertState(active_severity=Severity.HIGH, last_alert=event)
        scheduler.advance(5000)
        assert states[-1] == AlertState(active_severity=None, last_alert=None)

    def test_failing_listener_does_not_break_dispatch(self, scheduler, make_event):
        orchestrator = AlertOrchestrator(make_audio(), scheduler)
        orchestrator.add_listener(Mock(side_effect=RuntimeError("render failed")))

        orchestrator.handle_event(make_event(severity=Severity.LOW))
        assert orchestrator.active_severity == Severity.LOW
