"""Shared fixtures for the Industrial Safety Auditor tests."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


class FakeTimerHandle:
    """Timer handle with the cancel() surface of asyncio.TimerHandle."""

    def __init__(self, due_ms: int, callback):
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """
    Scheduler driven by simulated time.

    Time is kept in integer milliseconds so durations compare exactly.
    """

    def __init__(self):
        self.now_ms = 0
        self.handles = []

    def call_later(self, delay_s: float, callback) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.now_ms + int(round(delay_s * 1000)), callback)
        self.handles.append(handle)
        return handle

    def time(self) -> float:
        return self.now_ms / 1000.0

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, ms: int) -> None:
        """Move time forward, firing due timers in order."""
        target = self.now_ms + ms
        while True:
            due = [h for h in self.pending if h.due_ms <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due_ms)
            self.now_ms = handle.due_ms
            handle.fired = True
            handle.callback()
        self.now_ms = target


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def stub_device():
    from auditor.audio.device import StubOutputDevice
    return StubOutputDevice()


@pytest.fixture
def audio_engine(stub_device):
    from auditor.audio.engine import AudioEngine
    from auditor.audio.settings import EngineSettings
    return AudioEngine(EngineSettings(), device_factory=lambda: stub_device)


@pytest.fixture
def make_event():
    """Factory for SafetyEvents with sensible defaults."""
    from auditor.alerts.types import SafetyEvent, Severity

    counter = {"n": 0}

    def _make(severity=Severity.HIGH, message="Worker without hard hat",
              location="Scaffolding Zone A", reasoning=("Worker detected.", "No helmet.")):
        counter["n"] += 1
        return SafetyEvent(
            id=f"evt-{counter['n']}",
            timestamp=datetime(2024, 5, 1, 12, 30, counter["n"], tzinfo=timezone.utc),
            severity=severity,
            message=message,
            location=location,
            reasoning=tuple(reasoning),
        )

    return _make
