#!/usr/bin/env python3
"""
Analysis Gate Tests.

Tests single-flight submission, verdict normalization and error recovery.

Run all tests:
    pytest tests/test_gate.py -v
"""

import asyncio
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from auditor.alerts.types import Severity
from auditor.analysis.gate import AnalysisGate, build_event, split_reasoning
from auditor.analysis.oracle import MalformedVerdict, OracleUnavailable, Verdict
from auditor.capture.frame import Frame, FrameSource
from auditor.telemetry.metrics import AnalysisOutcome

CRITICAL_VERDICT = Verdict(
    severity=Severity.CRITICAL,
    message="No harness",
    location="Zone A",
    reasoning_steps="1. Worker detected. 2. No harness.",
)


def make_frame(sequence=1):
    return Frame(
        payload=b"\xff\xd8jpeg",
        timestamp=float(sequence),
        sequence=sequence,
        source=FrameSource.WEBCAM,
        width=640,
        height=480,
    )


class GatedOracle:
    """Oracle whose answer is held until release() is called."""

    def __init__(self, verdict=CRITICAL_VERDICT):
        self.verdict = verdict
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._release = None

    def release(self):
        self._release.set()

    async def analyze(self, image, mime_type="image/jpeg"):
        if self._release is None:
            self._release = asyncio.Event()
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self._release.wait()
            return self.verdict
        finally:
            self.active -= 1


# ==============================================================================
# Reasoning normalization
# ==============================================================================

class TestSplitReasoning:
    """Test splitting numbered reasoning traces."""

    def test_numbered_steps(self):
        assert split_reasoning("1. Worker detected. 2. No harness.") == (
            "Worker detected.",
            "No harness.",
        )

    def test_no_numbers_falls_back_to_whole_text(self):
        assert split_reasoning("Everything looks compliant") == ("Everything looks compliant",)

    def test_only_delimiters_falls_back(self):
        assert split_reasoning("1. 2. ") == ("1. 2. ",)

    def test_multi_digit_steps(self):
        text = " ".join(f"{i}. step {i}" for i in range(1, 12))
        steps = split_reasoning(text)
        assert len(steps) == 11
        assert steps[-1] == "step 11"


class TestBuildEvent:
    """Test verdict to event conversion."""

    def test_event_fields(self):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        event = build_event(CRITICAL_VERDICT, now=now, event_id="abc")

        assert event.id == "abc"
        assert event.timestamp == now
        assert event.severity == Severity.CRITICAL
        assert event.reasoning == ("Worker detected.", "No harness.")

    def test_defaults(self):
        event = build_event(CRITICAL_VERDICT)

        uuid.UUID(event.id)
        assert event.timestamp.tzinfo is not None

    def test_ids_unique(self):
        assert build_event(CRITICAL_VERDICT).id != build_event(CRITICAL_VERDICT).id


# ==============================================================================
# Single flight
# ==============================================================================

class TestSingleFlight:
    """Test that at most one oracle call is outstanding."""

    def test_submission_while_in_flight_is_dropped(self):
        oracle = GatedOracle()
        gate = AnalysisGate(oracle)

        async def scenario():
            first = asyncio.create_task(gate.submit(make_frame(1)))
            await asyncio.sleep(0)
            assert gate.in_flight

            second = await gate.submit(make_frame(2))
            oracle.release()
            return await first, second

        first, second = asyncio.run(scenario())

        assert second is None
        assert first is not None
        assert oracle.calls == 1
        assert oracle.max_active == 1
        assert gate.dropped == 1
        assert not gate.in_flight

    def test_slot_reopens_after_completion(self):
        oracle = AsyncMock()
        oracle.analyze.return_value = CRITICAL_VERDICT
        gate = AnalysisGate(oracle)

        async def scenario():
            await gate.submit(make_frame(1))
            await gate.submit(make_frame(2))

        asyncio.run(scenario())
        assert oracle.analyze.await_count == 2
        assert gate.dropped == 0

    def test_slot_released_on_cancellation(self):
        oracle = GatedOracle()
        gate = AnalysisGate(oracle)

        async def scenario():
            task = asyncio.create_task(gate.submit(make_frame(1)))
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert not gate.in_flight


# ==============================================================================
# Outcomes
# ==============================================================================

class TestOutcomes:
    """Test event delivery and failure recovery."""

    def test_event_delivered_to_callback(self):
        oracle = AsyncMock()
        oracle.analyze.return_value = CRITICAL_VERDICT
        on_event = Mock()
        gate = AnalysisGate(oracle, on_event=on_event)

        event = asyncio.run(gate.submit(make_frame()))

        on_event.assert_called_once_with(event)
        assert event.reasoning == ("Worker detected.", "No harness.")
        oracle.analyze.assert_awaited_once_with(b"\xff\xd8jpeg")

    @pytest.mark.parametrize("error", [
        OracleUnavailable("quota exceeded"),
        MalformedVerdict("no function call"),
        KeyError("unexpected"),
    ])
    def test_errors_yield_no_event(self, error):
        oracle = AsyncMock()
        oracle.analyze.side_effect = error
        on_event = Mock()
        gate = AnalysisGate(oracle, on_event=on_event)

        assert asyncio.run(gate.submit(make_frame())) is None
        on_event.assert_not_called()
        assert gate.failed == 1
        assert not gate.in_flight

    def test_dispatch_failure_is_not_raised(self):
        """A failing alert callback still yields the event and frees the slot."""
        oracle = AsyncMock()
        oracle.analyze.return_value = CRITICAL_VERDICT
        on_event = Mock(side_effect=RuntimeError("listener broke"))
        gate = AnalysisGate(oracle, on_event=on_event)

        event = asyncio.run(gate.submit(make_frame()))

        assert event is not None
        assert event.severity == Severity.CRITICAL
        on_event.assert_called_once_with(event)
        assert gate.failed == 0
        assert not gate.in_flight

    def test_telemetry_records(self):
        oracle = AsyncMock()
        oracle.analyze.side_effect = [MalformedVerdict("bad"), CRITICAL_VERDICT]
        telemetry = Mock()
        gate = AnalysisGate(oracle, telemetry=telemetry)

        async def scenario():
            await gate.submit(make_frame(1))
            return await gate.submit(make_frame(2))

        event = asyncio.run(scenario())

        first, second = [c.args[0] for c in telemetry.log_analysis.call_args_list]
        assert first.outcome == AnalysisOutcome.MALFORMED
        assert first.frame_seq == 1
        assert second.outcome == AnalysisOutcome.EVENT
        assert second.event_id == event.id
        assert second.severity == "critical"
        assert second.oracle_latency_ms >= 0
