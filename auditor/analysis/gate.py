"""
Single-flight analysis gate.

At most one frame is analysed at a time. A frame submitted while an analysis
is in flight is dropped, not queued: the oracle is slower than the capture
cadence and a queue would only grow stale.
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from auditor.alerts.types import SafetyEvent
from auditor.analysis.oracle import VisionOracle, Verdict, OracleUnavailable, MalformedVerdict
from auditor.telemetry.metrics import AnalysisMetrics, AnalysisOutcome
from auditor.utils.timing import Timer

logger = logging.getLogger(__name__)

# "1. Worker detected. 2. No harness." -> step delimiters
STEP_DELIMITER = re.compile(r"\d+\.")


def split_reasoning(text: str) -> Tuple[str, ...]:
    """
    Split a numbered reasoning trace into discrete steps.

    Falls back to the whole text as a single step when no numbered steps
    are found.
    """
    steps = tuple(s.strip() for s in STEP_DELIMITER.split(text) if s.strip())
    return steps if steps else (text,)


def build_event(
    verdict: Verdict,
    now: Optional[datetime] = None,
    event_id: Optional[str] = None,
) -> SafetyEvent:
    """Normalize an oracle verdict into a SafetyEvent."""
    return SafetyEvent(
        id=event_id or str(uuid.uuid4()),
        timestamp=now or datetime.now(timezone.utc),
        severity=verdict.severity,
        message=verdict.message,
        location=verdict.location,
        reasoning=split_reasoning(verdict.reasoning_steps),
    )


class AnalysisGate:
    """
    Guards the oracle with a single in-flight slot.

    Usage:
        gate = AnalysisGate(oracle, on_event=orchestrator.handle_event)
        event = await gate.submit(frame)   # None if dropped or failed
    """

    def __init__(
        self,
        oracle: VisionOracle,
        on_event: Optional[Callable[[SafetyEvent], object]] = None,
        telemetry=None,
    ):
        """
        Initialize analysis gate.

        Args:
            oracle: Vision oracle to call
            on_event: Receives every produced event
            telemetry: Optional TelemetryLogger for per-submission records
        """
        self._oracle = oracle
        self._on_event = on_event
        self._telemetry = telemetry
        self._in_flight = False

        # Statistics
        self._submitted = 0
        self._dropped = 0
        self._failed = 0

    @property
    def in_flight(self) -> bool:
        """True while an oracle call is outstanding."""
        return self._in_flight

    @property
    def submitted(self) -> int:
        return self._submitted

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def failed(self) -> int:
        return self._failed

    async def submit(self, frame) -> Optional[SafetyEvent]:
        """
        Analyse a frame unless another analysis is in flight.

        Never raises. Oracle failures are logged and yield None; a failing
        on_event callback is logged and the event is still returned.

        Args:
            frame: Captured frame with a JPEG payload

        Returns:
            The produced event, or None if dropped or the analysis failed
        """
        if self._in_flight:
            self._dropped += 1
            logger.debug(f"Analysis in flight - dropping frame {frame.sequence}")
            self._record(frame, AnalysisOutcome.DROPPED)
            return None

        self._in_flight = True
        self._submitted += 1
        timer = Timer().start()
        try:
            verdict = await self._oracle.analyze(frame.payload)
        except OracleUnavailable as e:
            self._failed += 1
            logger.warning(f"Oracle unavailable: {e}")
            self._record(frame, AnalysisOutcome.ERROR, timer.stop())
            return None
        except MalformedVerdict as e:
            self._failed += 1
            logger.warning(f"Malformed oracle verdict: {e}")
            self._record(frame, AnalysisOutcome.MALFORMED, timer.stop())
            return None
        except Exception as e:
            self._failed += 1
            logger.exception(f"Analysis loop error: {e}")
            self._record(frame, AnalysisOutcome.ERROR, timer.stop())
            return None
        finally:
            self._in_flight = False

        event = build_event(verdict)
        latency_ms = timer.stop()
        logger.info(
            f"Frame {frame.sequence} analysed in {latency_ms:.0f} ms: "
            f"{event.severity.value} ({len(event.reasoning)} step(s))"
        )
        self._record(frame, AnalysisOutcome.EVENT, latency_ms, event)

        if self._on_event is not None:
            try:
                self._on_event(event)
            except Exception as e:
                logger.exception(f"Alert dispatch error for event {event.id}: {e}")
        return event

    def _record(
        self,
        frame,
        outcome: AnalysisOutcome,
        latency_ms: Optional[float] = None,
        event: Optional[SafetyEvent] = None,
    ) -> None:
        if self._telemetry is None:
            return
        self._telemetry.log_analysis(
            AnalysisMetrics(
                frame_seq=frame.sequence,
                outcome=outcome,
                oracle_latency_ms=latency_ms,
                severity=event.severity.value if event else None,
                event_id=event.id if event else None,
                dropped_total=self._dropped,
            )
        )
