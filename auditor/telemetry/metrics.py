"""
Analysis metrics data structures.

One AnalysisMetrics record is produced for every frame submitted to the
analysis gate, whether it was analysed, dropped or failed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any


class AnalysisOutcome(Enum):
    """What happened to a submitted frame."""
    EVENT = "event"            # Oracle returned a verdict, event produced
    DROPPED = "dropped"        # Another analysis was in flight
    ERROR = "error"            # Oracle unreachable or unexpected failure
    MALFORMED = "malformed"    # Oracle answer matched neither shape


@dataclass
class AnalysisMetrics:
    """
    Metrics for a single submission.

    Latency values are in milliseconds.
    """
    frame_seq: int
    outcome: AnalysisOutcome
    oracle_latency_ms: Optional[float] = None
    severity: Optional[str] = None
    event_id: Optional[str] = None
    dropped_total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "frame_seq": self.frame_seq,
            "outcome": self.outcome.value,
            "oracle_latency_ms": round(self.oracle_latency_ms, 1) if self.oracle_latency_ms is not None else None,
            "severity": self.severity,
            "event_id": self.event_id,
            "dropped_total": self.dropped_total,
        }
