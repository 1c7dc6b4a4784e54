"""Severity taxonomy and alert event definitions."""

from enum import Enum
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple, Dict, Any


class Severity(Enum):
    """Hazard severity reported by the vision oracle."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    SAFE = "safe"              # Routine check, never alerts audibly

    @property
    def urgency(self) -> int:
        """Get urgency rank (0=safe, 4=most urgent)."""
        urgency_map = {
            Severity.SAFE: 0,
            Severity.LOW: 1,
            Severity.MEDIUM: 2,
            Severity.HIGH: 3,
            Severity.CRITICAL: 4,
        }
        return urgency_map[self]

    @property
    def is_alerting(self) -> bool:
        """True for every severity except SAFE."""
        return self is not Severity.SAFE

    @property
    def display_name(self) -> str:
        """Human-readable display name."""
        names = {
            Severity.LOW: "LOW RISK",
            Severity.MEDIUM: "MEDIUM RISK",
            Severity.HIGH: "HIGH HAZARD",
            Severity.CRITICAL: "CRITICAL HAZARD",
            Severity.SAFE: "ALL CLEAR",
        }
        return names[self]

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """
        Parse a severity string as returned by the oracle.

        Raises:
            ValueError: If the value is not one of the known severities
        """
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown severity: {value!r}") from None


@dataclass(frozen=True)
class SafetyEvent:
    """One completed analysis, as stored in the event log."""
    id: str
    timestamp: datetime
    severity: Severity
    message: str
    location: str
    reasoning: Tuple[str, ...]

    def __post_init__(self):
        if not self.reasoning:
            raise ValueError("SafetyEvent.reasoning must contain at least one step")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.value,
            "message": self.message,
            "location": self.location,
            "reasoning": list(self.reasoning),
        }


@dataclass(frozen=True)
class AlertWindow:
    """Alert effects started for a single event."""
    severity: Severity
    visual_duration_ms: int
    banner_active: bool
