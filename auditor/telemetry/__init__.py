"""
Telemetry module for the Industrial Safety Auditor.

Provides JSON Lines logging of analysis submissions.
"""

from .logger import TelemetryLogger, TelemetryRecord
from .metrics import AnalysisMetrics, AnalysisOutcome

__all__ = [
    "TelemetryLogger",
    "TelemetryRecord",
    "AnalysisMetrics",
    "AnalysisOutcome",
]
