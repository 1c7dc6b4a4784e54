"""
Alert System Module.

Provides the severity taxonomy, event log and alert orchestrator.
"""

from .types import Severity, SafetyEvent, AlertWindow
from .event_log import EventLog, export_csv
from .orchestrator import AlertOrchestrator, AlertState, FLASH_DURATIONS_MS, BANNER_DURATION_MS

__all__ = [
    "Severity",
    "SafetyEvent",
    "AlertWindow",
    "EventLog",
    "export_csv",
    "AlertOrchestrator",
    "AlertState",
    "FLASH_DURATIONS_MS",
    "BANNER_DURATION_MS",
]
