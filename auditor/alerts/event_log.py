"""
Append-only event log and CSV export.

Events are kept in arrival order for the whole monitoring session.
"""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, TextIO, Tuple

from .types import SafetyEvent

logger = logging.getLogger(__name__)

CSV_HEADERS = ["Timestamp", "Severity", "Location", "Message", "Reasoning"]
REASONING_DELIMITER = "; "


class EventLog:
    """Ordered, append-only sequence of SafetyEvents."""

    def __init__(self):
        self._events: List[SafetyEvent] = []

    def append(self, event: SafetyEvent) -> None:
        """Add an event at the end of the log."""
        self._events.append(event)

    def clear(self) -> None:
        """Drop all events (session reset only)."""
        self._events.clear()

    @property
    def events(self) -> Tuple[SafetyEvent, ...]:
        """Snapshot of all events in arrival order."""
        return tuple(self._events)

    @property
    def latest(self) -> Optional[SafetyEvent]:
        return self._events[-1] if self._events else None

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[SafetyEvent]:
        return iter(tuple(self._events))

    def __getitem__(self, index: int) -> SafetyEvent:
        return self._events[index]


def export_filename(now: Optional[datetime] = None) -> str:
    """Default export file name, e.g. safety_audit_log_2024-05-01T12-30-00.csv."""
    now = now or datetime.now()
    return f"safety_audit_log_{now.strftime('%Y-%m-%dT%H-%M-%S')}.csv"


def write_csv(events: List[SafetyEvent], stream: TextIO) -> int:
    """
    Write events as CSV rows.

    Args:
        events: Events in arrival order
        stream: Open text stream

    Returns:
        Number of rows written (excluding header)
    """
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for event in events:
        writer.writerow([
            event.timestamp.isoformat(),
            event.severity.value,
            event.location,
            event.message,
            REASONING_DELIMITER.join(event.reasoning),
        ])
    return len(events)


def export_csv(log: EventLog, directory: str = ".", filename: Optional[str] = None) -> Optional[Path]:
    """
    Export the event log to a CSV file.

    Returns:
        Path of the written file, or None if the log is empty
    """
    if len(log) == 0:
        logger.warning("No events to log - CSV export skipped")
        return None

    path = Path(directory) / (filename or export_filename())
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        count = write_csv(list(log), f)

    logger.info(f"Exported {count} event(s) to {path}")
    return path
