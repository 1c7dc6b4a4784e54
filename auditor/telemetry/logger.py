"""
JSON Lines telemetry logger.

Provides append-only logging of analysis records for offline review.
"""

import json
import logging
import time
import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List
from queue import Queue, Full, Empty

from .metrics import AnalysisMetrics

logger = logging.getLogger(__name__)

# Queued by stop() to end the writer thread after everything before it
_STOP = object()


@dataclass
class TelemetryRecord:
    """Telemetry record for a single analysis submission."""
    # ISO 8601 timestamp
    timestamp: str

    frame_seq: int
    outcome: str
    oracle_latency_ms: Optional[float]
    severity: Optional[str]
    event_id: Optional[str]
    dropped_total: int

    def to_json(self) -> str:
        """Serialize to JSON string, excluding empty optional fields."""
        data = asdict(self)
        for key in ["oracle_latency_ms", "severity", "event_id"]:
            if data.get(key) is None:
                del data[key]
        return json.dumps(data, separators=(',', ':'))

    @classmethod
    def from_metrics(cls, metrics: AnalysisMetrics) -> "TelemetryRecord":
        """Create record from a metrics object."""
        data = metrics.to_dict()
        return cls(timestamp=datetime.now(timezone.utc).isoformat(), **data)


class TelemetryLogger:
    """
    Append-only JSON Lines logger for telemetry data.

    Features:
    - Non-blocking writes via background thread
    - Records batched for up to flush_interval seconds
    - Size-based rotation to numbered backups (telemetry.jsonl.1, .2, ...)

    Usage:
        telemetry = TelemetryLogger("telemetry.jsonl")
        telemetry.start()

        # Per submission:
        telemetry.log_analysis(metrics)

        # On shutdown:
        telemetry.stop()
    """

    DEFAULT_FLUSH_INTERVAL = 1.0  # seconds
    DEFAULT_MAX_BUFFER = 1000  # records
    DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
    DEFAULT_BACKUP_COUNT = 3

    def __init__(
        self,
        log_file: str,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        max_buffer: int = DEFAULT_MAX_BUFFER,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        backup_count: int = DEFAULT_BACKUP_COUNT,
    ):
        """
        Initialize telemetry logger.

        Args:
            log_file: Path to output .jsonl file
            flush_interval: Longest time a record waits in memory
            max_buffer: Maximum records queued for the writer
            max_file_size: File size that triggers rotation
            backup_count: Rotated files kept; older ones are deleted
        """
        self._log_file = Path(log_file)
        self._flush_interval = flush_interval
        self._max_file_size = max_file_size
        self._backup_count = backup_count

        self._queue: Queue = Queue(maxsize=max_buffer)
        self._writer_thread: Optional[threading.Thread] = None

        self._records_written = 0
        self._records_dropped = 0

    @property
    def log_file(self) -> Path:
        return self._log_file

    def start(self) -> None:
        """Start the background writer thread."""
        if self._writer_thread is not None and self._writer_thread.is_alive():
            return

        self._writer_thread = threading.Thread(
            target=self._writer_loop,
            name="TelemetryWriter",
            daemon=True,
        )
        self._writer_thread.start()
        logger.info(f"Telemetry logger started: {self._log_file}")

    def stop(self) -> None:
        """Write everything queued so far, then stop the writer."""
        if self._writer_thread is not None:
            self._queue.put(_STOP)
            self._writer_thread.join(timeout=5.0)
            if self._writer_thread.is_alive():
                logger.warning("Telemetry writer did not stop within 5 s")
            self._writer_thread = None
        else:
            # Never started: write synchronously
            self._write_batch(self._drain_nowait())

        logger.info(
            f"Telemetry logger stopped. "
            f"Written: {self._records_written}, Dropped: {self._records_dropped}"
        )

    def log(self, record: TelemetryRecord) -> bool:
        """
        Queue a telemetry record (non-blocking).

        Returns:
            True if record was queued, False if dropped
        """
        try:
            self._queue.put_nowait(record)
            return True
        except Full:
            self._records_dropped += 1
            return False

    def log_analysis(self, metrics: AnalysisMetrics) -> bool:
        """Convenience method to log one analysis submission."""
        return self.log(TelemetryRecord.from_metrics(metrics))

    def _writer_loop(self) -> None:
        """Collect records into batches and append them to the file."""
        batch: List[TelemetryRecord] = []
        deadline: Optional[float] = None

        while True:
            timeout = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            try:
                item = self._queue.get(timeout=timeout)
            except Empty:
                item = None

            if item is _STOP:
                self._write_batch(batch + self._drain_nowait())
                return

            if item is not None:
                batch.append(item)
                if deadline is None:
                    deadline = time.monotonic() + self._flush_interval

            if batch and time.monotonic() >= deadline:
                self._write_batch(batch)
                batch = []
                deadline = None

    def _drain_nowait(self) -> List[TelemetryRecord]:
        records = []
        while True:
            try:
                item = self._queue.get_nowait()
            except Empty:
                return records
            if item is not _STOP:
                records.append(item)

    def _write_batch(self, batch: List[TelemetryRecord]) -> None:
        if not batch:
            return

        try:
            self._rotate_if_needed()
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._log_file, "a", encoding="utf-8") as f:
                f.writelines(record.to_json() + "\n" for record in batch)
            self._records_written += len(batch)
        except OSError as e:
            logger.error(f"Telemetry write error: {e}")
            self._records_dropped += len(batch)

    def _rotate_if_needed(self) -> None:
        """Shift telemetry.jsonl -> .1 -> .2 ... once the size limit is hit."""
        if not self._log_file.exists() or self._log_file.stat().st_size < self._max_file_size:
            return

        if self._backup_count <= 0:
            self._log_file.unlink()
            return

        for index in range(self._backup_count - 1, 0, -1):
            older = self._backup_path(index)
            if older.exists():
                older.replace(self._backup_path(index + 1))
        self._log_file.replace(self._backup_path(1))
        logger.info(f"Rotated telemetry log to: {self._backup_path(1)}")

    def _backup_path(self, index: int) -> Path:
        return self._log_file.with_name(f"{self._log_file.name}.{index}")

    @property
    def records_written(self) -> int:
        return self._records_written

    @property
    def records_dropped(self) -> int:
        return self._records_dropped

    def __enter__(self) -> "TelemetryLogger":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
