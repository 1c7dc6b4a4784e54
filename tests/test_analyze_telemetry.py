"""Tests for the telemetry analysis tool."""

import json
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "tools"))

import analyze_telemetry  # noqa: E402

RECORDS = [
    {"timestamp": "2024-05-01T12:00:00+00:00", "frame_seq": 0, "outcome": "event",
     "oracle_latency_ms": 1000.0, "severity": "safe", "event_id": "a", "dropped_total": 0},
    {"timestamp": "2024-05-01T12:00:05+00:00", "frame_seq": 1, "outcome": "dropped", "dropped_total": 1},
    {"timestamp": "2024-05-01T12:00:10+00:00", "frame_seq": 2, "outcome": "event",
     "oracle_latency_ms": 3000.0, "severity": "critical", "event_id": "b", "dropped_total": 1},
    {"timestamp": "2024-05-01T12:00:15+00:00", "frame_seq": 3, "outcome": "malformed",
     "oracle_latency_ms": 2000.0, "dropped_total": 1},
]


@pytest.fixture
def telemetry_file(tmp_path):
    path = tmp_path / "telemetry.jsonl"
    lines = [json.dumps(r) for r in RECORDS]
    lines.insert(2, "{truncated")
    path.write_text("\n".join(lines) + "\n")
    return path


class TestAnalyzeTelemetry:
    """Test loading and summarizing a session."""

    def test_invalid_lines_skipped(self, telemetry_file):
        df = analyze_telemetry.load_telemetry(telemetry_file)
        assert len(df) == 4

    def test_stats(self, telemetry_file):
        stats = analyze_telemetry.compute_stats(analyze_telemetry.load_telemetry(telemetry_file))

        assert stats.total_submissions == 4
        assert stats.duration_seconds == 15.0
        assert stats.outcome_counts == {"event": 2, "dropped": 1, "malformed": 1}
        assert stats.dropped_total == 1
        assert stats.latency_mean == pytest.approx(2000.0)
        assert stats.latency_max == 3000.0
        assert stats.severity_counts == {"safe": 1, "critical": 1}
        assert stats.error_ratio == pytest.approx(1 / 3)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "telemetry.jsonl"
        path.write_text("\n")
        with pytest.raises(ValueError):
            analyze_telemetry.load_telemetry(path)

    def test_graphs_written(self, telemetry_file, tmp_path):
        df = analyze_telemetry.load_telemetry(telemetry_file)
        stats = analyze_telemetry.compute_stats(df)

        files = analyze_telemetry.generate_graphs(df, stats, tmp_path / "reports")

        assert {f.name for f in files} == {"oracle_latency.png", "severity_timeline.png", "outcomes.png"}
        assert all(f.exists() for f in files)
