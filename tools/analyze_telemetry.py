#!/usr/bin/env python3
"""
Telemetry Analysis Tool for the Industrial Safety Auditor

Summarizes a telemetry.jsonl session (one record per submitted frame) and
saves graphs as PNG files.

Usage:
    python tools/analyze_telemetry.py [telemetry_file] [--output-dir DIR]

Examples:
    python tools/analyze_telemetry.py telemetry.jsonl
    python tools/analyze_telemetry.py telemetry.jsonl --output-dir reports/
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Dict
from dataclasses import dataclass, field

import pandas as pd
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import matplotlib.dates as mdates

SEVERITY_ORDER = ["safe", "low", "medium", "high", "critical"]
SEVERITY_COLORS = {
    "safe": "#2e7d32",
    "low": "#1565c0",
    "medium": "#f9a825",
    "high": "#ef6c00",
    "critical": "#c62828",
}


@dataclass
class TelemetryStats:
    """Statistics computed from telemetry data."""
    total_submissions: int = 0
    duration_seconds: float = 0.0

    # Outcomes
    outcome_counts: Dict[str, int] = field(default_factory=dict)
    dropped_total: int = 0

    # Oracle latency (ms), analysed frames only
    latency_mean: float = 0.0
    latency_p95: float = 0.0
    latency_max: float = 0.0

    # Events
    severity_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def error_ratio(self) -> float:
        attempted = self.total_submissions - self.outcome_counts.get("dropped", 0)
        if attempted <= 0:
            return 0.0
        failed = self.outcome_counts.get("error", 0) + self.outcome_counts.get("malformed", 0)
        return failed / attempted


def load_telemetry(filepath: Path) -> pd.DataFrame:
    """Load telemetry JSONL file into a DataFrame."""
    records = []

    with open(filepath, 'r') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                print(f"Warning: Skipping invalid JSON at line {line_num}: {e}")
                continue

    if not records:
        raise ValueError(f"No valid telemetry records found in {filepath}")

    df = pd.DataFrame(records)

    if 'timestamp' in df.columns:
        df['timestamp'] = pd.to_datetime(df['timestamp'])
        df = df.sort_values('timestamp').reset_index(drop=True)

    print(f"Loaded {len(df)} telemetry records from {filepath}")
    return df


def compute_stats(df: pd.DataFrame) -> TelemetryStats:
    """Compute statistics from telemetry DataFrame."""
    stats = TelemetryStats()

    stats.total_submissions = len(df)

    if 'timestamp' in df.columns and len(df) > 1:
        stats.duration_seconds = (df['timestamp'].iloc[-1] - df['timestamp'].iloc[0]).total_seconds()

    if 'outcome' in df.columns:
        stats.outcome_counts = {str(k): int(v) for k, v in df['outcome'].value_counts().items()}

    if 'dropped_total' in df.columns:
        stats.dropped_total = int(df['dropped_total'].max())

    if 'oracle_latency_ms' in df.columns:
        latency = df['oracle_latency_ms'].dropna()
        if len(latency) > 0:
            stats.latency_mean = float(latency.mean())
            stats.latency_p95 = float(latency.quantile(0.95))
            stats.latency_max = float(latency.max())

    if 'severity' in df.columns:
        counts = df['severity'].dropna().value_counts().to_dict()
        stats.severity_counts = {str(k): int(v) for k, v in counts.items()}

    return stats


def print_stats(stats: TelemetryStats) -> None:
    """Print statistics to console."""
    print("\n" + "=" * 60)
    print("SAFETY AUDIT TELEMETRY REPORT")
    print("=" * 60)

    print(f"\nSession Overview:")
    print(f"   Submissions: {stats.total_submissions:,}")
    print(f"   Duration: {stats.duration_seconds:.1f} seconds ({stats.duration_seconds/60:.1f} min)")

    print(f"\nOutcomes:")
    for outcome, count in sorted(stats.outcome_counts.items()):
        print(f"   {outcome}: {count}")
    print(f"   Failure Rate: {stats.error_ratio*100:.1f}%")

    print(f"\nOracle Latency (milliseconds):")
    print(f"   mean={stats.latency_mean:.0f}, p95={stats.latency_p95:.0f}, max={stats.latency_max:.0f}")

    if stats.severity_counts:
        print(f"\nEvents by Severity:")
        for severity in SEVERITY_ORDER:
            if severity in stats.severity_counts:
                print(f"   {severity}: {stats.severity_counts[severity]}")

    print("\n" + "=" * 60)


def generate_graphs(df: pd.DataFrame, stats: TelemetryStats, output_dir: Path) -> List[Path]:
    """Generate session graphs and save as PNG files."""
    output_dir.mkdir(parents=True, exist_ok=True)
    generated_files = []

    plt.rcParams['font.size'] = 10

    # 1. Oracle latency distribution
    if 'oracle_latency_ms' in df.columns and df['oracle_latency_ms'].notna().any():
        fig, ax = plt.subplots(figsize=(10, 4))
        ax.hist(df['oracle_latency_ms'].dropna(), bins=30, edgecolor='black', alpha=0.7)
        ax.axvline(x=stats.latency_mean, color='r', linestyle='--', label=f'Mean: {stats.latency_mean:.0f}ms')
        ax.axvline(x=stats.latency_p95, color='orange', linestyle='--', label=f'P95: {stats.latency_p95:.0f}ms')
        ax.set_xlabel('Latency (ms)')
        ax.set_ylabel('Count')
        ax.set_title('Oracle Latency')
        ax.legend()
        plt.tight_layout()

        filepath = output_dir / 'oracle_latency.png'
        plt.savefig(filepath, dpi=150)
        plt.close(fig)
        generated_files.append(filepath)
        print(f"  + {filepath.name}")

    # 2. Events over time, coloured by severity
    if 'severity' in df.columns and 'timestamp' in df.columns:
        events = df.dropna(subset=['severity'])
        if len(events) > 0:
            fig, ax = plt.subplots(figsize=(12, 4))
            for severity in SEVERITY_ORDER:
                subset = events[events['severity'] == severity]
                if len(subset) == 0:
                    continue
                ax.scatter(
                    subset['timestamp'],
                    [SEVERITY_ORDER.index(severity)] * len(subset),
                    color=SEVERITY_COLORS[severity],
                    label=severity,
                    s=30,
                )
            ax.set_yticks(range(len(SEVERITY_ORDER)))
            ax.set_yticklabels(SEVERITY_ORDER)
            ax.set_xlabel('Time')
            ax.set_title('Events by Severity')
            ax.xaxis.set_major_formatter(mdates.DateFormatter('%H:%M:%S'))
            plt.xticks(rotation=45)
            plt.tight_layout()

            filepath = output_dir / 'severity_timeline.png'
            plt.savefig(filepath, dpi=150)
            plt.close(fig)
            generated_files.append(filepath)
            print(f"  + {filepath.name}")

    # 3. Outcome breakdown
    if stats.outcome_counts:
        fig, ax = plt.subplots(figsize=(6, 4))
        names = sorted(stats.outcome_counts)
        ax.bar(names, [stats.outcome_counts[n] for n in names], edgecolor='black', alpha=0.8)
        ax.set_ylabel('Submissions')
        ax.set_title('Submission Outcomes')
        plt.tight_layout()

        filepath = output_dir / 'outcomes.png'
        plt.savefig(filepath, dpi=150)
        plt.close(fig)
        generated_files.append(filepath)
        print(f"  + {filepath.name}")

    return generated_files


def main():
    parser = argparse.ArgumentParser(
        description='Analyze Industrial Safety Auditor telemetry files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python tools/analyze_telemetry.py telemetry.jsonl
    python tools/analyze_telemetry.py telemetry.jsonl --output-dir reports/
        """
    )
    parser.add_argument('telemetry_file', type=str, nargs='?', default='telemetry.jsonl',
                        help='Path to telemetry JSONL file (default: telemetry.jsonl)')
    parser.add_argument('-o', '--output-dir', type=str, default='telemetry_reports',
                        help='Output directory for graphs (default: telemetry_reports)')
    parser.add_argument('--no-graphs', action='store_true',
                        help='Skip graph generation, print stats only')

    args = parser.parse_args()

    telemetry_path = Path(args.telemetry_file)
    output_dir = Path(args.output_dir)

    if not telemetry_path.exists():
        print(f"Error: Telemetry file not found: {telemetry_path}")
        sys.exit(1)

    try:
        df = load_telemetry(telemetry_path)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    stats = compute_stats(df)
    print_stats(stats)

    if not args.no_graphs:
        print(f"\nGenerating graphs in: {output_dir}/")
        generated_files = generate_graphs(df, stats, output_dir)
        print(f"\nGenerated {len(generated_files)} graph(s)")


if __name__ == '__main__':
    main()
