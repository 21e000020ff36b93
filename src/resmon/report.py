"""Reporters turning ScanReports into output."""

import json
import sys
import time
from typing import TextIO

from resmon.models import ScanReport, Thresholds, format_number

RULE_WIDTH = 34


def format_timestamp(timestamp: float) -> str:
    """Format a wall-clock timestamp as local time."""
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(timestamp))


class TextReporter:
    """Writes a human-readable block per scan."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    def banner(self, thresholds: Thresholds, source_name: str) -> None:
        """Write the startup banner."""
        self._write(
            "Starting Resource Monitor...",
            f"Source: {source_name}",
            f"CPU Threshold: {format_number(thresholds.cpu_percent)}%",
            f"Memory Threshold: {format_number(thresholds.memory_mb)} MB",
            f"Growth Threshold: {format_number(thresholds.growth_mb)} MB",
        )

    def __call__(self, report: ScanReport) -> None:
        lines = [
            "",
            f"Scan #{report.scan}",
            " Suspicious Activity Report ".center(RULE_WIDTH, "="),
            f"Timestamp: {format_timestamp(report.timestamp)}",
            f"Processes: {report.process_count}",
        ]
        for finding in report.findings:
            lines.extend(
                [
                    "",
                    f"[ALERT] PID: {finding.pid} | Name: {finding.name}",
                    f"  Reason: {', '.join(finding.describe())}",
                    f"  CPU: {finding.cpu_percent:.1f}% | Memory: {finding.memory_mb:.1f} MB",
                ]
            )
        if not report.findings:
            lines.append("No suspicious activity detected.")
        lines.append("=" * RULE_WIDTH)
        self._write(*lines)

    def _write(self, *lines: str) -> None:
        self._stream.write("\n".join(lines) + "\n")
        self._stream.flush()


class JsonReporter:
    """Writes one JSON object per scan, one per line."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    def __call__(self, report: ScanReport) -> None:
        self._stream.write(json.dumps(report.to_dict()) + "\n")
        self._stream.flush()
