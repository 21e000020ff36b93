"""Data models for resmon."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable sample of one process at one instant."""

    pid: int
    name: str
    cpu_time: float  # Cumulative user + kernel seconds since process start
    memory_kb: int  # Resident set size, KiB
    timestamp: float  # Wall clock, time.time()
    start_time: float | None = None  # Pairs with pid to detect reuse
    measured: bool = True  # False when resource fields could not be read

    @property
    def memory_mb(self) -> float:
        """Resident memory in MiB."""
        return self.memory_kb / 1024


@dataclass(slots=True, frozen=True)
class Thresholds:
    """Detection thresholds, fixed for the life of a detector."""

    cpu_percent: float = 70.0
    memory_mb: float = 400.0
    growth_mb: float = 100.0  # Per sampling interval


class Rule(Enum):
    """Detection rules, in the order they are evaluated."""

    HIGH_CPU = "high CPU"
    HIGH_MEMORY = "high memory"
    MEMORY_GROWTH = "rapid memory growth"


def format_number(value: float) -> str:
    """Format a measurement with at most one decimal, dropping a trailing .0."""
    text = f"{value:.1f}"
    return text[:-2] if text.endswith(".0") else text


@dataclass(slots=True, frozen=True)
class Reason:
    """One triggered rule together with the measured value."""

    rule: Rule
    value: float

    def __str__(self) -> str:
        if self.rule is Rule.HIGH_CPU:
            return f"{self.rule.value} ({format_number(self.value)}%)"
        if self.rule is Rule.HIGH_MEMORY:
            return f"{self.rule.value} ({format_number(self.value)}MB)"
        return f"{self.rule.value} (+{format_number(self.value)}MB)"


@dataclass(slots=True, frozen=True)
class Finding:
    """Anomaly report for one process in one sample."""

    pid: int
    name: str
    reasons: tuple[Reason, ...]
    cpu_percent: float
    memory_mb: float
    timestamp: float

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(reason.rule for reason in self.reasons)

    def describe(self) -> list[str]:
        """Human-readable reason strings."""
        return [str(reason) for reason in self.reasons]

    def to_dict(self) -> dict:
        return {
            "pid": self.pid,
            "name": self.name,
            "reasons": self.describe(),
            "cpu_percent": round(self.cpu_percent, 1),
            "memory_mb": round(self.memory_mb, 1),
            "timestamp": self.timestamp,
        }


@dataclass(slots=True)
class ScanReport:
    """Result of one scheduler iteration, handed to reporters."""

    scan: int
    timestamp: float
    process_count: int
    findings: list[Finding] = field(default_factory=list)

    @property
    def suspicious(self) -> bool:
        return bool(self.findings)

    def to_dict(self) -> dict:
        return {
            "scan": self.scan,
            "timestamp": self.timestamp,
            "process_count": self.process_count,
            "findings": [finding.to_dict() for finding in self.findings],
        }
