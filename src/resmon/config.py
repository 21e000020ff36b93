"""Runtime configuration for resmon."""

import argparse
import logging
import math
from dataclasses import dataclass

from resmon.errors import ConfigError
from resmon.models import Thresholds
from resmon.sources import SOURCE_NAMES

OUTPUTS = ("text", "json", "tui")
FOREVER = "forever"

# Defaults of the classic scan: 70% CPU, 400 MB RSS, every 5 s, 10 scans
DEFAULT_CPU_THRESHOLD = 70.0
DEFAULT_MEMORY_THRESHOLD_MB = 400.0
DEFAULT_GROWTH_THRESHOLD_MB = 100.0
DEFAULT_INTERVAL = 5.0
DEFAULT_ITERATIONS = 10
DEFAULT_TIMEOUT = 30.0


def parse_iterations(value: str | int | None) -> int | None:
    """Parse an iteration count; "forever" (or None) means no limit."""
    if value is None:
        return None
    if isinstance(value, str):
        if value.strip().lower() == FOREVER:
            return None
        try:
            value = int(value)
        except ValueError as exc:
            raise ConfigError(f"iterations must be a positive integer or {FOREVER!r}") from exc
    if value <= 0:
        raise ConfigError(f"iterations must be a positive integer or {FOREVER!r}")
    return value


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Validated settings for one monitoring run."""

    cpu_threshold: float = DEFAULT_CPU_THRESHOLD
    memory_threshold_mb: float = DEFAULT_MEMORY_THRESHOLD_MB
    growth_threshold_mb: float = DEFAULT_GROWTH_THRESHOLD_MB
    interval: float = DEFAULT_INTERVAL
    iterations: int | None = DEFAULT_ITERATIONS  # None runs forever
    source: str = "auto"
    timeout: float = DEFAULT_TIMEOUT  # 0 disables the enumeration timeout
    output: str = "text"
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        for field_name in (
            "cpu_threshold",
            "memory_threshold_mb",
            "growth_threshold_mb",
            "interval",
            "timeout",
        ):
            value = getattr(self, field_name)
            if not math.isfinite(value):
                raise ConfigError(f"{field_name} must be a finite number")
            if value < 0:
                raise ConfigError(f"{field_name} must not be negative")
        if self.iterations is not None and self.iterations <= 0:
            raise ConfigError("iterations must be positive")
        if self.source not in SOURCE_NAMES:
            raise ConfigError(f"source must be one of {', '.join(SOURCE_NAMES)}")
        if self.output not in OUTPUTS:
            raise ConfigError(f"output must be one of {', '.join(OUTPUTS)}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"unknown log level {self.log_level!r}")

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(
            cpu_percent=self.cpu_threshold,
            memory_mb=self.memory_threshold_mb,
            growth_mb=self.growth_threshold_mb,
        )

    @property
    def level(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "MonitorConfig":
        return cls(
            cpu_threshold=args.cpu_threshold,
            memory_threshold_mb=args.memory_threshold,
            growth_threshold_mb=args.growth_threshold,
            interval=args.interval,
            iterations=parse_iterations(args.iterations),
            source=args.source,
            timeout=args.timeout,
            output=args.output,
            log_level=args.log_level,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="resmon",
        description="Flag processes with high CPU, high memory or rapid memory growth.",
    )
    parser.add_argument(
        "--cpu-threshold",
        type=float,
        default=DEFAULT_CPU_THRESHOLD,
        help="CPU percent over one interval above which a process is flagged (default: %(default)s)",
    )
    parser.add_argument(
        "--memory-threshold",
        type=float,
        default=DEFAULT_MEMORY_THRESHOLD_MB,
        help="resident memory in MB above which a process is flagged (default: %(default)s)",
    )
    parser.add_argument(
        "--growth-threshold",
        type=float,
        default=DEFAULT_GROWTH_THRESHOLD_MB,
        help="memory growth in MB per interval above which a process is flagged (default: %(default)s)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_INTERVAL,
        help="seconds between scans (default: %(default)s)",
    )
    parser.add_argument(
        "--iterations",
        default=str(DEFAULT_ITERATIONS),
        help=f"number of scans, or {FOREVER!r} (default: %(default)s)",
    )
    parser.add_argument("--source", choices=SOURCE_NAMES, default="auto")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="seconds allowed for one enumeration, 0 to disable (default: %(default)s)",
    )
    parser.add_argument("--output", choices=OUTPUTS, default="text")
    parser.add_argument("--log-level", default="WARNING")
    return parser
