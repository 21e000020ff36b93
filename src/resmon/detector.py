"""Stateful anomaly detector for resmon."""

import logging
from collections.abc import Iterable

from resmon.history import HistoryStore
from resmon.models import Finding, ProcessRecord, Reason, Rule, Thresholds

logger = logging.getLogger(__name__)


def cpu_percent(current: ProcessRecord, prior: ProcessRecord | None) -> float:
    """
    CPU usage over the interval between two samples of the same process.

    100.0 means one core fully busy, so values can exceed 100 on multi-core
    hosts. Without a usable prior sample the rate is undefined and 0.0 is
    returned.
    """
    if prior is None or not (current.measured and prior.measured):
        return 0.0
    elapsed = current.timestamp - prior.timestamp
    if elapsed <= 0:
        return 0.0
    used = current.cpu_time - prior.cpu_time
    return max(0.0, used / elapsed * 100.0)


def memory_growth_mb(current: ProcessRecord, prior: ProcessRecord | None) -> float | None:
    """Resident memory delta in MiB, or None when there is nothing to compare to."""
    if prior is None or not (current.measured and prior.measured):
        return None
    return (current.memory_kb - prior.memory_kb) / 1024


class Detector:
    """
    Classifies each process in a snapshot against the thresholds.

    Three rules are evaluated independently (CPU, memory, memory growth) and
    every one that fires is reported. After evaluation each record replaces
    the history entry for its pid.
    """

    def __init__(self, thresholds: Thresholds, history: HistoryStore | None = None) -> None:
        """
        Initialize the Detector.

        Args:
            thresholds: Limits the rules compare against.
            history: Store of previous samples. A fresh one is created when omitted.
        """
        self._thresholds = thresholds
        self._history = history if history is not None else HistoryStore()

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    @property
    def history(self) -> HistoryStore:
        return self._history

    def detect(self, snapshot: Iterable[ProcessRecord]) -> list[Finding]:
        """Return findings in snapshot order and record the snapshot in history."""
        findings: list[Finding] = []
        for record in snapshot:
            prior = self._prior_for(record)
            finding = self._classify(record, prior)
            if finding is not None:
                findings.append(finding)
            self._history.put(record)
        return findings

    def _prior_for(self, record: ProcessRecord) -> ProcessRecord | None:
        prior = self._history.get(record.pid)
        if prior is None:
            return None
        # A start time seen on only one side cannot confirm the same process
        if record.start_time != prior.start_time:
            logger.debug(
                "pid %d reused (%s -> %s); ignoring previous sample",
                record.pid,
                prior.name,
                record.name,
            )
            return None
        return prior

    def _classify(self, record: ProcessRecord, prior: ProcessRecord | None) -> Finding | None:
        if not record.measured:
            return None

        usage = cpu_percent(record, prior)
        reasons: list[Reason] = []

        if usage > self._thresholds.cpu_percent:
            reasons.append(Reason(Rule.HIGH_CPU, usage))

        if record.memory_mb > self._thresholds.memory_mb:
            reasons.append(Reason(Rule.HIGH_MEMORY, record.memory_mb))

        growth = memory_growth_mb(record, prior)
        if growth is not None and growth > self._thresholds.growth_mb:
            reasons.append(Reason(Rule.MEMORY_GROWTH, growth))

        if not reasons:
            return None

        return Finding(
            pid=record.pid,
            name=record.name,
            reasons=tuple(reasons),
            cpu_percent=usage,
            memory_mb=record.memory_mb,
            timestamp=record.timestamp,
        )
