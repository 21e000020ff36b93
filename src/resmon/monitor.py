"""Scheduler loop driving snapshot source, detector and reporters."""

import logging
import threading
import time
from collections.abc import Callable, Iterable

from resmon.detector import Detector
from resmon.models import ScanReport
from resmon.sources import SnapshotSource

logger = logging.getLogger(__name__)

ReportSink = Callable[[ScanReport], None]


class ScanLoop:
    """
    Repeatedly enumerates processes, runs the detector and hands each
    ScanReport to the configured sinks.

    ``run()`` works on the calling thread; ``start()`` runs the same loop on
    a daemon thread. Either way exactly one thread touches the detector.
    ``stop()`` interrupts the sleep between scans immediately.
    """

    def __init__(
        self,
        source: SnapshotSource,
        detector: Detector,
        interval: float = 5.0,
        iterations: int | None = 10,
        sinks: Iterable[ReportSink] = (),
    ) -> None:
        """
        Initialize the ScanLoop.

        Args:
            source: Where snapshots come from.
            detector: Classifies each snapshot; owns the history.
            interval: Seconds to wait between scans.
            iterations: Number of scans per run, None to run until stopped.
            sinks: Callables receiving every ScanReport.
        """
        self._source = source
        self._detector = detector
        self._interval = max(0.0, interval)
        self._iterations = iterations
        self._sinks: list[ReportSink] = list(sinks)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._scan = 0

    @property
    def interval(self) -> float:
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        self._interval = max(0.0, value)

    @property
    def iterations(self) -> int | None:
        return self._iterations

    @property
    def scans_completed(self) -> int:
        return self._scan

    @property
    def detector(self) -> Detector:
        return self._detector

    @property
    def is_running(self) -> bool:
        """Check if the background thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def add_sink(self, sink: ReportSink) -> None:
        self._sinks.append(sink)

    def scan_once(self) -> ScanReport:
        """Take one snapshot, classify it and deliver the report."""
        self._scan += 1
        try:
            snapshot = self._source.produce_snapshot()
        except Exception:
            logger.exception("Snapshot source %s failed", self._source.name)
            snapshot = []

        findings = self._detector.detect(snapshot)
        report = ScanReport(
            scan=self._scan,
            timestamp=time.time(),
            process_count=len(snapshot),
            findings=findings,
        )
        logger.debug(
            "Scan #%d: %d processes, %d findings",
            report.scan,
            report.process_count,
            len(findings),
        )

        for sink in self._sinks:
            try:
                sink(report)
            except Exception:
                logger.exception("Report sink failed on scan #%d", report.scan)
        return report

    def run(self) -> int:
        """
        Scan until the iteration count is reached or stop() is called.

        Returns:
            Number of scans performed by this call.
        """
        completed = 0
        while not self._stop_event.is_set():
            self.scan_once()
            completed += 1
            if self._iterations is not None and completed >= self._iterations:
                break
            # Wait for the interval or until stop is requested
            if self._stop_event.wait(timeout=self._interval):
                break
        return completed

    def start(self) -> None:
        """Start the loop on a background daemon thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            daemon=True,
            name="ScanLoop",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Request the loop to stop.

        Args:
            timeout: How long to wait for the background thread (seconds).
        """
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            self._thread = None
