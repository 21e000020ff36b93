"""resmon - Textual dashboard showing live findings."""

from enum import Enum
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from resmon.config import MonitorConfig
from resmon.detector import Detector
from resmon.models import Finding, ScanReport, Thresholds, format_number
from resmon.monitor import ScanLoop
from resmon.report import format_timestamp
from resmon.sources import BoundedSource, SnapshotSource, default_source


class SortKey(Enum):
    """Sort keys for the findings table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"


# Table column and cell converter for each sort key; cells hold formatted text
SORT_COLUMNS = {
    SortKey.CPU: ("cpu", float),
    SortKey.MEM: ("mem", float),
    SortKey.PID: ("pid", int),
}


class ScanStats(Static):
    """Header widget showing the latest scan and the active thresholds."""

    DEFAULT_CSS = """
    ScanStats {
        height: auto;
        min-height: 4;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, thresholds: Thresholds, *args, **kwargs) -> None:
        """Initialize ScanStats."""
        super().__init__(*args, **kwargs)
        self._thresholds = thresholds
        self._scan: int = 0
        self._timestamp: float = 0.0
        self._process_count: int = 0
        self._finding_count: int = 0
        self._complete: bool = False

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_scan_info(), id="scan-info"),
            Static(self._get_threshold_info(), id="threshold-info"),
        )

    def update_stats(self, report: ScanReport) -> None:
        """Update the statistics from a scan report."""
        self._scan = report.scan
        self._timestamp = report.timestamp
        self._process_count = report.process_count
        self._finding_count = len(report.findings)
        try:
            self.query_one("#scan-info", Static).update(self._get_scan_info())
        except Exception:
            pass  # Widget not mounted yet

    @property
    def complete(self) -> bool:
        return self._complete

    def mark_complete(self) -> None:
        """Show that the scan loop has run its last iteration."""
        self._complete = True
        try:
            self.query_one("#scan-info", Static).update(self._get_scan_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_scan_info(self) -> str:
        if self._scan == 0:
            return "Waiting for first scan..."
        colour = "red" if self._finding_count else "green"
        return (
            f"Scan #{self._scan} at {format_timestamp(self._timestamp)}\n"
            f"Processes: {self._process_count}\n"
            f"Findings: [{colour}]{self._finding_count}[/{colour}]"
            + ("\n[bold]Monitoring complete.[/bold]" if self._complete else "")
        )

    def _get_threshold_info(self) -> str:
        thresholds = self._thresholds
        return (
            f"CPU > {format_number(thresholds.cpu_percent)}%\n"
            f"Memory > {format_number(thresholds.memory_mb)} MB\n"
            f"Growth > {format_number(thresholds.growth_mb)} MB/scan"
        )


class FindingsTable(Container):
    """Container for the findings data table."""

    DEFAULT_CSS = """
    FindingsTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize FindingsTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: set[int] = set()
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key, reorder the rows and return the key."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        if self.is_mounted:
            self.resort()
        return self._sort_key

    def resort(self) -> None:
        """Reorder the rows by the current sort key."""
        column, convert = SORT_COLUMNS[self._sort_key]
        table = self.query_one("#findings-table", DataTable)
        table.sort(column, key=convert, reverse=self._sort_reverse)

    def compose(self) -> ComposeResult:
        """Compose the findings table."""
        yield DataTable(id="findings-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#findings-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=20)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("MEM MB", key="mem", width=10)
        table.add_column("Reasons", key="reasons")

    def update_findings(self, findings: list[Finding]) -> None:
        """
        Show the findings of the latest scan.

        Rows for pids that are no longer flagged are removed; rows for pids
        still flagged are updated in place, then the table is re-sorted.
        """
        table = self.query_one("#findings-table", DataTable)
        new_pids = {finding.pid for finding in findings}

        for pid in self._current_pids - new_pids:
            try:
                table.remove_row(str(pid))
            except Exception:
                pass  # Row may not exist

        for finding in findings:
            row_key = str(finding.pid)
            if finding.pid in self._current_pids:
                self._update_row(table, row_key, finding)
            else:
                self._add_row(table, row_key, finding)

        self._current_pids = new_pids
        self.resort()

    def _update_row(self, table: DataTable, row_key: str, finding: Finding) -> None:
        try:
            table.update_cell(row_key, "name", finding.name[:20])
            table.update_cell(row_key, "cpu", f"{finding.cpu_percent:5.1f}")
            table.update_cell(row_key, "mem", f"{finding.memory_mb:8.1f}")
            table.update_cell(row_key, "reasons", ", ".join(finding.describe()))
        except Exception:
            pass  # Row may have been removed

    def _add_row(self, table: DataTable, row_key: str, finding: Finding) -> None:
        try:
            table.add_row(
                str(finding.pid),
                finding.name[:20],
                f"{finding.cpu_percent:5.1f}",
                f"{finding.memory_mb:8.1f}",
                ", ".join(finding.describe()),
                key=row_key,
            )
        except Exception:
            pass  # Row may already exist


class ResmonApp(App):
    """Live findings dashboard."""

    TITLE = "resmon"
    SUB_TITLE = "Process Resource Anomaly Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #scan-stats {
        dock: top;
        height: auto;
        min-height: 5;
    }

    Horizontal {
        height: auto;
    }

    #scan-info {
        width: 1fr;
        padding-right: 2;
    }

    #threshold-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        config: MonitorConfig | None = None,
        source: SnapshotSource | None = None,
    ) -> None:
        """
        Initialize the ResmonApp.

        Args:
            config: Run settings; defaults apply when omitted.
            source: Snapshot source; selected from the config when omitted.
        """
        super().__init__()
        self._config = config or MonitorConfig()
        if source is None:
            source = default_source(self._config.source)
            if self._config.timeout > 0:
                source = BoundedSource(source, self._config.timeout)
        self._update_queue: Queue[ScanReport] = Queue()
        self._detector = Detector(self._config.thresholds)
        self._scan_loop = ScanLoop(
            source,
            self._detector,
            interval=self._config.interval,
            iterations=self._config.iterations,
            sinks=[self._update_queue.put],
        )

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield ScanStats(self._config.thresholds, id="scan-stats")
        yield FindingsTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the scan loop when the app is mounted."""
        self._scan_loop.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and show the most recent report."""
        report = None
        while True:
            try:
                report = self._update_queue.get_nowait()
            except Empty:
                break

        if report is not None:
            self._update_ui(report)
        elif self._scan_loop.scans_completed and not self._scan_loop.is_running:
            self._show_complete()

    def _update_ui(self, report: ScanReport) -> None:
        try:
            self.query_one("#scan-stats", ScanStats).update_stats(report)
            self.query_one(FindingsTable).update_findings(report.findings)
        except Exception:
            pass  # Screen is shutting down

    def _show_complete(self) -> None:
        try:
            header = self.query_one("#scan-stats", ScanStats)
        except Exception:
            return  # Screen is shutting down
        if not header.complete:
            header.mark_complete()

    def action_sort(self) -> None:
        """Cycle the findings sort key."""
        try:
            new_sort_key = self.query_one(FindingsTable).cycle_sort()
            self.notify(f"Sort: {new_sort_key.value.upper()}")
        except Exception:
            pass

    def action_quit(self) -> None:
        """Stop the scan loop and exit."""
        self._scan_loop.stop()
        self.exit()
