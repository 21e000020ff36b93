"""Tests for the resmon dashboard."""

import pytest

from textual.widgets import DataTable

from resmon.app import FindingsTable, ResmonApp, ScanStats, SortKey
from resmon.config import MonitorConfig
from resmon.models import Finding, ProcessRecord, Reason, Rule, ScanReport


class StaticSource:
    """Source returning the same snapshot every scan."""

    name = "static"

    def __init__(self, records: list[ProcessRecord]) -> None:
        self._records = records

    def produce_snapshot(self) -> list[ProcessRecord]:
        return list(self._records)


def _app(records: list[ProcessRecord] | None = None, iterations: int | None = None) -> ResmonApp:
    config = MonitorConfig(interval=0.1, iterations=iterations)
    return ResmonApp(config, source=StaticSource(records or []))


def _row_order(table: FindingsTable) -> list[str]:
    return [row.key.value for row in table.query_one(DataTable).ordered_rows]


def _quiet(app: ResmonApp) -> None:
    """Stop the scan loop and drop pending reports so only the test fills the table."""
    app._scan_loop.stop()
    while not app._update_queue.empty():
        app._update_queue.get_nowait()


def _finding(pid: int, cpu: float = 10.0, memory: float = 500.0) -> Finding:
    return Finding(
        pid=pid,
        name=f"proc{pid}",
        reasons=(Reason(Rule.HIGH_MEMORY, memory),),
        cpu_percent=cpu,
        memory_mb=memory,
        timestamp=1000.0,
    )


class TestSortKey:
    """Tests for SortKey enum."""

    def test_sort_key_values(self):
        assert SortKey.CPU.value == "cpu"
        assert SortKey.MEM.value == "mem"
        assert SortKey.PID.value == "pid"
        assert len(list(SortKey)) == 3


@pytest.mark.asyncio
async def test_app_creation():
    """Test ResmonApp can be instantiated."""
    app = _app()
    assert app.title == "resmon"
    assert app.sub_title == "Process Resource Anomaly Monitor"
    assert app._scan_loop is not None
    assert app._update_queue is not None


@pytest.mark.asyncio
async def test_app_compose():
    """Test ResmonApp composes correctly."""
    app = _app()
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#scan-stats") is not None
        assert pilot.app.query_one("#findings-table") is not None


@pytest.mark.asyncio
async def test_app_quit_binding():
    """Test that 'q' stops the loop and exits."""
    app = _app()
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert not app._scan_loop.is_running
        assert app._scan_loop.stopped


@pytest.mark.asyncio
async def test_findings_table_cycle_sort():
    """Test FindingsTable sort key cycling."""
    app = _app()
    async with app.run_test() as pilot:
        table = pilot.app.query_one(FindingsTable)

        assert table.sort_key == SortKey.CPU
        table.cycle_sort()
        assert table.sort_key == SortKey.MEM
        table.cycle_sort()
        assert table.sort_key == SortKey.PID
        table.cycle_sort()
        assert table.sort_key == SortKey.CPU


@pytest.mark.asyncio
async def test_app_sort_binding():
    """Test that F6 cycles the sort key."""
    app = _app()
    async with app.run_test() as pilot:
        table = pilot.app.query_one(FindingsTable)
        initial = table.sort_key

        await pilot.press("f6")

        assert table.sort_key != initial


@pytest.mark.asyncio
async def test_findings_table_adds_and_removes_rows():
    """Rows follow the findings of the latest scan."""
    app = _app()
    async with app.run_test() as pilot:
        table = pilot.app.query_one(FindingsTable)

        table.update_findings([_finding(100), _finding(200)])
        assert table._current_pids == {100, 200}

        table.update_findings([_finding(200, memory=800.0)])
        assert table._current_pids == {200}


@pytest.mark.asyncio
async def test_scan_stats_update():
    """Header reflects the latest report."""
    app = _app()
    async with app.run_test() as pilot:
        header = pilot.app.query_one("#scan-stats", ScanStats)

        header.update_stats(
            ScanReport(scan=4, timestamp=1000.0, process_count=12, findings=[_finding(1)])
        )

        assert header._scan == 4
        assert header._process_count == 12
        assert header._finding_count == 1


@pytest.mark.asyncio
async def test_app_receives_findings_from_loop():
    """A flagged process reaches the table through the scan loop."""
    hog = ProcessRecord(pid=4242, name="hog", cpu_time=0.0, memory_kb=900 * 1024, timestamp=1.0)
    app = _app([hog])
    async with app.run_test() as pilot:
        await pilot.pause(1.5)

        assert app._scan_loop.is_running
        table = pilot.app.query_one(FindingsTable)
        assert 4242 in table._current_pids
        header = pilot.app.query_one("#scan-stats", ScanStats)
        assert header._scan >= 1


@pytest.mark.asyncio
async def test_rows_follow_sort_key():
    """Rows are ordered by the sort key and reordered when it cycles."""
    app = _app()
    async with app.run_test() as pilot:
        _quiet(app)
        table = pilot.app.query_one(FindingsTable)

        table.update_findings(
            [
                _finding(1, cpu=90.0, memory=500.0),
                _finding(3, cpu=50.0, memory=900.0),
                _finding(2, cpu=10.0, memory=700.0),
            ]
        )
        assert _row_order(table) == ["1", "3", "2"]

        table.cycle_sort()
        assert _row_order(table) == ["3", "2", "1"]

        table.cycle_sort()
        assert _row_order(table) == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_updated_rows_are_reordered():
    """A row whose values change moves to its new place."""
    app = _app()
    async with app.run_test() as pilot:
        _quiet(app)
        table = pilot.app.query_one(FindingsTable)

        table.update_findings([_finding(1, cpu=90.0), _finding(2, cpu=10.0)])
        assert _row_order(table) == ["1", "2"]

        table.update_findings([_finding(1, cpu=20.0), _finding(2, cpu=95.0)])
        assert _row_order(table) == ["2", "1"]


@pytest.mark.asyncio
async def test_sort_binding_reorders_rows():
    """F6 re-sorts the visible rows by memory."""
    app = _app()
    async with app.run_test() as pilot:
        _quiet(app)
        table = pilot.app.query_one(FindingsTable)
        table.update_findings(
            [
                _finding(1, cpu=90.0, memory=500.0),
                _finding(2, cpu=10.0, memory=900.0),
            ]
        )
        assert _row_order(table) == ["1", "2"]

        await pilot.press("f6")

        assert table.sort_key == SortKey.MEM
        assert _row_order(table) == ["2", "1"]


@pytest.mark.asyncio
async def test_header_shows_completion_after_last_scan():
    """A bounded run says so once the scan loop has finished."""
    app = _app(iterations=2)
    async with app.run_test() as pilot:
        await pilot.pause(2.0)

        header = pilot.app.query_one("#scan-stats", ScanStats)
        assert not app._scan_loop.is_running
        assert header.complete
        assert header._scan == 2
        assert "Monitoring complete." in header._get_scan_info()
