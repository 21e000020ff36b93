"""Process snapshot sources for resmon.

Every source implements ``produce_snapshot()`` and never raises: a process
table that cannot be listed yields an empty snapshot, a process that vanished
mid-enumeration is omitted, and a process whose details are access-denied is
returned zero-filled with ``measured=False``.
"""

import logging
import os
import sys
import threading
import time
from pathlib import Path
from queue import Empty, Queue
from typing import Protocol

import psutil

from resmon.errors import ConfigError, EnumerationUnavailable, MalformedRecord
from resmon.models import ProcessRecord

logger = logging.getLogger(__name__)

# Zero-based offsets into the stat fields that follow the closing ")" of comm.
# Index 0 is the state field (field 3 in proc(5) numbering).
_UTIME_INDEX = 11
_STIME_INDEX = 12
_STARTTIME_INDEX = 19

SOURCE_NAMES = ("auto", "procfs", "psutil")


class SnapshotSource(Protocol):
    """Anything that can list the live processes right now."""

    name: str

    def produce_snapshot(self) -> list[ProcessRecord]: ...


def clock_ticks() -> int:
    """Return the kernel clock ticks per second (USER_HZ)."""
    try:
        return os.sysconf("SC_CLK_TCK")
    except (AttributeError, ValueError, OSError):
        return 100


def parse_stat(line: str) -> tuple[str, int, int, int]:
    """
    Parse a ``/proc/<pid>/stat`` line.

    The command name sits between the first "(" and the last ")" and may
    itself contain spaces and parentheses, so the line is never split on
    whitespace before the name has been cut out.

    Returns:
        (name, utime, stime, starttime) with times in clock ticks.

    Raises:
        MalformedRecord: if the line does not have the expected layout.
    """
    start = line.find("(")
    end = line.rfind(")")
    if start == -1 or end < start:
        raise MalformedRecord(f"no command name in stat line: {line[:80]!r}")

    name = line[start + 1 : end]
    fields = line[end + 1 :].split()
    try:
        utime = int(fields[_UTIME_INDEX])
        stime = int(fields[_STIME_INDEX])
        starttime = int(fields[_STARTTIME_INDEX])
    except (IndexError, ValueError) as exc:
        raise MalformedRecord(f"bad stat fields for {name!r}: {exc}") from exc
    return name, utime, stime, starttime


def parse_vmrss(status: str) -> int:
    """Return the VmRSS value (kB) from a ``/proc/<pid>/status`` text, 0 if absent."""
    for line in status.splitlines():
        if line.startswith("VmRSS:"):
            parts = line.split()
            try:
                return int(parts[1])
            except (IndexError, ValueError) as exc:
                raise MalformedRecord(f"bad VmRSS line: {line!r}") from exc
    # Kernel threads have no resident set
    return 0


def _unmeasured(pid: int, name: str = "") -> ProcessRecord:
    return ProcessRecord(
        pid=pid,
        name=name,
        cpu_time=0.0,
        memory_kb=0,
        timestamp=time.time(),
        measured=False,
    )


class ProcfsSource:
    """Snapshot source reading the Linux procfs pseudo-filesystem."""

    name = "procfs"

    def __init__(self, root: str | Path = "/proc", ticks: int | None = None) -> None:
        """
        Initialize the ProcfsSource.

        Args:
            root: Mount point of procfs.
            ticks: Clock ticks per second; read from sysconf when omitted.
        """
        self._root = Path(root)
        self._ticks = ticks or clock_ticks()

    def produce_snapshot(self) -> list[ProcessRecord]:
        """Read every numeric entry under the procfs root."""
        try:
            pids = self._list_pids()
        except EnumerationUnavailable as exc:
            logger.warning("Process table unavailable: %s", exc)
            return []

        records: list[ProcessRecord] = []
        for pid in pids:
            try:
                records.append(self._read_process(pid))
            except (FileNotFoundError, ProcessLookupError):
                # Exited between listing and reading
                continue
            except MalformedRecord as exc:
                logger.debug("Skipping pid %d: %s", pid, exc)
                continue
            except OSError as exc:
                logger.debug("Skipping pid %d: %s", pid, exc)
                continue
        return records

    def _list_pids(self) -> list[int]:
        try:
            entries = [entry.name for entry in self._root.iterdir()]
        except OSError as exc:
            raise EnumerationUnavailable(f"cannot list {self._root}: {exc}") from exc
        return [int(entry) for entry in entries if entry.isdigit() and int(entry) > 0]

    def _read_process(self, pid: int) -> ProcessRecord:
        proc_dir = self._root / str(pid)
        try:
            stat_line = (proc_dir / "stat").read_text(encoding="utf-8", errors="replace")
        except PermissionError:
            return _unmeasured(pid)
        name, utime, stime, starttime = parse_stat(stat_line)

        try:
            status = (proc_dir / "status").read_text(encoding="utf-8", errors="replace")
        except PermissionError:
            return _unmeasured(pid, name)

        return ProcessRecord(
            pid=pid,
            name=name,
            cpu_time=(utime + stime) / self._ticks,
            memory_kb=parse_vmrss(status),
            timestamp=time.time(),
            start_time=starttime / self._ticks,
        )


class PsutilSource:
    """Snapshot source backed by the native process table through psutil."""

    name = "psutil"

    attrs = ["name", "cpu_times", "memory_info", "create_time"]

    def produce_snapshot(self) -> list[ProcessRecord]:
        """
        Collect records for all running processes.

        Denied attributes come back as None from ``process_iter`` and turn
        into zero-filled records; processes that exit mid-poll are dropped.
        """
        records: list[ProcessRecord] = []
        try:
            for proc in psutil.process_iter(attrs=self.attrs, ad_value=None):
                try:
                    records.append(self._to_record(proc.pid, proc.info))
                except psutil.ZombieProcess:
                    records.append(_unmeasured(proc.pid))
                except psutil.NoSuchProcess:
                    continue
                except psutil.AccessDenied:
                    records.append(_unmeasured(proc.pid))
        except (psutil.Error, OSError) as exc:
            logger.warning("Process table unavailable: %s", exc)
            return []
        return records

    @staticmethod
    def _to_record(pid: int, info: dict) -> ProcessRecord:
        name = info.get("name") or ""
        cpu_times = info.get("cpu_times")
        mem_info = info.get("memory_info")
        if cpu_times is None or mem_info is None:
            return _unmeasured(pid, name)

        return ProcessRecord(
            pid=pid,
            name=name,
            cpu_time=float(cpu_times.user + cpu_times.system),
            memory_kb=int(mem_info.rss) // 1024,
            timestamp=time.time(),
            start_time=info.get("create_time"),
        )


class BoundedSource:
    """
    Wraps another source and bounds one enumeration with a timeout.

    The inner source runs on a daemon thread. When it overruns, the scan gets
    an empty snapshot, and later scans are skipped until the stuck call
    returns, so at most one enumeration is ever in flight.
    """

    def __init__(self, source: SnapshotSource, timeout: float) -> None:
        self._source = source
        self._timeout = timeout
        self._pending: threading.Thread | None = None
        self.name = source.name

    @property
    def timeout(self) -> float:
        return self._timeout

    def produce_snapshot(self) -> list[ProcessRecord]:
        if self._pending is not None and self._pending.is_alive():
            logger.warning("Previous %s enumeration still running; skipping", self.name)
            return []

        results: Queue[list[ProcessRecord]] = Queue(maxsize=1)
        self._pending = threading.Thread(
            target=self._enumerate,
            args=(results,),
            daemon=True,
            name="SnapshotSource",
        )
        self._pending.start()
        try:
            return results.get(timeout=self._timeout)
        except Empty:
            logger.warning(
                "%s enumeration exceeded %.1fs; using empty snapshot",
                self.name,
                self._timeout,
            )
            return []

    def _enumerate(self, results: Queue) -> None:
        try:
            snapshot = self._source.produce_snapshot()
        except Exception:
            logger.exception("%s enumeration failed", self.name)
            snapshot = []
        results.put(snapshot)


def default_source(name: str = "auto") -> SnapshotSource:
    """
    Select the snapshot source once at startup.

    "auto" prefers procfs on Linux and falls back to psutil elsewhere.
    """
    if name == "procfs":
        return ProcfsSource()
    if name == "psutil":
        return PsutilSource()
    if name == "auto":
        if sys.platform.startswith("linux") and Path("/proc").is_dir():
            return ProcfsSource()
        return PsutilSource()
    raise ConfigError(f"unknown snapshot source {name!r}; expected one of {SOURCE_NAMES}")
