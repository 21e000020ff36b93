"""In-memory history of the last sample seen for each pid."""

from collections.abc import Iterator

from resmon.models import ProcessRecord


class HistoryStore:
    """
    Maps pid to the most recent ProcessRecord.

    Entries are created on first sight, overwritten on every later sample
    and never removed. Not thread-safe; the detector is its only user.
    """

    def __init__(self) -> None:
        self._records: dict[int, ProcessRecord] = {}

    def get(self, pid: int) -> ProcessRecord | None:
        return self._records.get(pid)

    def put(self, record: ProcessRecord) -> None:
        self._records[record.pid] = record

    def pids(self) -> set[int]:
        return set(self._records)

    def __contains__(self, pid: object) -> bool:
        return pid in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ProcessRecord]:
        return iter(list(self._records.values()))
