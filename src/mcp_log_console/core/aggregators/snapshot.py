"""Frozen copy of another view, used while the console is paused."""

from __future__ import annotations

from ..filters import SilenceFilter
from ..records import LogRecord
from .base import LogView, SeverityCounters


class SnapshotAggregator:
    """Read-only view over a point-in-time copy of another view."""

    def __init__(self, *, silence: SilenceFilter | None = None) -> None:
        self.name = "snapshot"
        self._silence = silence
        self._records: list[LogRecord] = []
        self._counters = SeverityCounters()

    @property
    def counters(self) -> SeverityCounters:
        return self._counters

    @property
    def is_capturing(self) -> bool:
        return False

    def load_from(self, source: LogView) -> None:
        """Replace the held state with a copy of ``source``."""
        self._records = [r.copy() for r in source.records()]
        self._counters = source.counters.copy()

    def start_capture(self) -> None:
        pass

    def stop_capture(self) -> None:
        pass

    def flush(self) -> bool:
        return False

    def clear_all(self) -> None:
        self._records = []
        self._counters = SeverityCounters()

    def update_filter(self) -> int:
        if self._silence is None:
            return 0
        kept: list[LogRecord] = []
        purged = 0
        for record in self._records:
            if self._silence.is_filtered(record.event):
                self._counters.bump(record.severity, -1)
                purged += 1
            else:
                kept.append(record)
        self._records = kept
        return purged

    def records(self) -> list[LogRecord]:
        return list(self._records)

    def find(self, record_id: int) -> LogRecord | None:
        for record in self._records:
            if record.id == record_id or record.last_id == record_id:
                return record
        return None

    def __len__(self) -> int:
        return len(self._records)
