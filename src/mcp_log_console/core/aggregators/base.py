"""Shared aggregator machinery.

Every view buffers raw events in a pending queue and only merges them on
``flush()``. In-memory views differ solely in the ``RecordStore`` they use, so
there is one ``LogAggregator`` class and several stores rather than a subclass
per policy.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from ..filters import SilenceFilter
from ..models import RawEvent, Severity
from ..records import LogRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 300


@dataclass(slots=True)
class SeverityCounters:
    """Number of distinct groups held per severity."""

    info: int = 0
    warning: int = 0
    error: int = 0
    exception: int = 0

    def bump(self, severity: Severity, delta: int) -> None:
        name = severity.value.lower()
        setattr(self, name, getattr(self, name) + delta)

    def get(self, severity: Severity) -> int:
        return getattr(self, severity.value.lower())

    def reset(self) -> None:
        self.info = self.warning = self.error = self.exception = 0

    def copy(self) -> SeverityCounters:
        return SeverityCounters(self.info, self.warning, self.error, self.exception)

    @property
    def total(self) -> int:
        return self.info + self.warning + self.error + self.exception

    def as_dict(self) -> dict[str, int]:
        return {s.value: self.get(s) for s in Severity}


class PendingQueue:
    """Single producer / single consumer hand-off for raw events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: deque[RawEvent] = deque()

    def put(self, event: RawEvent) -> None:
        with self._lock:
            self._items.append(event)

    def drain(self) -> list[RawEvent]:
        """Take every queued event at once."""
        with self._lock:
            if not self._items:
                return []
            items, self._items = self._items, deque()
        return list(items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class RecordStore(Protocol):
    """Merge policy plus storage for one in-memory view."""

    def add(self, record: LogRecord) -> bool:
        """Store or merge a record. Return True if a new group was created."""
        ...

    def pop_oldest(self) -> LogRecord | None:
        """Remove and return the oldest group."""
        ...

    def discard(self, record: LogRecord) -> bool:
        """Remove a specific group. Return False if it is not held."""
        ...

    def records(self) -> list[LogRecord]:
        """Return the held groups in display order (newest first)."""
        ...

    def clear(self) -> None: ...

    def __len__(self) -> int: ...


class LogView(Protocol):
    """The contract the display layer relies on."""

    @property
    def counters(self) -> SeverityCounters: ...

    @property
    def is_capturing(self) -> bool: ...

    def start_capture(self) -> None: ...

    def stop_capture(self) -> None: ...

    def flush(self) -> bool: ...

    def clear_all(self) -> None: ...

    def update_filter(self) -> int: ...

    def records(self) -> Sequence[LogRecord]: ...


class LogAggregator:
    """A bounded in-memory view over the event stream."""

    def __init__(
        self,
        store: RecordStore,
        *,
        name: str,
        max_records: int = DEFAULT_MAX_RECORDS,
        silence: SilenceFilter | None = None,
    ) -> None:
        if max_records < 1:
            raise ValueError("max_records must be >= 1")
        self.name = name
        self.max_records = max_records
        self._store = store
        self._silence = silence
        self._pending = PendingQueue()
        self._counters = SeverityCounters()
        self._capturing = False

    def __repr__(self) -> str:
        return f"LogAggregator(name={self.name!r}, groups={len(self._store)})"

    @property
    def counters(self) -> SeverityCounters:
        return self._counters

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def start_capture(self) -> None:
        self._capturing = True
        logger.debug("Aggregator %s started", self.name)

    def stop_capture(self) -> None:
        """Flush what is already pending, then stop accepting events."""
        if not self._capturing:
            return
        self.flush()
        self._capturing = False
        self._pending.clear()
        logger.debug("Aggregator %s stopped", self.name)

    def submit(self, event: RawEvent) -> None:
        """Queue a raw event. May be called from the producer's thread."""
        if self._capturing:
            self._pending.put(event)

    def is_filtered(self, event: RawEvent) -> bool:
        return self._silence is not None and self._silence.is_filtered(event)

    def flush(self) -> bool:
        """Merge all pending events into the store.

        Returns True if any pending event was consumed.
        """
        if not self._capturing:
            return False
        events = self._pending.drain()
        if not events:
            return False
        for event in events:
            if self.is_filtered(event):
                continue
            record = LogRecord(event)
            if self._store.add(record):
                self._counters.bump(record.severity, 1)
        while len(self._store) > self.max_records:
            dropped = self._store.pop_oldest()
            if dropped is None:
                break
            self._counters.bump(dropped.severity, -1)
        return True

    def clear_all(self) -> None:
        self._store.clear()
        self._counters.reset()

    def update_filter(self) -> int:
        """Drop held groups that the silence rules now exclude."""
        if self._silence is None:
            return 0
        purged = 0
        for record in self._store.records():
            if self._silence.is_filtered(record.event) and self._store.discard(record):
                self._counters.bump(record.severity, -1)
                purged += 1
        if purged:
            logger.debug("Aggregator %s purged %d silenced groups", self.name, purged)
        return purged

    def records(self) -> list[LogRecord]:
        return self._store.records()

    def find(self, record_id: int) -> LogRecord | None:
        """Return the held group whose first or last event has this id."""
        for record in self._store.records():
            if record.id == record_id or record.last_id == record_id:
                return record
        return None

    def __len__(self) -> int:
        return len(self._store)
