"""Merge policies for the in-memory views."""

from __future__ import annotations

from collections import OrderedDict, deque

from ..records import LogRecord, SimilarityKey


class RawStore:
    """Keep every event as its own group, in arrival order."""

    def __init__(self) -> None:
        self._groups: deque[LogRecord] = deque()

    def add(self, record: LogRecord) -> bool:
        self._groups.append(record)
        return True

    def pop_oldest(self) -> LogRecord | None:
        return self._groups.popleft() if self._groups else None

    def discard(self, record: LogRecord) -> bool:
        try:
            self._groups.remove(record)
        except ValueError:
            return False
        return True

    def records(self) -> list[LogRecord]:
        return list(reversed(self._groups))

    def clear(self) -> None:
        self._groups.clear()

    def __len__(self) -> int:
        return len(self._groups)


class CollapseStore(RawStore):
    """Merge an event into the latest group when they are similar.

    Only consecutive repeats collapse; an interleaved event starts a new group.
    """

    def add(self, record: LogRecord) -> bool:
        if self._groups and self._groups[-1].is_similar(record):
            self._groups[-1].merge(record)
            return False
        self._groups.append(record)
        return True


class SmartStore:
    """Merge an event into any held group of the same kind.

    The ordered dict is both the lookup index and the recency order: a merged
    group moves to the newest end, eviction pops from the oldest end.
    """

    def __init__(self) -> None:
        self._groups: OrderedDict[SimilarityKey, LogRecord] = OrderedDict()

    def add(self, record: LogRecord) -> bool:
        key = record.similarity_key()
        group = self._groups.get(key)
        if group is not None:
            group.merge(record)
            self._groups.move_to_end(key)
            return False
        self._groups[key] = record
        return True

    def pop_oldest(self) -> LogRecord | None:
        if not self._groups:
            return None
        _, record = self._groups.popitem(last=False)
        return record

    def discard(self, record: LogRecord) -> bool:
        key = record.similarity_key()
        if self._groups.get(key) is not record:
            return False
        del self._groups[key]
        return True

    def get(self, key: SimilarityKey) -> LogRecord | None:
        return self._groups.get(key)

    def records(self) -> list[LogRecord]:
        return list(reversed(self._groups.values()))

    def clear(self) -> None:
        self._groups.clear()

    def __len__(self) -> int:
        return len(self._groups)
