"""Aggregators: the live, persistent and snapshot views over the event stream."""

from __future__ import annotations

from .base import (
    DEFAULT_MAX_RECORDS,
    LogAggregator,
    LogView,
    PendingQueue,
    RecordStore,
    SeverityCounters,
)
from .persistent import PersistentLogAggregator, TieredLogFiles, cleanup_log_files
from .snapshot import SnapshotAggregator
from .stores import CollapseStore, RawStore, SmartStore

__all__ = [
    "DEFAULT_MAX_RECORDS",
    "CollapseStore",
    "LogAggregator",
    "LogView",
    "PendingQueue",
    "PersistentLogAggregator",
    "RawStore",
    "RecordStore",
    "SeverityCounters",
    "SmartStore",
    "SnapshotAggregator",
    "TieredLogFiles",
    "cleanup_log_files",
]
