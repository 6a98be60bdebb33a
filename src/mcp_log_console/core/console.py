"""The console context: every view over the event stream plus display state.

One ``LogConsole`` is created at startup and handed to whatever displays the
logs. It fans incoming events out to all views and keeps the headless part of
the display state (selected mode, pause, visible severities, quick filter).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .aggregators import (
    CollapseStore,
    LogAggregator,
    PersistentLogAggregator,
    RawStore,
    SeverityCounters,
    SmartStore,
    SnapshotAggregator,
)
from .config import ConsoleSettings
from .filters import SilenceFilter
from .flushing import FlushRegistry
from .models import RawEvent, Severity, utc_now
from .records import LogRecord

logger = logging.getLogger(__name__)

DEFAULT_VISIBLE: frozenset[Severity] = frozenset(
    {Severity.WARNING, Severity.ERROR, Severity.EXCEPTION}
)


class ViewMode(str, Enum):
    """Which in-memory view the display shows."""

    RAW = "raw"
    COLLAPSED = "collapsed"
    SMART = "smart"


@dataclass(frozen=True, slots=True)
class ConsoleView:
    """What the display layer renders after an update."""

    mode: ViewMode
    paused: bool
    records: list[LogRecord]
    counters: SeverityCounters
    changed: bool


class LogConsole:
    """Owner of the raw, collapsed, smart, persistent and snapshot views."""

    def __init__(
        self,
        settings: ConsoleSettings | None = None,
        *,
        registry: FlushRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        s = settings or ConsoleSettings()
        self.settings = s
        self.silence = SilenceFilter(s.silence.sources, s.silence.prefixes)
        self.registry = registry or FlushRegistry()

        self.raw = LogAggregator(
            RawStore(), name="raw", max_records=s.raw.max_records, silence=self.silence
        )
        self.collapsed = LogAggregator(
            CollapseStore(),
            name="collapsed",
            max_records=s.collapsed.max_records,
            silence=self.silence,
        )
        self.smart = LogAggregator(
            SmartStore(), name="smart", max_records=s.smart.max_records, silence=self.silence
        )
        self.persistent = PersistentLogAggregator(
            s.persistence, registry=self.registry, clock=clock
        )
        self.snapshot = SnapshotAggregator(silence=self.silence)

        self.mode = ViewMode.SMART
        self.paused = False
        self.visible: set[Severity] = set(DEFAULT_VISIBLE)
        self.quick_filter = ""
        self.submitted = 0

        self._view_changed = True
        self._shown: list[LogRecord] = []
        self._shown_counters = SeverityCounters()

    @property
    def live_views(self) -> tuple[LogAggregator, LogAggregator, LogAggregator]:
        return self.raw, self.collapsed, self.smart

    def start(self) -> None:
        for view in self.live_views:
            view.start_capture()
        self.persistent.start_capture()
        logger.info("Log console started")

    def stop(self) -> None:
        for view in self.live_views:
            view.stop_capture()
        self.persistent.stop_capture()
        logger.info("Log console stopped")

    def submit(self, event: RawEvent) -> bool:
        """Hand one event to every capturing view.

        Returns False (and counts nothing) when no view is capturing.
        """
        if not (self.persistent.is_capturing or any(v.is_capturing for v in self.live_views)):
            return False
        self.submitted += 1
        for view in self.live_views:
            view.submit(event)
        self.persistent.submit(event)
        return True

    def submit_many(self, events: Iterable[RawEvent]) -> int:
        """Submit events in order. Returns how many were accepted."""
        return sum(self.submit(event) for event in events)

    def flush_all(self) -> bool:
        """Flush every live view and every registered disk view."""
        changed = False
        for view in self.live_views:
            changed = view.flush() or changed
        return self.registry.flush_all() or changed

    def current_view(self) -> LogAggregator:
        if self.mode is ViewMode.RAW:
            return self.raw
        if self.mode is ViewMode.COLLAPSED:
            return self.collapsed
        return self.smart

    def active_view(self) -> LogAggregator | SnapshotAggregator:
        return self.snapshot if self.paused else self.current_view()

    def set_mode(self, mode: ViewMode) -> None:
        self.mode = mode
        # A new mode invalidates the snapshot.
        self.set_paused(False)
        self._view_changed = True

    def set_paused(self, paused: bool) -> None:
        if paused == self.paused:
            return
        if paused:
            current = self.current_view()
            current.flush()
            self.snapshot.load_from(current)
        self.paused = paused
        self._view_changed = True

    def clear(self) -> None:
        """Clear the current live view."""
        self.set_paused(False)
        self.current_view().clear_all()
        self._view_changed = True

    def add_silence(self, pattern: str, *, is_prefix: bool = False) -> bool:
        """Add a silence rule and drop matching groups from the in-memory views."""
        added = self.silence.add_prefix(pattern) if is_prefix else self.silence.add_source(pattern)
        if not added:
            return False
        purged = sum(view.update_filter() for view in (*self.live_views, self.snapshot))
        logger.info(
            "Silenced %s %r (%d groups dropped)",
            "prefix" if is_prefix else "source",
            pattern,
            purged,
        )
        self._view_changed = True
        return True

    def set_visible(self, severities: Iterable[Severity]) -> None:
        self.visible = set(severities)

    def set_quick_filter(self, text: str) -> None:
        self.quick_filter = text

    def _is_shown(self, record: LogRecord) -> bool:
        if record.severity not in self.visible:
            return False
        return record.source.lower().startswith(self.quick_filter.lower())

    def update_view(self) -> ConsoleView:
        """Flush the active view and return what should be displayed.

        Records and counters are only re-queried when the view changed.
        """
        view = self.active_view()
        changed = view.flush() or self._view_changed
        if changed:
            self._shown = view.records()
            self._shown_counters = view.counters.copy()
        self._view_changed = False
        return ConsoleView(
            mode=self.mode,
            paused=self.paused,
            records=[r for r in self._shown if self._is_shown(r)],
            counters=self._shown_counters.copy(),
            changed=changed,
        )

    def resolve_stack(self, record_id: int) -> LogRecord | None:
        """Resolve stack paths for a displayed record. Returns None if not held."""
        record = self.active_view().find(record_id)
        if record is not None:
            record.resolve_stack_paths(self.settings.install_root)
        return record
