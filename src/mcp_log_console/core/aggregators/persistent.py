"""Disk-backed view that writes every event into severity-tiered files.

Up to three files are written per session:

- ``INFO`` gets every record;
- ``WARNING`` gets warnings, errors and exceptions;
- ``ERROR`` gets errors and exceptions.

Nothing is kept in memory. A disk failure disables writing for the rest of
the session instead of stalling the update loop.
"""

from __future__ import annotations

import glob
import logging
import os
import stat
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path
from typing import TextIO

from ..config import CleanupPolicy, PersistenceSettings
from ..errors import PersistenceError
from ..flushing import FlushRegistry
from ..models import RawEvent, Severity, Tier, utc_now
from ..records import LogRecord
from .base import PendingQueue, SeverityCounters

logger = logging.getLogger(__name__)


def cleanup_log_files(
    directory: Path,
    prefix: str,
    policy: CleanupPolicy,
    *,
    now: float | None = None,
) -> list[Path]:
    """Delete old ``<prefix>.*`` files that break the retention policy.

    Files are visited oldest first by modification time. Returns the deleted paths.
    """
    if policy.max_files < 0 and policy.max_total_bytes < 0 and policy.max_age_hours < 0:
        return []
    if not directory.is_dir():
        return []
    if now is None:
        now = time.time()

    entries: list[tuple[float, Path, int]] = []
    for path in directory.glob(f"{glob.escape(prefix)}.*"):
        try:
            st = path.stat()
        except FileNotFoundError:
            continue
        if stat.S_ISREG(st.st_mode):
            entries.append((st.st_mtime, path, st.st_size))
    if not entries:
        logger.debug("No log files found in %s", directory)
        return []
    entries.sort(key=lambda e: (e[0], e[1].name))

    remaining = len(entries)
    total_size = sum(e[2] for e in entries)
    max_age_seconds = policy.max_age_hours * 3600
    logger.info(
        "Found persistent logs: total_files=%d, total_size=%d, oldest=%s",
        remaining,
        total_size,
        datetime.fromtimestamp(entries[0][0]).isoformat(timespec="seconds"),
    )

    deleted: list[Path] = []
    for mtime, path, size in entries:
        if policy.max_files >= 0 and remaining > policy.max_files:
            reason = "too many log files"
        elif policy.max_total_bytes >= 0 and total_size > policy.max_total_bytes:
            reason = "total size too large"
        elif policy.max_age_hours >= 0 and now - mtime > max_age_seconds:
            reason = "file too old"
        else:
            continue
        try:
            path.unlink()
        except OSError as exc:
            logger.warning("Cannot drop log file %s: %s", path, exc)
            continue
        logger.info("Dropped log file (%s): %s", reason, path)
        remaining -= 1
        total_size -= size
        deleted.append(path)
    return deleted


class TieredLogFiles:
    """Append streams for one logging session."""

    def __init__(self, directory: Path, prefix: str, session: str, tiers: Sequence[Tier]) -> None:
        self.paths: dict[Tier, Path] = {
            tier: directory / f"{prefix}.{session}.{tier.value}.txt" for tier in tiers
        }
        self._directory = directory
        self._streams: dict[Tier, TextIO] = {}

    def open(self) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            for tier, path in self.paths.items():
                self._streams[tier] = path.open("a", encoding="utf-8")
        except OSError as exc:
            self.close()
            raise PersistenceError(f"Cannot open log files in {self._directory}: {exc}") from exc

    def write(self, severity: Severity, text: str) -> None:
        try:
            for tier, stream in self._streams.items():
                if tier.accepts(severity):
                    stream.write(text)
                    stream.write("\n")
        except OSError as exc:
            raise PersistenceError(f"Cannot write log record: {exc}") from exc

    def sync(self) -> None:
        try:
            for stream in self._streams.values():
                stream.flush()
                os.fsync(stream.fileno())
        except OSError as exc:
            raise PersistenceError(f"Cannot flush log files: {exc}") from exc

    def close(self) -> None:
        first_error: OSError | None = None
        for stream in self._streams.values():
            try:
                stream.close()
            except OSError as exc:
                first_error = first_error or exc
        self._streams.clear()
        if first_error is not None:
            raise PersistenceError(f"Cannot close log files: {first_error}") from first_error


class PersistentLogAggregator:
    """A view that keeps no records and persists every event to disk."""

    def __init__(
        self,
        settings: PersistenceSettings | None = None,
        *,
        registry: FlushRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.name = "persistent"
        self.settings = settings or PersistenceSettings()
        self._registry = registry
        self._clock = clock
        self._pending = PendingQueue()
        self._counters = SeverityCounters()
        self._files: TieredLogFiles | None = None
        self._capturing = False
        self._writing = False

    @property
    def counters(self) -> SeverityCounters:
        return self._counters

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    @property
    def is_writing(self) -> bool:
        """True while records are being persisted."""
        return self._writing

    @property
    def session_files(self) -> dict[Tier, Path]:
        return dict(self._files.paths) if self._files is not None else {}

    def _enabled_tiers(self) -> list[Tier]:
        s = self.settings
        flags = {
            Tier.INFO: s.write_info_file,
            Tier.WARNING: s.write_warning_file,
            Tier.ERROR: s.write_error_file,
        }
        return [tier for tier, on in flags.items() if on]

    def _disable(self, what: str, exc: PersistenceError) -> None:
        self._writing = False
        logger.error("%s. Disk logging disabled for this session.", what, exc_info=exc)

    def _start_files(self) -> None:
        self._stop_files()
        s = self.settings
        directory = Path(s.directory)
        try:
            cleanup_log_files(directory, s.file_prefix, s.cleanup)
        except OSError:
            logger.exception("Error while cleaning up old log files")

        tiers = self._enabled_tiers()
        if not s.enabled or not tiers:
            return
        session = self._clock().strftime(s.session_timestamp_format)
        files = TieredLogFiles(directory, s.file_prefix, session, tiers)
        try:
            files.open()
        except PersistenceError as exc:
            self._disable("Not enabling disk logging due to errors", exc)
            return
        self._files = files
        self._writing = True

    def _stop_files(self) -> None:
        files, self._files = self._files, None
        self._writing = False
        if files is None:
            return
        try:
            files.close()
        except PersistenceError:
            logger.exception("Error while closing log files")

    def start_capture(self) -> None:
        self._capturing = True
        self._start_files()
        if self._registry is not None:
            self._registry.register(self)
        if self._writing:
            logger.info("Persistent aggregator started in %s", self.settings.directory)
        else:
            logger.warning("Persistent aggregator disabled")

    def stop_capture(self) -> None:
        if not self._capturing:
            return
        logger.info("Stopping persistent aggregator")
        self.flush()
        self._capturing = False
        self._pending.clear()
        self._stop_files()
        if self._registry is not None:
            self._registry.unregister(self)

    def submit(self, event: RawEvent) -> None:
        if self._capturing:
            self._pending.put(event)

    def is_filtered(self, event: RawEvent) -> bool:
        # Silence rules only apply to the in-memory views.
        return False

    def _persist(self, record: LogRecord) -> None:
        text = record.format_title()
        if record.severity is Severity.EXCEPTION and record.stack_trace:
            text += "\n" + record.stack_trace
        try:
            self._files.write(record.severity, text)
        except PersistenceError as exc:
            self._disable("Failed to write a record", exc)

    def flush(self) -> bool:
        """Write pending events and force them to disk."""
        if not self._capturing:
            return False
        events = self._pending.drain()
        if not events:
            return False
        for event in events:
            if not self._writing:
                break
            self._persist(LogRecord(event))
        if self._writing:
            try:
                self._files.sync()
            except PersistenceError as exc:
                self._disable("Failed to flush records to disk", exc)
        return True

    def clear_all(self) -> None:
        """Start a new set of session files; a written log cannot be cleared."""
        if self._capturing:
            self._start_files()

    def update_filter(self) -> int:
        return 0

    def records(self) -> list[LogRecord]:
        return []
