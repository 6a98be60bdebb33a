"""Aggregated log record.

A ``LogRecord`` wraps the first ``RawEvent`` of a group and tracks how many
similar events were merged into it since.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path, PurePath
from typing import NamedTuple

from .errors import MalformedStackTrace
from .models import RawEvent, Severity, StackFrame

logger = logging.getLogger(__name__)

REPEATED_PREFIX = "REPEATED:"


class SimilarityKey(NamedTuple):
    """Identity of an event's kind. Timestamp and id are not part of it."""

    severity: Severity
    source: str
    message: str
    stack_trace: str


def format_timestamp(ts: datetime) -> str:
    """Format a timestamp as ``yymmddTHHMMSS.fff``."""
    return f"{ts:%y%m%dT%H%M%S}.{ts.microsecond // 1000:03d}"


def _relative_module_path(module_path: str, install_root: Path) -> str:
    try:
        rel = os.path.relpath(module_path, install_root)
    except ValueError:
        # Different drive on Windows.
        rel = module_path
    return PurePath(rel).as_posix()


def _annotate_lines(
    lines: list[str],
    frames: tuple[StackFrame, ...] | None,
    install_root: Path,
) -> list[str]:
    if frames is None or len(lines) != len(frames):
        raise MalformedStackTrace(
            f"{len(lines)} stack lines vs {0 if frames is None else len(frames)} frames"
        )
    out: list[str] = []
    for line, frame in zip(lines, frames):
        path = (
            _relative_module_path(frame.module_path, install_root)
            if frame.module_path
            else "<unknown>"
        )
        out.append(f"{line} in {path} [v{frame.module_version or '?'}]")
    return out


class LogRecord:
    """A group of one or more similar events."""

    __slots__ = (
        "event",
        "last_id",
        "timestamp",
        "merged_count",
        "stack_trace",
        "filenames_resolved",
        "_similarity_key",
    )

    def __init__(self, event: RawEvent) -> None:
        self.event = event
        self.last_id = event.id
        self.timestamp = event.timestamp
        self.merged_count = 1
        self.stack_trace = event.stack_trace
        self.filenames_resolved = event.filenames_resolved
        self._similarity_key: SimilarityKey | None = None

    def __repr__(self) -> str:
        return (
            f"LogRecord(id={self.id}, severity={self.severity.value}, "
            f"merged_count={self.merged_count}, source={self.source!r})"
        )

    @property
    def id(self) -> int:
        return self.event.id

    @property
    def severity(self) -> Severity:
        return self.event.severity

    @property
    def source(self) -> str:
        return self.event.source

    @property
    def message(self) -> str:
        return self.event.message

    def similarity_key(self) -> SimilarityKey:
        """Return the cached similarity key, computing it on first use.

        Built from the captured event, so resolving stack paths later does not
        change it.
        """
        if self._similarity_key is None:
            e = self.event
            self._similarity_key = SimilarityKey(e.severity, e.source, e.message, e.stack_trace)
        return self._similarity_key

    def is_similar(self, other: LogRecord) -> bool:
        """Return True if both records describe the same kind of event."""
        return self.similarity_key() == other.similarity_key()

    def merge(self, other: LogRecord) -> None:
        """Fold a repeated record into this one.

        Only the merge bookkeeping changes; callers own any counter updates.
        """
        self.last_id = other.event.id
        if other.timestamp > self.timestamp:
            self.timestamp = other.timestamp
        self.merged_count += 1

    def format_timestamp(self) -> str:
        return format_timestamp(self.timestamp)

    def format_title(self) -> str:
        """Return a one-line description of the record (no stack trace)."""
        parts = [self.format_timestamp(), f"[{self.severity.value}]"]
        if self.merged_count > 1:
            parts.append(f"[{REPEATED_PREFIX}{self.merged_count}]")
        if self.source:
            parts.append(f"[{self.source}]")
        parts.append(self.message)
        return " ".join(parts)

    def resolve_stack_paths(self, install_root: str | Path | None = None) -> bool:
        """Append module path and version to every stack trace line.

        Runs at most once per record. Returns True if the text was rewritten.
        """
        if self.filenames_resolved:
            return False
        root = Path(install_root) if install_root is not None else Path.cwd()
        try:
            lines = _annotate_lines(self.stack_trace.split("\n"), self.event.stack_frames, root)
        except MalformedStackTrace as exc:
            logger.debug("Cannot resolve stack paths for record %s: %s", self.id, exc)
            self.filenames_resolved = True
            return False
        self.stack_trace = "\n".join(lines)
        self.filenames_resolved = True
        return True

    def copy(self) -> LogRecord:
        """Return an independent copy sharing the same captured event."""
        clone = LogRecord(self.event)
        clone.last_id = self.last_id
        clone.timestamp = self.timestamp
        clone.merged_count = self.merged_count
        clone.stack_trace = self.stack_trace
        clone.filenames_resolved = self.filenames_resolved
        clone._similarity_key = self._similarity_key
        return clone
