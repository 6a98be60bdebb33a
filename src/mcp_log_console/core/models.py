"""Core data models for the log console."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum


def utc_now() -> datetime:
    """Current time in UTC; event titles and session file names share this clock."""
    return datetime.now(UTC)


class Severity(str, Enum):
    """Severity of a captured event, ordered by criticality."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    EXCEPTION = "EXCEPTION"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.INFO: 0,
    Severity.WARNING: 1,
    Severity.ERROR: 2,
    Severity.EXCEPTION: 3,
}


class Tier(str, Enum):
    """Persisted log file tiers. Each tier keeps its minimum severity and above."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @property
    def min_severity(self) -> Severity:
        return Severity(self.value)

    def accepts(self, severity: Severity) -> bool:
        """Return True if a record of this severity belongs to the tier."""
        return severity.rank >= self.min_severity.rank


@dataclass(frozen=True, slots=True)
class StackFrame:
    """Captured frame info used to annotate stack trace lines."""

    function: str
    module_path: str | None = None
    module_version: str | None = None


@dataclass(frozen=True, slots=True)
class RawEvent:
    """One event as supplied by the host application."""

    id: int
    timestamp: datetime
    severity: Severity
    source: str
    message: str
    stack_trace: str = ""
    stack_frames: tuple[StackFrame, ...] | None = None
    filenames_resolved: bool = False

    def __post_init__(self) -> None:
        # Naive and aware timestamps cannot be compared when merging.
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=UTC))
