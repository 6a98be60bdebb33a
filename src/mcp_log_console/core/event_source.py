"""Reading already-captured events from JSON payloads and JSON-lines files.

One JSON object per line::

    {"id": 7, "timestamp": "2025-12-30T08:12:04Z", "severity": "error",
     "source": "Physics.Solver", "message": "NaN detected", "stack_trace": "..."}
"""

from __future__ import annotations

import gzip
import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles
from aiofiles.threadpool import wrap
from pydantic import BaseModel, Field, ValidationError, field_validator

from .models import RawEvent, Severity, StackFrame, utc_now

logger = logging.getLogger(__name__)

_SEVERITY_ALIASES = {"LOG": "INFO", "WARN": "WARNING"}


class StackFramePayload(BaseModel):
    function: str = ""
    module_path: str | None = None
    module_version: str | None = None


class RawEventPayload(BaseModel):
    """JSON shape of one raw event."""

    id: int | None = Field(default=None, description="Unique event id; assigned when missing.")
    timestamp: datetime = Field(default_factory=utc_now)
    severity: Severity
    source: str = ""
    message: str
    stack_trace: str = ""
    stack_frames: list[StackFramePayload] | None = None
    filenames_resolved: bool = False

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: Any) -> Any:
        if isinstance(value, str):
            name = value.strip().upper()
            return _SEVERITY_ALIASES.get(name, name)
        return value

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive and aware timestamps cannot be compared when merging.
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value

    def to_event(self, *, fallback_id: int) -> RawEvent:
        frames = None
        if self.stack_frames is not None:
            frames = tuple(
                StackFrame(f.function, f.module_path, f.module_version) for f in self.stack_frames
            )
        return RawEvent(
            id=self.id if self.id is not None else fallback_id,
            timestamp=self.timestamp,
            severity=self.severity,
            source=self.source,
            message=self.message,
            stack_trace=self.stack_trace,
            stack_frames=frames,
            filenames_resolved=self.filenames_resolved,
        )


def parse_events(items: Iterable[Mapping[str, Any]], *, first_id: int = 1) -> list[RawEvent]:
    """Validate raw event dicts. Raises ValueError on the first invalid item."""
    out: list[RawEvent] = []
    for i, item in enumerate(items):
        payload = RawEventPayload.model_validate(item)
        out.append(payload.to_event(fallback_id=first_id + i))
    return out


@asynccontextmanager
async def _open_text(path: Path, *, encoding: str, decode_errors: str):
    """Open an event file for async text reading (plain or gzip)."""
    if path.suffix.lower() == ".gz":
        f = gzip.open(path, mode="rt", encoding=encoding, errors=decode_errors)
        af = wrap(f)
        try:
            yield af
        finally:
            await af.close()
    else:
        async with aiofiles.open(path, encoding=encoding, errors=decode_errors) as f:
            yield f


async def iter_raw_events(
    path: str | Path,
    *,
    first_id: int = 1,
    encoding: str = "utf-8",
    decode_errors: str = "replace",
) -> AsyncIterator[RawEvent]:
    """Yield events from a JSON-lines file, skipping malformed lines.

    Events without an id get ``first_id`` plus their index in the file.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Event file not found: {path}")

    index = 0
    async with _open_text(path, encoding=encoding, decode_errors=decode_errors) as f:
        line_no = 0
        async for line in f:
            line_no += 1
            s = line.strip()
            if not s:
                continue
            try:
                payload = RawEventPayload.model_validate_json(s)
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed event at %s:%d (%d errors)",
                    path,
                    line_no,
                    exc.error_count(),
                )
                continue
            yield payload.to_event(fallback_id=first_id + index)
            index += 1


async def read_raw_events(path: str | Path, **iter_kwargs) -> list[RawEvent]:
    """Collect iter_raw_events into a list."""
    return [e async for e in iter_raw_events(path, **iter_kwargs)]
