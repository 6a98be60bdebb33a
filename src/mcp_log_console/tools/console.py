"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, translate them into console calls, and
return JSON-serializable data structures.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from mcp_log_console.core.console import LogConsole, ViewMode
from mcp_log_console.core.event_source import iter_raw_events, parse_events
from mcp_log_console.core.filters import source_prefixes
from mcp_log_console.core.models import Severity
from mcp_log_console.core.records import LogRecord

DEFAULT_LIMIT = 200
HARD_LIMIT = 5000
ALL_LEVELS = [s.value for s in Severity]
ALL_MODES = [m.value for m in ViewMode]


def _parse_levels(levels: Sequence[str] | None) -> list[Severity] | None:
    """Parse user-supplied severity names into Severity enums."""
    if not levels:
        return None
    out: list[Severity] = []
    for s in levels:
        name = s.strip().upper()
        if not name:
            continue
        try:
            out.append(Severity[name])
        except KeyError as e:
            valid = ", ".join(ALL_LEVELS)
            raise ValueError(
                f"Unknown log level '{s}'. Valid values: {valid}. "
                "Tip: levels is case-insensitive (e.g., 'error', 'WARNING')."
            ) from e
    return out or None


def _parse_mode(mode: str) -> ViewMode:
    try:
        return ViewMode(mode.strip().lower())
    except ValueError as e:
        raise ValueError(f"Unknown mode '{mode}'. Valid values: {', '.join(ALL_MODES)}.") from e


def record_to_dict(record: LogRecord, *, include_stack: bool) -> dict[str, Any]:
    """Convert a LogRecord into a JSON-serializable dict."""
    d: dict[str, Any] = {
        "id": record.id,
        "last_id": record.last_id,
        "timestamp": record.timestamp.isoformat(),
        "severity": record.severity.value,
        "source": record.source,
        "message": record.message,
        "merged_count": record.merged_count,
        "title": record.format_title(),
    }
    if include_stack:
        d["stack_trace"] = record.stack_trace
        d["filenames_resolved"] = record.filenames_resolved
    return d


def submit_events_impl(
    console: LogConsole, *, events: Sequence[Mapping[str, Any]]
) -> dict[str, Any]:
    """Validate event payloads and queue them on every view."""
    parsed = parse_events(events, first_id=console.submitted + 1)
    accepted = console.submit_many(parsed)
    return {"accepted": accepted}


async def ingest_event_file_impl(console: LogConsole, *, path: str) -> dict[str, Any]:
    """Queue every valid event of a JSON-lines file (plain or .gz)."""
    accepted = 0
    async for event in iter_raw_events(path, first_id=console.submitted + 1):
        if console.submit(event):
            accepted += 1
    return {"accepted": accepted}


def get_logs_impl(
    console: LogConsole,
    *,
    mode: str | None = None,
    levels: Sequence[str] | None = None,
    quick_filter: str | None = None,
    limit: int | None = None,
    include_stack: bool = False,
) -> dict[str, Any]:
    """Implementation for the `get_logs` MCP tool.

    Notes
    -----
    - mode/levels/quick_filter update the console's display state and stick
      for later calls.
    - Records come newest first; counters cover the whole view, not only the
      returned records.
    """
    if limit is None:
        limit = DEFAULT_LIMIT
    if limit <= 0:
        raise ValueError("limit must be > 0")
    if limit > HARD_LIMIT:
        limit = HARD_LIMIT

    if mode is not None:
        new_mode = _parse_mode(mode)
        if new_mode is not console.mode:
            console.set_mode(new_mode)
    sev = _parse_levels(levels)
    if sev is not None:
        console.set_visible(sev)
    if quick_filter is not None:
        console.set_quick_filter(quick_filter)

    view = console.update_view()
    records = view.records[:limit]
    return {
        "mode": view.mode.value,
        "paused": view.paused,
        "count": len(records),
        "counters": view.counters.as_dict(),
        "records": [record_to_dict(r, include_stack=include_stack) for r in records],
    }


def pause_logs_impl(console: LogConsole, *, paused: bool) -> dict[str, Any]:
    console.set_paused(paused)
    return {"paused": console.paused, "mode": console.mode.value}


def clear_logs_impl(console: LogConsole) -> dict[str, Any]:
    console.clear()
    return {"cleared": console.mode.value}


def silence_source_impl(
    console: LogConsole, *, pattern: str, is_prefix: bool = False
) -> dict[str, Any]:
    """Silence a source (or source prefix) in the in-memory views."""
    pattern = pattern.strip()
    if not pattern:
        raise ValueError("pattern must not be empty")
    added = console.add_silence(pattern, is_prefix=is_prefix)
    return {
        "added": added,
        "sources": sorted(console.silence.sources),
        "prefixes": sorted(console.silence.prefixes),
    }


def resolve_stack_impl(console: LogConsole, *, record_id: int) -> dict[str, Any]:
    """Resolve stack trace paths for a record in the active view."""
    record = console.resolve_stack(record_id)
    if record is None:
        raise ValueError(f"No record with id {record_id} in the {console.mode.value} view.")
    d = record_to_dict(record, include_stack=True)
    d["silence_prefixes"] = source_prefixes(record.source)
    return d
