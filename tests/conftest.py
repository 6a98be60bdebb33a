from __future__ import annotations

import itertools
import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from mcp_log_console.core.config import ConsoleSettings, PersistenceSettings
from mcp_log_console.core.models import RawEvent, Severity

BASE_TS = datetime(2025, 12, 30, 8, 0, 0, tzinfo=UTC)


@pytest.fixture
def make_event() -> Callable[..., RawEvent]:
    """Build events with increasing ids and timestamps (one second apart)."""
    counter = itertools.count(1)

    def _make(
        severity: Severity = Severity.INFO,
        source: str = "App",
        message: str = "hello",
        *,
        stack_trace: str = "",
        seconds: float | None = None,
        event_id: int | None = None,
        stack_frames=None,
    ) -> RawEvent:
        n = next(counter)
        return RawEvent(
            id=n if event_id is None else event_id,
            timestamp=BASE_TS + timedelta(seconds=n if seconds is None else seconds),
            severity=severity,
            source=source,
            message=message,
            stack_trace=stack_trace,
            stack_frames=stack_frames,
        )

    return _make


@pytest.fixture
def write_events() -> Callable[[Path, list[dict[str, Any]]], None]:
    def _write(path: Path, events: list[dict[str, Any]]) -> None:
        path.write_text("".join(json.dumps(e) + "\n" for e in events), encoding="utf-8")

    return _write


@pytest.fixture
def memory_settings(tmp_path: Path) -> ConsoleSettings:
    """Console settings that never touch the disk."""
    return ConsoleSettings(
        persistence=PersistenceSettings(enabled=False, directory=str(tmp_path / "logs"))
    )
