from __future__ import annotations

from pathlib import Path

import pytest

from mcp_log_console.core.config import ConsoleSettings
from mcp_log_console.core.console import LogConsole
from mcp_log_console.tools.console import (
    HARD_LIMIT,
    clear_logs_impl,
    get_logs_impl,
    ingest_event_file_impl,
    pause_logs_impl,
    resolve_stack_impl,
    silence_source_impl,
    submit_events_impl,
)


@pytest.fixture
def console(memory_settings: ConsoleSettings):
    c = LogConsole(memory_settings)
    c.start()
    yield c
    c.stop()


def _events(*rows: tuple[str, str, str]) -> list[dict[str, str]]:
    return [
        {
            "timestamp": f"2025-12-30T08:12:{i:02d}Z",
            "severity": sev,
            "source": source,
            "message": message,
        }
        for i, (sev, source, message) in enumerate(rows)
    ]


def test_submit_and_get_logs(console: LogConsole) -> None:
    out = submit_events_impl(
        console,
        events=_events(
            ("error", "Net", "upstream timeout"),
            ("error", "Net", "upstream timeout"),
            ("warning", "Disk", "almost full"),
            ("info", "App", "started"),
        ),
    )
    assert out == {"accepted": 4}

    logs = get_logs_impl(console)

    assert logs["mode"] == "smart"
    assert not logs["paused"]
    assert logs["count"] == 2
    assert logs["counters"] == {"INFO": 1, "WARNING": 1, "ERROR": 1, "EXCEPTION": 0}
    top = logs["records"][1]
    assert top["message"] == "upstream timeout"
    assert top["merged_count"] == 2
    assert (top["id"], top["last_id"]) == (1, 2)
    assert "[REPEATED:2] [Net] upstream timeout" in top["title"]
    assert "stack_trace" not in top


def test_ids_continue_across_submissions(console: LogConsole) -> None:
    submit_events_impl(console, events=_events(("error", "A", "one")))
    submit_events_impl(console, events=_events(("error", "A", "two")))

    logs = get_logs_impl(console, mode="raw")

    assert [r["id"] for r in logs["records"]] == [2, 1]


def test_get_logs_mode_levels_and_filter_stick(console: LogConsole) -> None:
    submit_events_impl(
        console,
        events=_events(
            ("info", "Physics.Solver", "tick"),
            ("info", "Physics.Solver", "tick"),
            ("error", "Audio", "underrun"),
        ),
    )

    logs = get_logs_impl(console, mode="RAW", levels=["info"], quick_filter="physics")
    assert logs["mode"] == "raw"
    assert [r["message"] for r in logs["records"]] == ["tick", "tick"]

    again = get_logs_impl(console, include_stack=True)
    assert again["count"] == 2
    assert again["records"][0]["stack_trace"] == ""


def test_get_logs_limit(console: LogConsole) -> None:
    submit_events_impl(console, events=_events(*[("error", "A", f"m{i}") for i in range(5)]))

    assert get_logs_impl(console, limit=2)["count"] == 2
    assert get_logs_impl(console, limit=HARD_LIMIT + 1)["count"] == 5
    with pytest.raises(ValueError):
        get_logs_impl(console, limit=0)


def test_get_logs_rejects_unknown_values(console: LogConsole) -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        get_logs_impl(console, levels=["fatal"])
    with pytest.raises(ValueError, match="Unknown mode"):
        get_logs_impl(console, mode="fancy")


def test_submit_rejects_invalid_payload(console: LogConsole) -> None:
    with pytest.raises(ValueError):
        submit_events_impl(console, events=[{"severity": "error"}])
    assert console.submitted == 0


def test_pause_and_clear(console: LogConsole) -> None:
    submit_events_impl(console, events=_events(("error", "A", "before")))

    assert pause_logs_impl(console, paused=True) == {"paused": True, "mode": "smart"}
    submit_events_impl(console, events=_events(("error", "A", "after")))
    assert [r["message"] for r in get_logs_impl(console)["records"]] == ["before"]

    pause_logs_impl(console, paused=False)
    assert [r["message"] for r in get_logs_impl(console)["records"]] == ["after", "before"]

    pause_logs_impl(console, paused=True)
    assert clear_logs_impl(console) == {"cleared": "smart"}
    logs = get_logs_impl(console)
    assert not logs["paused"]
    assert logs["records"] == []


def test_silence_source(console: LogConsole) -> None:
    submit_events_impl(
        console, events=_events(("error", "Noise.A", "x"), ("error", "App", "y"))
    )
    get_logs_impl(console)

    out = silence_source_impl(console, pattern=" Noise. ", is_prefix=True)

    assert out == {"added": True, "sources": [], "prefixes": ["Noise."]}
    assert [r["source"] for r in get_logs_impl(console)["records"]] == ["App"]
    with pytest.raises(ValueError):
        silence_source_impl(console, pattern="  ")


def test_resolve_stack(console: LogConsole, tmp_path: Path) -> None:
    console.settings = console.settings.model_copy(update={"install_root": str(tmp_path)})
    submit_events_impl(
        console,
        events=[
            {
                "severity": "exception",
                "source": "Game.Physics.Solver",
                "message": "boom",
                "stack_trace": "at step()",
                "stack_frames": [
                    {
                        "function": "step",
                        "module_path": str(tmp_path / "solver.py"),
                        "module_version": "3.1",
                    }
                ],
            }
        ],
    )
    get_logs_impl(console)

    out = resolve_stack_impl(console, record_id=1)

    assert out["stack_trace"] == "at step() in solver.py [v3.1]"
    assert out["filenames_resolved"] is True
    assert out["silence_prefixes"] == ["Game.Physics.", "Game."]
    with pytest.raises(ValueError, match="No record"):
        resolve_stack_impl(console, record_id=99)


@pytest.mark.asyncio
async def test_ingest_event_file(console: LogConsole, tmp_path: Path, write_events) -> None:
    path = tmp_path / "events.jsonl"
    write_events(path, _events(("error", "A", "x"), ("error", "A", "x")))

    out = await ingest_event_file_impl(console, path=str(path))

    assert out == {"accepted": 2}
    [record] = get_logs_impl(console)["records"]
    assert record["merged_count"] == 2


@pytest.mark.asyncio
async def test_ingest_missing_file(console: LogConsole, tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        await ingest_event_file_impl(console, path=str(tmp_path / "nope.jsonl"))
