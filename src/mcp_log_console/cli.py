from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from mcp_log_console.core.config import load_settings
from mcp_log_console.core.console import LogConsole, ViewMode
from mcp_log_console.core.event_source import read_raw_events
from mcp_log_console.core.models import Severity


def _parse_levels(s: str) -> list[Severity]:
    out: list[Severity] = []
    for part in s.split(","):
        name = part.strip().upper()
        if not name:
            continue
        try:
            out.append(Severity(name))
        except ValueError as e:
            raise argparse.ArgumentTypeError(
                "Invalid level. Allowed: INFO, WARNING, ERROR, EXCEPTION"
            ) from e
    if not out:
        raise argparse.ArgumentTypeError("At least one level must be provided")
    return out


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Replay a JSON-lines event file through the log console views."
    )
    p.add_argument("events_path")
    p.add_argument(
        "--mode",
        choices=[m.value for m in ViewMode],
        default=ViewMode.SMART.value,
        help="View to print (default: smart)",
    )
    p.add_argument(
        "--levels",
        type=_parse_levels,
        default=list(Severity),
        help="Comma-separated (e.g., ERROR,EXCEPTION). Default: all levels",
    )
    p.add_argument("--quick-filter", default="", help="Case-insensitive source prefix")
    p.add_argument("--silence", action="append", default=[], help="Silence an exact source")
    p.add_argument(
        "--silence-prefix", action="append", default=[], help="Silence a source prefix"
    )
    p.add_argument("--settings", default=None, help="Settings JSON file")
    p.add_argument("--max", dest="max_results", type=int, default=None, help="Max records to print")
    p.add_argument("--no-persist", action="store_true", help="Do not write log files")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    settings = load_settings(args.settings)
    if args.no_persist:
        settings = settings.model_copy(
            update={"persistence": settings.persistence.model_copy(update={"enabled": False})}
        )

    console = LogConsole(settings)
    console.start()
    try:
        for source in args.silence:
            console.add_silence(source)
        for prefix in args.silence_prefix:
            console.add_silence(prefix, is_prefix=True)
        console.set_mode(ViewMode(args.mode))
        console.set_visible(args.levels)
        console.set_quick_filter(args.quick_filter)

        events = asyncio.run(read_raw_events(Path(args.events_path)))
        console.submit_many(events)
        view = console.update_view()
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)
    finally:
        console.stop()

    records = view.records if args.max_results is None else view.records[: args.max_results]
    for r in records:
        print(r.format_title())

    counts = ", ".join(f"{k}={v}" for k, v in view.counters.as_dict().items())
    print(f"\nShowing {len(records)} of {view.counters.total} groups ({counts}).")


if __name__ == "__main__":
    main()
