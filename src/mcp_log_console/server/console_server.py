"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: callable actions (submit events, read a view, pause, silence, ...)
- Resources: addressable data blobs (counts, settings, view titles)
- The periodic flush driver that keeps the views and the log files current

Run locally (stdio):
    python -m mcp_log_console.server.console_server
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sys
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_log_console.core.config import load_settings
from mcp_log_console.core.console import LogConsole
from mcp_log_console.resources.registry import register_resources
from mcp_log_console.tools.console import (
    clear_logs_impl,
    get_logs_impl,
    ingest_event_file_impl,
    pause_logs_impl,
    resolve_stack_impl,
    silence_source_impl,
    submit_events_impl,
)

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure a reasonable default logging setup.

    The MCP client typically captures stderr; keeping logs concise makes them easier to consume.
    """
    level_name = os.getenv("LOG_CONSOLE_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def run_periodic_flush(console: LogConsole, period: float) -> None:
    """Flush all views every ``period`` seconds until cancelled."""
    try:
        while True:
            await asyncio.sleep(period)
            console.flush_all()
    finally:
        console.flush_all()


def create_server(console: LogConsole) -> FastMCP:
    """Build the MCP server around one console."""

    @asynccontextmanager
    async def lifespan(_server: FastMCP) -> AsyncIterator[None]:
        console.start()
        task = asyncio.create_task(
            run_periodic_flush(console, console.settings.flush_period_seconds)
        )
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            console.stop()

    mcp = FastMCP("log-console", json_response=True, lifespan=lifespan)
    register_resources(mcp, console)

    @mcp.tool()
    def submit_events(events: list[dict[str, Any]]) -> dict[str, Any]:
        """Queue raw events on every view.

        Each event: {"timestamp": ISO-8601, "severity": info|warning|error|exception,
        "source": str, "message": str, "stack_trace": str, "id": int (optional)}.
        """
        return submit_events_impl(console, events=events)

    @mcp.tool()
    async def ingest_event_file(path: str) -> dict[str, Any]:
        """Queue every event of a JSON-lines file (plain text or .gz)."""
        return await ingest_event_file_impl(console, path=path)

    @mcp.tool()
    def get_logs(
        mode: str | None = None,
        levels: Sequence[str] | None = None,
        quick_filter: str | None = None,
        limit: int | None = None,
        include_stack: bool = False,
    ) -> dict[str, Any]:
        """Return the records of the current view, newest first.

        Parameters
        ----------
        mode:
            raw, collapsed or smart. Switching mode ends a pause.
        levels:
            Severities to show (e.g., ["warning", "error"]). Case-insensitive.
        quick_filter:
            Case-insensitive prefix of the record source.
        limit:
            Maximum number of records returned (hard-capped in the implementation).
        include_stack:
            Whether to include the stack trace of each record.

        Returns
        -------
        dict:
            {"mode": str, "paused": bool, "count": int, "counters": dict, "records": list[dict]}
        """
        return get_logs_impl(
            console,
            mode=mode,
            levels=levels,
            quick_filter=quick_filter,
            limit=limit,
            include_stack=include_stack,
        )

    @mcp.tool()
    def pause_logs(paused: bool = True) -> dict[str, Any]:
        """Freeze (or unfreeze) the current view."""
        return pause_logs_impl(console, paused=paused)

    @mcp.tool()
    def clear_logs() -> dict[str, Any]:
        """Clear the current view."""
        return clear_logs_impl(console)

    @mcp.tool()
    def silence_source(pattern: str, is_prefix: bool = False) -> dict[str, Any]:
        """Hide a source (or every source starting with a prefix) from the views."""
        return silence_source_impl(console, pattern=pattern, is_prefix=is_prefix)

    @mcp.tool()
    def resolve_stack(record_id: int) -> dict[str, Any]:
        """Annotate a record's stack trace with module paths and versions."""
        return resolve_stack_impl(console, record_id=record_id)

    return mcp


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    _ = argv or sys.argv[1:]
    console = LogConsole(load_settings())
    LOGGER.debug("Starting MCP server (transport=stdio)")
    create_server(console).run(transport="stdio")


if __name__ == "__main__":
    main()
