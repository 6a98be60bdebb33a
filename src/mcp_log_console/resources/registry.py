"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
Reading a resource never changes the console's display state.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_log_console.core.console import LogConsole, ViewMode
from mcp_log_console.core.event_source import RawEventPayload


def _render_view(console: LogConsole, mode: str) -> str:
    """Return one title per line for a live view, newest first."""
    try:
        view_mode = ViewMode(mode.lower())
    except ValueError as e:
        allowed = ", ".join(m.value for m in ViewMode)
        raise ValueError(f"Unknown view '{mode}'. Allowed: {allowed}.") from e
    view = {
        ViewMode.RAW: console.raw,
        ViewMode.COLLAPSED: console.collapsed,
        ViewMode.SMART: console.smart,
    }[view_mode]
    view.flush()
    return "".join(r.format_title() + "\n" for r in view.records())


def register_resources(mcp: FastMCP, console: LogConsole) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://log-console/help")
    def help_resource() -> str:
        """Return a short list of available resource URIs."""
        return (
            "Resources:\n"
            "- app://log-console/help\n"
            "- app://log-console/counts\n"
            "- app://log-console/settings\n"
            "- app://log-console/schemas/raw-event\n"
            "- logs://{view} (raw, collapsed or smart; one title per line)\n"
            f"\nPersistent logs directory: {console.settings.persistence.directory}\n"
        )

    @mcp.resource("app://log-console/counts")
    def counts() -> dict[str, Any]:
        """Return per-severity group counts of every live view."""
        return {view.name: view.counters.as_dict() for view in console.live_views}

    @mcp.resource("app://log-console/settings")
    def settings() -> dict[str, Any]:
        """Return the effective console settings."""
        return console.settings.model_dump()

    @mcp.resource("app://log-console/schemas/raw-event")
    def raw_event_schema() -> dict[str, Any]:
        """Return the JSON schema accepted by submit_events."""
        return RawEventPayload.model_json_schema()

    @mcp.resource("logs://{view}")
    def view_titles(view: str) -> str:
        """Return the titles held by a live view."""
        return _render_view(console, view)
