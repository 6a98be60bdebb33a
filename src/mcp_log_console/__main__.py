"""Module entrypoint.

Allows:
    python -m mcp_log_console
"""

from __future__ import annotations

from mcp_log_console.server.console_server import main

if __name__ == "__main__":
    main()
