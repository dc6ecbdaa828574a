"""Command-line entrypoint for the mssql-mcp FastMCP server.

Runs the server over stdio (FastMCP's default transport). SIGTERM, Ctrl-C and
unexpected exceptions all take the same exit path: the connection pool is
closed before the process exits, so no connection is left dangling.
"""

from __future__ import annotations

import signal
import sys
import types

from fastmcp.utilities.logging import get_logger

from mssql_mcp.server import manager, mcp

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)


def _raise_system_exit(signum: int, _frame: types.FrameType | None) -> None:
    _logger.info("Received %s, initiating graceful shutdown", signal.Signals(signum).name)
    raise SystemExit(0)


def main() -> None:
    """Start the mssql-mcp FastMCP server via CLI."""
    signal.signal(signal.SIGTERM, _raise_system_exit)
    exit_code = 0
    try:
        mcp.run()
    except KeyboardInterrupt:
        _logger.info("Interrupted by user. Exiting cleanly.")
    except Exception:
        _logger.exception("Unhandled server error; shutting down")
        exit_code = 1
    finally:
        manager.dispose()
        _logger.info("Server shutdown complete")
    sys.exit(exit_code)


if __name__ == "__main__":
    # Delegate to main() so behavior is consistent across execution paths.
    main()
