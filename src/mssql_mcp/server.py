"""FastMCP server implementation for mssql-mcp."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import dotenv
from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from starlette.requests import Request
from starlette.responses import JSONResponse

from mssql_mcp.execute.mcp_tools import register_execute_tools
from mssql_mcp.execute.runner import QueryExecutor
from mssql_mcp.schema_tools.mcp_tools import register_schema_tools
from mssql_mcp.services.config_service import ConfigService
from mssql_mcp.services.connection_manager import ConnectionManager
from mssql_mcp.services.mcp_tools import register_connection_tools
from mssql_mcp.validation import StatementGuard

# Load environment variables
dotenv.load_dotenv()

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)


# -- Lifespan: drain the pool on shutdown ------------------------------------
@asynccontextmanager
async def lifespan(_mcp_instance: FastMCP) -> AsyncGenerator[None, None]:
    """FastMCP lifespan context manager closing the connection pool on shutdown."""
    manager = ConnectionManager.get_instance()
    try:
        _logger.info("MSSQL MCP server starting (auto-connect on first query)")
        yield
    finally:
        _logger.info("Closing database connection during lifespan shutdown")
        await manager.disconnect()


# Create the main MCP server instance with lifespan
mcp = FastMCP(
    name="mssql-mcp-server",
    instructions=(
        "This Model Context Protocol server exposes Microsoft SQL Server. Use parameters "
        "(@name) for every user-supplied value; identifiers are restricted to letters, "
        "numbers and underscores, and server-administration commands are blocked."
    ),
    lifespan=lifespan,
)

# -- Tool Registration -------------------------------------------------------
manager = ConnectionManager.get_instance()
executor = QueryExecutor(
    manager, guard=StatementGuard.with_extra_tokens(ConfigService.blocked_tokens())
)

register_connection_tools(mcp, manager, executor.cache)
register_execute_tools(mcp, executor)
register_schema_tools(mcp, executor)


# -- Health Check ----------------------------------------------------------
@mcp.custom_route("/health", methods=["GET"])
async def health_check(_request: Request) -> JSONResponse:
    # The process is healthy regardless of database reachability; the phase is informational.
    return JSONResponse(
        {
            "status": "healthy",
            "service": "mssql-mcp-server",
            "connection": manager.status().phase.name,
        }
    )
