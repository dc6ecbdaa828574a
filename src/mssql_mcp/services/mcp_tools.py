"""MCP tool registration for connection lifecycle features.

connect_database takes no arguments: configuration, credentials included, is
read from the server environment only, so secrets can never be injected or
exfiltrated through a tool argument.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger

from mssql_mcp.exceptions import MssqlMcpError, to_tool_error
from mssql_mcp.execute.cache import QueryCache
from mssql_mcp.models import (
    CacheInfo,
    ConnectionInfo,
    ConnectionStatus,
    ConnectResult,
    DisconnectResult,
    PoolInfo,
)
from mssql_mcp.services.connection_manager import ConnectionManager

_logger = get_logger(__name__)

SECURITY_FEATURES: dict[str, str] = {
    "sqlInjectionProtection": "Enabled",
    "identifierWhitelisting": "Enabled",
    "parameterizedQueries": "Enforced",
    "serverAdministrationGuard": "Enabled",
    "environmentOnlyCredentials": "Enabled",
}


def build_connection_status(manager: ConnectionManager, cache: QueryCache) -> ConnectionStatus:
    """Snapshot connection, pool and cache state for reporting."""
    state = manager.status()
    config = state.config
    pool_info: PoolInfo | None = None
    if state.pool is not None:
        stats = state.pool.stats()
        pool_info = PoolInfo(
            size=stats.size,
            available=stats.available,
            borrowed=stats.borrowed,
            overflow=stats.overflow,
        )
    cache_stats = cache.stats()
    return ConnectionStatus(
        connected=state.is_connected,
        phase=state.phase.name,  # type: ignore[arg-type]
        server=config.server if config else "Not configured",
        database=(config.database or "Not specified") if config else "Not specified",
        port=config.port if config else None,
        connected_at=(
            datetime.fromtimestamp(state.connected_at, UTC).isoformat()
            if state.connected_at is not None and state.is_connected
            else None
        ),
        last_error=state.error_message,
        attempts=state.attempts,
        security_features=dict(SECURITY_FEATURES),
        pool_info=pool_info,
        cache=CacheInfo(
            entries=cache_stats.entries,
            hits=cache_stats.hits,
            misses=cache_stats.misses,
            ttl_seconds=cache_stats.ttl_seconds,
        ),
    )


def register_connection_tools(
    mcp: FastMCP, manager: ConnectionManager, cache: QueryCache
) -> None:
    """Register connect/disconnect/status tools and the connection-info resource."""

    @mcp.tool
    async def connect_database(ctx: Context) -> ConnectResult:  # pyright: ignore[reportUnusedFunction]
        """Connect to MS SQL Server using only the server's environment configuration."""
        try:
            await manager.ensure_connected()
        except MssqlMcpError as exc:
            _logger.error("Database connection failed: %s", exc)
            await ctx.error(f"Failed to connect: {exc}")
            raise to_tool_error(exc, "Connect") from exc

        config = manager.status().config
        server = config.server if config else "unknown"
        database = config.database if config else None
        suffix = f" (Database: {database})" if database else ""
        return ConnectResult(
            connected=True,
            server=server,
            database=database,
            message=f"Successfully connected to SQL Server: {server}{suffix}",
        )

    @mcp.tool
    async def disconnect_database() -> DisconnectResult:  # pyright: ignore[reportUnusedFunction]
        """Disconnect from the current database and release the connection pool."""
        was_connected = manager.status().is_connected
        await manager.disconnect()
        message = (
            "Successfully disconnected from database" if was_connected else "No active connection"
        )
        return DisconnectResult(message=message)

    @mcp.tool
    async def connection_status() -> ConnectionStatus:  # pyright: ignore[reportUnusedFunction]
        """Check the current connection status with pool and cache details."""
        return build_connection_status(manager, cache)

    @mcp.resource("mssql://connection/info", mime_type="application/json")
    def connection_info() -> str:  # pyright: ignore[reportUnusedFunction]
        """Current connection info (server, database, port); never includes credentials."""
        state = manager.status()
        config = state.config
        info = ConnectionInfo(
            connected=state.is_connected,
            config=(
                {"server": config.server, "database": config.database, "port": config.port}
                if config is not None
                else None
            ),
        )
        return info.model_dump_json(indent=2)

    _ = (connect_database, disconnect_database, connection_status, connection_info)
