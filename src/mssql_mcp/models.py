"""Pydantic models for MCP tool I/O.

Minimal, task-focused response records for the connection, catalog and cache
tools. Query results live in `mssql_mcp.execute.models`.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ConnectionPhaseName = Literal["DISCONNECTED", "CONNECTING", "CONNECTED", "FAILED"]


class ConnectResult(BaseModel):
    """Outcome of connect_database."""

    connected: bool
    server: str
    database: str | None = None
    message: str


class DisconnectResult(BaseModel):
    """Outcome of disconnect_database."""

    disconnected: bool = True
    message: str


class PoolInfo(BaseModel):
    size: int = Field(description="Connections currently held by the pool")
    available: int = Field(description="Idle connections ready for checkout")
    borrowed: int = Field(description="Connections checked out by running requests")
    overflow: int = Field(default=0, description="Connections beyond the base pool size")


class CacheInfo(BaseModel):
    entries: int
    hits: int
    misses: int
    ttl_seconds: float


class ConnectionStatus(BaseModel):
    """Detailed connection status for connection_status."""

    connected: bool
    phase: ConnectionPhaseName
    server: str = Field(default="Not configured")
    database: str = Field(default="Not specified")
    port: int | None = None
    connected_at: str | None = Field(
        default=None, description="UTC ISO8601 time the current pool was opened"
    )
    last_error: str | None = Field(default=None, description="Error from the last failed connect")
    attempts: int = 0
    security_features: dict[str, str] = Field(default_factory=dict)
    pool_info: PoolInfo | None = None
    cache: CacheInfo | None = None


class ConnectionInfo(BaseModel):
    """Payload of the mssql://connection/info resource. Never includes secrets."""

    connected: bool
    config: dict[str, Any] | None = None


class CatalogListing(BaseModel):
    """Rows returned by a catalog tool (get_schema, describe_table, list_databases)."""

    items: list[dict[str, Any]]
    count: int
    target: str | None = Field(default=None, description="Schema/table the listing describes")
    elapsed_ms: float
    cached: bool = False


class CacheClearResult(BaseModel):
    cleared_entries: int
    message: str
