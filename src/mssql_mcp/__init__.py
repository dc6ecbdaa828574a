"""mssql-mcp package exposing Microsoft SQL Server to AI agents.

Provides a Model Context Protocol (FastMCP) server whose tools connect, run
guarded and parameterized queries, page through tables, execute stored
procedures and inspect the catalog, all through a single managed pool.
"""

from mssql_mcp.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    MssqlMcpError,
    QueryExecutionError,
    QueryValidationError,
)
from mssql_mcp.execute import QueryCache, QueryExecutor, QueryRequest, QueryResult
from mssql_mcp.services import ConfigService, ConnectionConfig, ConnectionManager

__all__ = [  # noqa: RUF022
    # Errors
    "ConfigurationError",
    "DatabaseConnectionError",
    "MssqlMcpError",
    "QueryExecutionError",
    "QueryValidationError",
    # Execution
    "QueryCache",
    "QueryExecutor",
    "QueryRequest",
    "QueryResult",
    # Services
    "ConfigService",
    "ConnectionConfig",
    "ConnectionManager",
]
