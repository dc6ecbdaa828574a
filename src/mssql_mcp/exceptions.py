"""Custom exception hierarchy for mssql-mcp.

Every failure that can surface at the tool boundary is one of four kinds:

- ConfigurationError: missing or out-of-range connection settings
- DatabaseConnectionError: pool creation or connect failure (network, auth)
- QueryValidationError: identifier, ORDER BY, or statement guard rejection
- QueryExecutionError: driver-reported failure while running a statement

Validation and configuration errors are raised before any driver call.
Connection and execution errors wrap the driver exception with context.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from fastmcp.exceptions import ToolError

if TYPE_CHECKING:
    from mssql_mcp.validation.verdict import ValidationRule


class MssqlMcpError(Exception):
    """Base exception for all mssql-mcp failures.

    The `kind` label is what the agent sees in the error payload.
    """

    kind: ClassVar[str] = "Error"


class ConfigurationError(MssqlMcpError):
    """Raised when connection configuration is missing or invalid."""

    kind: ClassVar[str] = "ConfigurationError"


class DatabaseConnectionError(MssqlMcpError):
    """Raised when the connection pool cannot be created or connected."""

    kind: ClassVar[str] = "ConnectionError"


class QueryValidationError(MssqlMcpError):
    """Raised when user-supplied SQL or identifiers fail validation.

    Always raised before a connection is requested.
    """

    kind: ClassVar[str] = "ValidationError"

    def __init__(self, message: str, rule: ValidationRule | None = None) -> None:
        super().__init__(message)
        self.rule = rule


class QueryExecutionError(MssqlMcpError):
    """Raised when the driver reports a failure for a bound statement or procedure."""

    kind: ClassVar[str] = "ExecutionError"

    def __init__(self, message: str, *, operation: str, target: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.target = target


def to_tool_error(exc: MssqlMcpError, operation: str) -> ToolError:
    """Convert a core error into a FastMCP tool error payload."""
    return ToolError(f"{operation} failed [{exc.kind}]: {exc}")
