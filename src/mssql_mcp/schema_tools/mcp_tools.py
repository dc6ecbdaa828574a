"""MCP tool registration for catalog (schema discovery) features.

Exposes `register_schema_tools`, which attaches get_schema, describe_table and
list_databases to a FastMCP instance. All three run through the shared
`QueryExecutor`, so they auto-connect, are guarded, and are cached like any
other read-only statement.
"""

from __future__ import annotations

from typing import Annotated

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from mssql_mcp.exceptions import MssqlMcpError, to_tool_error
from mssql_mcp.execute.models import QueryRequest, QueryResult
from mssql_mcp.execute.runner import QueryExecutor
from mssql_mcp.models import CatalogListing
from mssql_mcp.schema_tools.catalog import (
    DESCRIBE_TABLE_SQL,
    LIST_DATABASES_SQL,
    ObjectType,
    build_schema_listing,
)
from mssql_mcp.validation import validate_identifier

_logger = get_logger(__name__)


def _listing(result: QueryResult, target: str | None = None) -> CatalogListing:
    return CatalogListing(
        items=result.recordset,
        count=len(result.recordset),
        target=target,
        elapsed_ms=result.elapsed_ms,
        cached=result.cached,
    )


def register_schema_tools(mcp: FastMCP, executor: QueryExecutor) -> None:
    """Register schema discovery tools backed by INFORMATION_SCHEMA and sys views."""

    @mcp.tool
    async def get_schema(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        object_type: Annotated[
            ObjectType,
            Field(description="Kind of objects to list: tables, views, procedures, functions, all"),
        ] = "tables",
        schema_name: Annotated[
            str | None, Field(description="Only list objects in this schema")
        ] = None,
    ) -> CatalogListing:
        """Get database schema information (tables, views, procedures, functions)."""
        _logger.info("Listing %s (schema=%s)", object_type, schema_name or "*")
        try:
            parameters: dict[str, str | int | float | bool | None] = {}
            if schema_name:
                validate_identifier(schema_name, kind="schema").raise_if_rejected()
                parameters["schemaName"] = schema_name
            statement = build_schema_listing(object_type, filter_schema=bool(schema_name))
            result = await executor.execute(
                QueryRequest(statement=statement, parameters=parameters), operation="get_schema"
            )
        except MssqlMcpError as exc:
            await ctx.error(f"Schema query failed: {exc}")
            raise to_tool_error(exc, "Schema query") from exc
        return _listing(result, target=schema_name)

    @mcp.tool
    async def describe_table(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table_name: Annotated[str, Field(description="Name of the table")],
        schema_name: Annotated[str, Field(description="Schema name")] = "dbo",
    ) -> CatalogListing:
        """Get the column structure of a table (types, lengths, nullability, defaults)."""
        _logger.info("Describing table %s.%s", schema_name, table_name)
        try:
            validate_identifier(schema_name, kind="schema").raise_if_rejected()
            validate_identifier(table_name, kind="table").raise_if_rejected()
            result = await executor.execute(
                QueryRequest(
                    statement=DESCRIBE_TABLE_SQL,
                    parameters={"tableName": table_name, "schemaName": schema_name},
                ),
                operation="describe_table",
            )
        except MssqlMcpError as exc:
            await ctx.error(f"Table description failed: {exc}")
            raise to_tool_error(exc, "Table description") from exc
        return _listing(result, target=f"{schema_name}.{table_name}")

    @mcp.tool
    async def list_databases(ctx: Context) -> CatalogListing:  # pyright: ignore[reportUnusedFunction]
        """List all databases on the connected SQL Server instance."""
        _logger.info("Listing databases")
        try:
            result = await executor.execute(
                QueryRequest(statement=LIST_DATABASES_SQL), operation="list_databases"
            )
        except MssqlMcpError as exc:
            await ctx.error(f"List databases failed: {exc}")
            raise to_tool_error(exc, "List databases") from exc
        return _listing(result)

    _ = (get_schema, describe_table, list_databases)
