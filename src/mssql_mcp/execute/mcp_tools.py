"""MCP tool registration for statement execution.

Provides execute_query, get_table_data, execute_procedure and
clear_query_cache. Every tool delegates to the shared `QueryExecutor`; core
errors are converted into tool error payloads and never escape raw.
"""

from __future__ import annotations

from typing import Annotated

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from mssql_mcp.exceptions import MssqlMcpError, to_tool_error
from mssql_mcp.execute.models import (
    PageRequest,
    ProcedureRequest,
    QueryRequest,
    QueryResult,
    ScalarValue,
    TableDataMetadata,
    TableDataResult,
)
from mssql_mcp.execute.runner import QueryExecutor
from mssql_mcp.models import CacheClearResult

_logger = get_logger(__name__)


def register_execute_tools(mcp: FastMCP, executor: QueryExecutor) -> None:
    """Register the statement execution tools.

    Statements are checked against the server-administration deny-list,
    identifiers are whitelisted, values are always bound parameters, and
    repeated read-only queries are served from a 5 minute cache.
    """

    @mcp.tool
    async def execute_query(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        query: Annotated[
            str,
            Field(
                min_length=1,
                description=(
                    "T-SQL to execute. Reference parameters as @name and pass their values in "
                    "`parameters`; never splice user input into the text."
                ),
            ),
        ],
        parameters: Annotated[
            dict[str, ScalarValue] | None,
            Field(description="Query parameters (name -> value). Always use these for user input."),
        ] = None,
    ) -> QueryResult:
        """Execute a SQL statement against the connected database with security validation.

        Connects automatically from the server environment when needed. Read-only SELECT
        results are cached for 5 minutes; call clear_query_cache after external changes.
        """
        try:
            return await executor.execute(
                QueryRequest(statement=query, parameters=parameters or {})
            )
        except MssqlMcpError as exc:
            await ctx.error(f"Query execution failed: {exc}")
            raise to_tool_error(exc, "Query execution") from exc

    @mcp.tool
    async def get_table_data(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table_name: Annotated[
            str, Field(description="Name of the table (letters, numbers, underscores)")
        ],
        schema_name: Annotated[
            str, Field(description="Schema name (letters, numbers, underscores)")
        ] = "dbo",
        limit: Annotated[
            int, Field(description="Maximum number of rows to return (1-10000)")
        ] = 100,
        offset: Annotated[int, Field(description="Number of rows to skip")] = 0,
        where_clause: Annotated[
            str | None,
            Field(description="WHERE clause without the WHERE keyword; use @name parameters"),
        ] = None,
        order_by: Annotated[
            str | None,
            Field(description="ORDER BY clause without the keywords, e.g. 'Name ASC, Id DESC'"),
        ] = None,
        parameters: Annotated[
            dict[str, ScalarValue] | None,
            Field(description="Parameters referenced by the WHERE clause"),
        ] = None,
    ) -> TableDataResult:
        """Get rows from a table with optional filtering, ordering and OFFSET/FETCH pagination."""
        try:
            result = await executor.fetch_page(
                PageRequest(
                    schema_name=schema_name,
                    table_name=table_name,
                    limit=limit,
                    offset=offset,
                    where_clause=where_clause,
                    order_by=order_by,
                    parameters=parameters or {},
                )
            )
        except MssqlMcpError as exc:
            await ctx.error(f"Get table data failed: {exc}")
            raise to_tool_error(exc, "Get table data") from exc

        return TableDataResult(
            data=result.recordset,
            metadata=TableDataMetadata(
                row_count=len(result.recordset),
                offset=offset,
                limit=limit,
                elapsed_ms=result.elapsed_ms,
                table=f"{schema_name}.{table_name}",
                has_where_clause=bool(where_clause and where_clause.strip()),
                parameters_used=result.parameters_used,
                cached=result.cached,
            ),
        )

    @mcp.tool
    async def execute_procedure(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        procedure_name: Annotated[str, Field(description="Name of the stored procedure")],
        schema_name: Annotated[str, Field(description="Schema name")] = "dbo",
        parameters: Annotated[
            dict[str, ScalarValue] | None,
            Field(description="Input parameters (name -> value)"),
        ] = None,
        output_parameters: Annotated[
            dict[str, str] | None,
            Field(
                description=(
                    "Output parameters (name -> SQL type, e.g. {'total': 'int'}). A name also "
                    "present in `parameters` is passed as input/output."
                )
            ),
        ] = None,
    ) -> QueryResult:
        """Execute a stored procedure and return its record sets, output parameters and
        return value."""
        try:
            return await executor.execute_procedure(
                ProcedureRequest(
                    schema_name=schema_name,
                    procedure_name=procedure_name,
                    parameters=parameters or {},
                    output_parameters=output_parameters or {},
                )
            )
        except MssqlMcpError as exc:
            await ctx.error(f"Procedure execution failed: {exc}")
            raise to_tool_error(exc, "Procedure execution") from exc

    @mcp.tool
    async def clear_query_cache() -> CacheClearResult:  # pyright: ignore[reportUnusedFunction]
        """Drop all cached query results so the next read goes to the database."""
        cleared = executor.clear_cache()
        _logger.info("clear_query_cache: %d entries", cleared)
        return CacheClearResult(
            cleared_entries=cleared, message=f"Cleared {cleared} cached result(s)"
        )

    _ = (execute_query, get_table_data, execute_procedure, clear_query_cache)
