"""Models for query execution.

Request records are per-call and never persisted. `QueryResult` is immutable
once produced and safe to serialize directly; the same shape is returned
whether a statement came from `execute_query`, `get_table_data`, a catalog
tool, or a stored procedure.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ScalarValue = str | int | float | bool | None
ResultRow = dict[str, Any]


class QueryRequest(BaseModel):
    """Ad hoc statement with optional named parameter bindings."""

    model_config = ConfigDict(frozen=True)

    statement: str = Field(description="Raw T-SQL text; reference parameters as @name")
    parameters: dict[str, ScalarValue] = Field(
        default_factory=dict, description="Named parameter bindings (name -> scalar value)"
    )


class ProcedureRequest(BaseModel):
    """Stored procedure call with input and declared output parameters."""

    model_config = ConfigDict(frozen=True)

    schema_name: str = Field(default="dbo")
    procedure_name: str
    parameters: dict[str, ScalarValue] = Field(default_factory=dict)
    output_parameters: dict[str, str] = Field(
        default_factory=dict, description="Output parameter name -> SQL type"
    )


class PageRequest(BaseModel):
    """Paginated read of a single table."""

    model_config = ConfigDict(frozen=True)

    schema_name: str = Field(default="dbo")
    table_name: str
    limit: int = Field(default=100)
    offset: int = Field(default=0)
    where_clause: str | None = None
    order_by: str | None = None
    parameters: dict[str, ScalarValue] = Field(default_factory=dict)


class QueryResult(BaseModel):
    """Structured, serializable outcome of one statement or procedure call."""

    model_config = ConfigDict(frozen=True)

    recordset: list[ResultRow] = Field(
        default_factory=list, description="First row set (column name -> value)"
    )
    recordsets: list[list[ResultRow]] = Field(
        default_factory=list, description="Every row set produced by the batch"
    )
    rows_affected: list[int] = Field(
        default_factory=list, description="Rows-affected count per data-modifying statement"
    )
    output: dict[str, Any] = Field(
        default_factory=dict, description="Output parameter values (procedures only)"
    )
    return_value: int | None = Field(default=None, description="Procedure return value")
    elapsed_ms: float = Field(ge=0.0, description="Wall-clock execution time in milliseconds")
    parameters_used: int = Field(default=0, description="Number of bound parameters")
    cached: bool = Field(default=False, description="True when served from the query cache")
    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="UTC ISO8601 timestamp of completion",
    )


class TableDataMetadata(BaseModel):
    row_count: int
    offset: int
    limit: int
    elapsed_ms: float
    table: str = Field(description="'schema.table'")
    has_where_clause: bool
    parameters_used: int
    cached: bool = False


class TableDataResult(BaseModel):
    """Response from the get_table_data tool."""

    data: list[ResultRow]
    metadata: TableDataMetadata
