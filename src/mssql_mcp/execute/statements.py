"""SQL text builders for paginated reads and stored procedure calls.

Builders assume their inputs were already validated: identifiers passed the
identifier grammar, limit/offset are bounds-checked integers, and output
types passed the SQL type grammar.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from mssql_mcp.execute.binding import BoundParameter
from mssql_mcp.validation import quote_identifier

# Stable ORDER BY used when the caller supplies none; OFFSET/FETCH requires one.
DEFAULT_PAGE_ORDER: Final[str] = "(SELECT NULL)"
RETURN_VALUE_VARIABLE: Final[str] = "__mcp_return_value"
RETURN_VALUE_COLUMN: Final[str] = "__return_value"


def qualified_name(schema_name: str, object_name: str) -> str:
    return f"{quote_identifier(schema_name)}.{quote_identifier(object_name)}"


def build_page_statement(
    *,
    schema_name: str,
    table_name: str,
    limit: int,
    offset: int,
    where_clause: str | None = None,
    order_by: str | None = None,
) -> str:
    """Build ``SELECT * ... ORDER BY ... OFFSET n ROWS FETCH NEXT m ROWS ONLY``."""
    parts = [f"SELECT * FROM {qualified_name(schema_name, table_name)}"]
    if where_clause and where_clause.strip():
        parts.append(f"WHERE {where_clause.strip()}")
    ordering = order_by.strip() if order_by and order_by.strip() else DEFAULT_PAGE_ORDER
    parts.append(f"ORDER BY {ordering}")
    parts.append(f"OFFSET {int(offset)} ROWS FETCH NEXT {int(limit)} ROWS ONLY")
    return " ".join(parts)


@dataclass(frozen=True, slots=True)
class ProcedureBatch:
    """Rendered procedure batch, its ODBC parameters, and the declared outputs."""

    sql: str
    params: list[object]
    output_names: list[str]


def build_procedure_batch(
    *,
    schema_name: str,
    procedure_name: str,
    inputs: list[BoundParameter],
    outputs: Mapping[str, str],
) -> ProcedureBatch:
    """Build an EXEC batch that captures the return value and output parameters.

    Output variables are declared first (seeded from a matching input when one
    is given, which makes them input/output parameters), the procedure is
    executed, and a trailing SELECT returns the return value and outputs as
    the final record set.
    """
    by_name = {p.name.lower(): p for p in inputs}
    lines: list[str] = [f"DECLARE @{RETURN_VALUE_VARIABLE} int;"]
    params: list[object] = []

    for name, sql_type in outputs.items():
        seed = by_name.get(name.lower())
        if seed is not None:
            lines.append(f"DECLARE @{name} {sql_type} = ?;")
            params.append(seed.value)
        else:
            lines.append(f"DECLARE @{name} {sql_type};")

    output_keys = {name.lower() for name in outputs}
    arguments = [f"@{p.name} = ?" for p in inputs if p.name.lower() not in output_keys]
    params.extend(p.value for p in inputs if p.name.lower() not in output_keys)
    arguments.extend(f"@{name} = @{name} OUTPUT" for name in outputs)

    call = f"EXEC @{RETURN_VALUE_VARIABLE} = {qualified_name(schema_name, procedure_name)}"
    if arguments:
        call += " " + ", ".join(arguments)
    lines.append(call + ";")

    selected = [f"@{RETURN_VALUE_VARIABLE} AS {quote_identifier(RETURN_VALUE_COLUMN)}"]
    selected.extend(f"@{name} AS {quote_identifier(name)}" for name in outputs)
    lines.append("SELECT " + ", ".join(selected) + ";")

    return ProcedureBatch(sql="\n".join(lines), params=params, output_names=list(outputs))
