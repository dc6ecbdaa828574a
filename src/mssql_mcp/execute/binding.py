"""Parameter binding for T-SQL statements.

Callers reference parameters as ``@name`` in their SQL, the same way the
server-side API expects. Statements that carry parameters are sent through
``sp_executesql``: the statement text, the parameter declaration list and
every value travel as bound ODBC parameters, so neither values nor the
caller's text are ever spliced into the outer batch. Only parameter names
are interpolated, and those must pass the identifier grammar.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import datetime as dt
from decimal import Decimal
import uuid

from mssql_mcp.exceptions import QueryValidationError
from mssql_mcp.validation import ValidationRule, validate_identifier


@dataclass(frozen=True, slots=True)
class BoundParameter:
    """A validated parameter: bare name, declared SQL type, and value."""

    name: str
    sql_type: str
    value: object

    @property
    def placeholder(self) -> str:
        return f"@{self.name}"


def infer_sql_type(value: object) -> str:
    """Map a Python scalar to the SQL Server type used in its declaration."""
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "bit"
    if isinstance(value, int):
        return "bigint"
    if isinstance(value, float):
        return "float"
    if isinstance(value, Decimal):
        exponent = value.as_tuple().exponent
        scale = -exponent if isinstance(exponent, int) and exponent < 0 else 0
        return f"decimal(38, {min(scale, 38)})"
    if isinstance(value, dt.datetime):
        return "datetime2"
    if isinstance(value, dt.date):
        return "date"
    if isinstance(value, dt.time):
        return "time"
    if isinstance(value, bytes | bytearray):
        return "varbinary(max)"
    if isinstance(value, uuid.UUID):
        return "uniqueidentifier"
    if value is None or isinstance(value, str):
        return "nvarchar(max)"
    msg = f"Unsupported parameter value of type {type(value).__name__}; only scalars are allowed"
    raise QueryValidationError(msg, rule=ValidationRule.PARAMETER_VALUE)


def bind_parameters(parameters: Mapping[str, object] | None) -> list[BoundParameter]:
    """Validate parameter names and infer their types.

    Names may be given with or without the leading ``@``.

    Raises:
        QueryValidationError: On an invalid or duplicate name, or a non-scalar value
    """
    bound: list[BoundParameter] = []
    seen: set[str] = set()
    for raw_name, value in (parameters or {}).items():
        name = raw_name.removeprefix("@")
        verdict = validate_identifier(name, kind="parameter")
        if not verdict.ok:
            raise QueryValidationError(verdict.message or "", rule=ValidationRule.PARAMETER_NAME)
        if name.lower() in seen:
            msg = f"Duplicate parameter name: {name}"
            raise QueryValidationError(msg, rule=ValidationRule.PARAMETER_NAME)
        seen.add(name.lower())
        sql_type = infer_sql_type(value)
        if isinstance(value, uuid.UUID):
            value = str(value)
        bound.append(BoundParameter(name=name, sql_type=sql_type, value=value))
    return bound


def render_parameterized(sql: str, bound: list[BoundParameter]) -> tuple[str, list[object]]:
    """Render the batch and ODBC parameter list for `sql` with `bound` parameters.

    Without parameters the statement is sent as-is.
    """
    if not bound:
        return sql, []
    declarations = ", ".join(f"{p.placeholder} {p.sql_type}" for p in bound)
    assignments = "".join(f", {p.placeholder} = ?" for p in bound)
    batch = f"EXEC sp_executesql @stmt = ?, @params = ?{assignments}"
    return batch, [sql, declarations, *(p.value for p in bound)]
