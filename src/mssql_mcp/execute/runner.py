"""Query executor: the secure execution pipeline behind every data tool.

Each entry point runs the same ordered steps and short-circuits on the first
failure:

1. Statement guard on raw text (ad hoc statements)
2. Identifier / ORDER BY / bounds validation (pages and procedures)
3. Cache lookup (ad hoc read-only statements only)
4. Obtain a live pool from the connection manager (auto-connects)
5. Bind parameters onto a batch scoped to this call
6. Execute off the event loop, timing wall-clock duration
7. Shape a uniform `QueryResult`
8. Populate the cache, or clear it after a statement that may mutate

Steps 1-3 never touch the connection.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import datetime as dt
from decimal import Decimal
import time
from typing import Final
import uuid

from fastmcp.utilities.logging import get_logger

from mssql_mcp.exceptions import QueryExecutionError, QueryValidationError
from mssql_mcp.execute.binding import bind_parameters, render_parameterized
from mssql_mcp.execute.cache import QueryCache, cache_key, is_cacheable, is_read_only
from mssql_mcp.execute.models import (
    PageRequest,
    ProcedureRequest,
    QueryRequest,
    QueryResult,
    ResultRow,
)
from mssql_mcp.execute.statements import (
    RETURN_VALUE_COLUMN,
    RETURN_VALUE_VARIABLE,
    build_page_statement,
    build_procedure_batch,
    qualified_name,
)
from mssql_mcp.services.connection_manager import ConnectionManager
from mssql_mcp.services.driver import RawResult
from mssql_mcp.validation import (
    StatementGuard,
    ValidationRule,
    validate_identifier,
    validate_order_by,
    validate_sql_type,
)

_logger = get_logger(__name__)

MAX_QUERY_DISPLAY: Final[int] = 100
PAGE_LIMIT_BOUNDS: Final[tuple[int, int]] = (1, 10000)


def preview_sql(sql: str) -> str:
    flat = " ".join(sql.split())
    return flat[:MAX_QUERY_DISPLAY] + ("..." if len(flat) > MAX_QUERY_DISPLAY else "")


def _json_safe(value: object) -> object:
    """Convert a driver value into a JSON-serializable scalar."""
    if value is None or isinstance(value, str | bool | int | float):
        return value
    if isinstance(value, Decimal):
        as_float = float(value)
        return as_float if Decimal(str(as_float)) == value else str(value)
    if isinstance(value, dt.datetime | dt.date | dt.time):
        return value.isoformat()
    if isinstance(value, bytes | bytearray | memoryview):
        return "0x" + bytes(value).hex().upper()
    if isinstance(value, uuid.UUID):
        return str(value).upper()
    return str(value)


def _shape_rows(rows: Sequence[dict[str, object]]) -> list[ResultRow]:
    return [{col: _json_safe(val) for col, val in row.items()} for row in rows]


def _check_page_bounds(limit: int, offset: int) -> None:
    low, high = PAGE_LIMIT_BOUNDS
    if isinstance(limit, bool) or not isinstance(limit, int) or not low <= limit <= high:
        msg = f"limit must be an integer between {low} and {high}, got {limit!r}"
        raise QueryValidationError(msg, rule=ValidationRule.PAGE_BOUNDS)
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        msg = f"offset must be a non-negative integer, got {offset!r}"
        raise QueryValidationError(msg, rule=ValidationRule.PAGE_BOUNDS)


class QueryExecutor:
    """Validates, caches, binds, runs and shapes statements against the managed pool."""

    def __init__(
        self,
        manager: ConnectionManager,
        *,
        cache: QueryCache | None = None,
        guard: StatementGuard | None = None,
    ) -> None:
        self.manager = manager
        self.cache = cache if cache is not None else QueryCache()
        self.guard = guard if guard is not None else StatementGuard()
        # Cached rows belong to one connection target.
        manager.on_pool_released(self.cache.clear)

    # ---- entry points ---------------------------------------------------
    async def execute(
        self, request: QueryRequest, *, operation: str = "execute_query"
    ) -> QueryResult:
        """Run an ad hoc statement, serving repeated read-only statements from cache."""
        _logger.info("%s: %s", operation, preview_sql(request.statement))

        self.guard.check_statement(request.statement).raise_if_rejected()
        bound = bind_parameters(request.parameters)

        key: str | None = None
        if is_cacheable(request.statement):
            key = cache_key(request.statement, request.parameters)
            hit = self.cache.get(key)
            if hit is not None:
                _logger.debug("Cache hit for %s", operation)
                return hit.model_copy(update={"cached": True})
            _logger.debug("Cache miss for %s", operation)

        pool_sql, params = render_parameterized(request.statement, bound)
        raw, elapsed_ms = await self._run(pool_sql, params, operation=operation)
        result = QueryResult(
            recordset=_shape_rows(raw.recordsets[0]) if raw.recordsets else [],
            recordsets=[_shape_rows(rs) for rs in raw.recordsets],
            rows_affected=list(raw.rows_affected),
            elapsed_ms=elapsed_ms,
            parameters_used=len(bound),
        )

        if key is not None:
            self.cache.put(key, result)
        elif not is_read_only(request.statement):
            self.cache.clear()
        return result

    async def fetch_page(self, request: PageRequest) -> QueryResult:
        """Read one page of a table with OFFSET/FETCH under a mandatory ORDER BY."""
        validate_identifier(request.schema_name, kind="schema").raise_if_rejected()
        validate_identifier(request.table_name, kind="table").raise_if_rejected()
        if request.order_by is not None and request.order_by.strip():
            validate_order_by(request.order_by).raise_if_rejected()
        if request.where_clause is not None and request.where_clause.strip():
            self.guard.check_where_clause(request.where_clause).raise_if_rejected()
        _check_page_bounds(request.limit, request.offset)
        bound = bind_parameters(request.parameters)

        target = f"{request.schema_name}.{request.table_name}"
        statement = build_page_statement(
            schema_name=request.schema_name,
            table_name=request.table_name,
            limit=request.limit,
            offset=request.offset,
            where_clause=request.where_clause,
            order_by=request.order_by,
        )
        _logger.info("get_table_data: %s", preview_sql(statement))

        pool_sql, params = render_parameterized(statement, bound)
        raw, elapsed_ms = await self._run(
            pool_sql, params, operation="get_table_data", target=target
        )
        rows = _shape_rows(raw.recordsets[0]) if raw.recordsets else []
        return QueryResult(
            recordset=rows,
            recordsets=[rows],
            rows_affected=list(raw.rows_affected),
            elapsed_ms=elapsed_ms,
            parameters_used=len(bound),
        )

    async def execute_procedure(self, request: ProcedureRequest) -> QueryResult:
        """Execute a stored procedure, lifting its return value and outputs."""
        validate_identifier(request.schema_name, kind="schema").raise_if_rejected()
        validate_identifier(request.procedure_name, kind="procedure").raise_if_rejected()
        self.guard.check_statement(
            f"EXEC {request.schema_name}.{request.procedure_name}"
        ).raise_if_rejected()

        outputs: dict[str, str] = {}
        for raw_name, sql_type in request.output_parameters.items():
            name = raw_name.removeprefix("@")
            validate_identifier(name, kind="output parameter").raise_if_rejected()
            if name.lower() in {RETURN_VALUE_VARIABLE.lower(), RETURN_VALUE_COLUMN.lower()}:
                msg = f"Output parameter name {name!r} is reserved"
                raise QueryValidationError(msg, rule=ValidationRule.PARAMETER_NAME)
            validate_sql_type(sql_type).raise_if_rejected()
            outputs[name] = sql_type.strip()
        inputs = bind_parameters(request.parameters)

        target = f"{request.schema_name}.{request.procedure_name}"
        _logger.info(
            "execute_procedure: %s", qualified_name(request.schema_name, request.procedure_name)
        )
        batch = build_procedure_batch(
            schema_name=request.schema_name,
            procedure_name=request.procedure_name,
            inputs=inputs,
            outputs=outputs,
        )
        raw, elapsed_ms = await self._run(
            batch.sql, batch.params, operation="execute_procedure", target=target
        )
        # Procedures may mutate anything; cached reads can no longer be trusted.
        self.cache.clear()

        if not raw.recordsets:
            msg = "Procedure batch returned no output record set"
            raise QueryExecutionError(msg, operation="execute_procedure", target=target)
        *procedure_sets, trailer = raw.recordsets
        values = _shape_rows(trailer)[0] if trailer else {}
        return_value = values.get(RETURN_VALUE_COLUMN)
        shaped_sets = [_shape_rows(rs) for rs in procedure_sets]
        return QueryResult(
            recordset=shaped_sets[0] if shaped_sets else [],
            recordsets=shaped_sets,
            rows_affected=list(raw.rows_affected),
            output={name: values.get(name) for name in batch.output_names},
            return_value=return_value if isinstance(return_value, int) else None,
            elapsed_ms=elapsed_ms,
            parameters_used=len(inputs),
        )

    def clear_cache(self) -> int:
        return self.cache.clear()

    # ---- internal ---------------------------------------------------------
    async def _run(
        self,
        sql: str,
        params: list[object],
        *,
        operation: str,
        target: str | None = None,
    ) -> tuple[RawResult, float]:
        pool = await self.manager.get_pool()
        start = time.perf_counter()
        try:
            raw = await asyncio.to_thread(pool.run, sql, params)
        except QueryExecutionError as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            _logger.warning("%s failed after %.1f ms: %s", operation, elapsed_ms, exc)
            where = f" on {target}" if target else ""
            msg = f"{operation}{where}: {exc}"
            raise QueryExecutionError(msg, operation=operation, target=target) from exc
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        _logger.info(
            "%s finished (elapsed_ms=%.1f, recordsets=%d, rows_affected=%s)",
            operation,
            elapsed_ms,
            len(raw.recordsets),
            raw.rows_affected,
        )
        return raw, elapsed_ms
