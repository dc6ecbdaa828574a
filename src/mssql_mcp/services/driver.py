"""Driver adapter over SQLAlchemy's pooled pyodbc engine.

The core talks to the database only through the `DatabasePool` protocol so
tests can substitute an in-memory fake. `SqlAlchemyPool` is the production
implementation: it checks a connection out of the engine's QueuePool per call,
drains every result set from the DBAPI cursor, and wraps driver failures into
the project's exception types.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from mssql_mcp.exceptions import DatabaseConnectionError, QueryExecutionError
from mssql_mcp.services.config_service import ConfigService, ConnectionConfig

_logger = get_logger(__name__)

Row = dict[str, object]


@dataclass(slots=True)
class RawResult:
    """Everything a batch produced: each record set and each rows-affected count."""

    recordsets: list[list[Row]] = field(default_factory=list)
    rows_affected: list[int] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PoolStats:
    """Point-in-time pool occupancy."""

    size: int
    available: int
    borrowed: int
    overflow: int


class DatabasePool(Protocol):
    """Minimal pool surface used by the executor and connection manager."""

    def run(self, sql: str, params: Sequence[object]) -> RawResult: ...

    def stats(self) -> PoolStats: ...

    def close(self) -> None: ...


PoolFactory = Callable[[ConnectionConfig], DatabasePool]


def column_names(description: Sequence[Sequence[object]]) -> list[str]:
    """Unique row keys for a cursor description.

    Unnamed columns (``SELECT 1, 2``) become ``column1``, ``column2`` by
    position; repeated names get a ``_2``, ``_3`` suffix so no value is lost.
    """
    names: list[str] = []
    seen: set[str] = set()
    for position, col in enumerate(description, start=1):
        base = str(col[0]) if col[0] else f"column{position}"
        name, suffix = base, 1
        while name.lower() in seen:
            suffix += 1
            name = f"{base}_{suffix}"
        seen.add(name.lower())
        names.append(name)
    return names


class SqlAlchemyPool:
    """`DatabasePool` backed by a SQLAlchemy engine using ``mssql+pyodbc``."""

    def __init__(self, engine: sa.Engine) -> None:
        self.engine = engine

    def _dbapi_error(self) -> type[Exception]:
        return self.engine.dialect.loaded_dbapi.Error

    def run(self, sql: str, params: Sequence[object]) -> RawResult:
        """Execute one batch on a pooled connection and collect all result sets."""
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as exc:
            msg = f"Could not obtain a pooled connection: {exc}"
            raise DatabaseConnectionError(msg) from exc

        out = RawResult()
        with conn:
            cursor = conn.connection.cursor()
            try:
                if params:
                    cursor.execute(sql, tuple(params))
                else:
                    cursor.execute(sql)
                while True:
                    if cursor.description is not None:
                        columns = column_names(cursor.description)
                        out.recordsets.append(
                            [dict(zip(columns, row, strict=True)) for row in cursor.fetchall()]
                        )
                    elif cursor.rowcount >= 0:
                        out.rows_affected.append(cursor.rowcount)
                    if not cursor.nextset():
                        break
            except self._dbapi_error() as exc:
                raise QueryExecutionError(str(exc), operation="execute") from exc
            finally:
                cursor.close()
        return out

    def stats(self) -> PoolStats:
        pool = self.engine.pool
        if isinstance(pool, sa.QueuePool):
            return PoolStats(
                size=pool.size(),
                available=pool.checkedin(),
                borrowed=pool.checkedout(),
                overflow=max(0, pool.overflow()),
            )
        return PoolStats(size=0, available=0, borrowed=0, overflow=0)

    def close(self) -> None:
        """Dispose of the engine, closing every pooled connection."""
        self.engine.dispose()


def open_pool(config: ConnectionConfig) -> SqlAlchemyPool:
    """Create the engine for `config` and verify connectivity.

    Raises:
        DatabaseConnectionError: If the engine cannot be created or the server
            does not answer ``SELECT 1``
    """
    _logger.info("Connecting to SQL Server: %s", config.describe())
    try:
        engine = ConfigService.create_database_engine(config)
    except (SQLAlchemyError, ImportError) as exc:
        msg = f"Could not create connection pool for {config.describe()}: {exc}"
        raise DatabaseConnectionError(msg) from exc

    try:
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    except SQLAlchemyError as exc:
        engine.dispose()
        msg = f"Could not connect to {config.describe()}: {exc}"
        raise DatabaseConnectionError(msg) from exc

    _logger.info("Database connection established: %s", config.describe())
    return SqlAlchemyPool(engine)
