"""Services package for mssql-mcp.

This package owns configuration loading and the connection lifecycle: the
single process-wide pool, its typed state machine, and the driver adapter the
executor runs statements through.

Main Components:
- ConfigService: Environment configuration and engine creation
- ConnectionManager: Pool ownership with connect/reconnect/teardown
- SqlAlchemyPool: Driver adapter over SQLAlchemy + pyodbc
"""

from .config_service import ConfigService, ConnectionConfig
from .connection_manager import ConnectionManager
from .driver import DatabasePool, PoolStats, RawResult, SqlAlchemyPool, open_pool
from .state import ConnectionPhase, ConnectionState

__all__ = [
    "ConfigService",
    "ConnectionConfig",
    "ConnectionManager",
    "ConnectionPhase",
    "ConnectionState",
    "DatabasePool",
    "PoolStats",
    "RawResult",
    "SqlAlchemyPool",
    "open_pool",
]
