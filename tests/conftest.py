from __future__ import annotations

from collections.abc import Callable, Sequence

from _pytest.monkeypatch import MonkeyPatch
import pytest

from mssql_mcp.execute.cache import QueryCache
from mssql_mcp.execute.runner import QueryExecutor
from mssql_mcp.services.config_service import ConnectionConfig
from mssql_mcp.services.connection_manager import ConnectionManager
from mssql_mcp.services.driver import PoolStats, RawResult

Responder = Callable[[str, Sequence[object]], RawResult]

_DB_ENV_VARS = (
    "DB_SERVER",
    "DB_DATABASE",
    "DB_USER",
    "DB_PASSWORD",
    "DB_PORT",
    "DB_TRUST_SERVER_CERTIFICATE",
    "DB_CONNECTION_TIMEOUT",
    "DB_REQUEST_TIMEOUT",
    "DB_ODBC_DRIVER",
    "MSSQL_MCP_BLOCKED_TOKENS",
)


def _empty(_sql: str, _params: Sequence[object]) -> RawResult:
    return RawResult()


class FakePool:
    """In-memory stand-in for the SQLAlchemy-backed pool."""

    def __init__(self, responder: Responder = _empty) -> None:
        self.calls: list[tuple[str, list[object]]] = []
        self.closed = False
        self._responder = responder

    def run(self, sql: str, params: Sequence[object]) -> RawResult:
        self.calls.append((sql, list(params)))
        return self._responder(sql, params)

    def stats(self) -> PoolStats:
        return PoolStats(size=1, available=1, borrowed=0, overflow=0)

    def close(self) -> None:
        self.closed = True


class FakePoolFactory:
    """Counts pool openings and optionally fails them."""

    def __init__(self, responder: Responder = _empty, error: Exception | None = None) -> None:
        self.responder = responder
        self.error = error
        self.configs: list[ConnectionConfig] = []
        self.pools: list[FakePool] = []

    def __call__(self, config: ConnectionConfig) -> FakePool:
        self.configs.append(config)
        if self.error is not None:
            raise self.error
        pool = FakePool(self.responder)
        self.pools.append(pool)
        return pool

    @property
    def total_run_calls(self) -> int:
        return sum(len(p.calls) for p in self.pools)


@pytest.fixture(autouse=True)
def clean_db_env(monkeypatch: MonkeyPatch) -> None:
    """Isolate tests from any DB_* variables in the developer's shell."""
    for name in _DB_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_env(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setenv("DB_SERVER", "sql.example.local")
    monkeypatch.setenv("DB_DATABASE", "Sales")
    monkeypatch.setenv("DB_USER", "agent")
    monkeypatch.setenv("DB_PASSWORD", "s3cret")


@pytest.fixture
def factory() -> FakePoolFactory:
    return FakePoolFactory()


@pytest.fixture
def manager(factory: FakePoolFactory) -> ConnectionManager:
    return ConnectionManager(pool_factory=factory)


@pytest.fixture
def executor(manager: ConnectionManager) -> QueryExecutor:
    return QueryExecutor(manager, cache=QueryCache())
