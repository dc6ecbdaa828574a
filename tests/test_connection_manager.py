from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from _pytest.monkeypatch import MonkeyPatch
import pytest

from mssql_mcp.exceptions import ConfigurationError, DatabaseConnectionError
from mssql_mcp.execute.cache import QueryCache
from mssql_mcp.services.config_service import ConnectionConfig
from mssql_mcp.services.connection_manager import ConnectionManager
from mssql_mcp.services.mcp_tools import build_connection_status
from mssql_mcp.services.state import ConnectionPhase

if TYPE_CHECKING:
    from conftest import FakePoolFactory


def test_starts_disconnected(manager: ConnectionManager) -> None:
    state = manager.status()
    assert state.phase is ConnectionPhase.DISCONNECTED
    assert not state.is_connected
    assert state.attempts == 0


def test_ensure_connected_is_idempotent(
    db_env: None, factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    async def scenario() -> None:
        first = await manager.ensure_connected()
        second = await manager.ensure_connected()
        assert first is second

    asyncio.run(scenario())
    assert len(factory.configs) == 1
    state = manager.status()
    assert state.phase is ConnectionPhase.CONNECTED
    assert state.connected_at is not None
    assert state.attempts == 1


def test_concurrent_connects_open_a_single_pool(
    db_env: None, factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    async def scenario() -> None:
        pools = await asyncio.gather(*(manager.get_pool() for _ in range(5)))
        assert all(p is pools[0] for p in pools)

    asyncio.run(scenario())
    assert len(factory.pools) == 1


def test_changed_config_closes_previous_pool(
    factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    async def scenario() -> None:
        await manager.ensure_connected(ConnectionConfig(server="sql01"))
        await manager.ensure_connected(ConnectionConfig(server="sql02"))

    asyncio.run(scenario())
    old, new = factory.pools
    assert old.closed
    assert not new.closed
    config = manager.status().config
    assert config is not None and config.server == "sql02"
    assert manager.status().attempts == 2


def test_failed_connect_moves_to_failed_and_reraises(
    db_env: None, factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    factory.error = DatabaseConnectionError("Login failed for user 'agent'")
    with pytest.raises(DatabaseConnectionError, match="Login failed"):
        asyncio.run(manager.ensure_connected())

    state = manager.status()
    assert state.phase is ConnectionPhase.FAILED
    assert state.pool is None
    assert state.config is None
    assert state.error_message == "Login failed for user 'agent'"


def test_retry_after_failure_opens_a_fresh_pool(
    db_env: None, factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    async def scenario() -> None:
        factory.error = DatabaseConnectionError("timeout")
        with pytest.raises(DatabaseConnectionError):
            await manager.ensure_connected()
        factory.error = None
        await manager.get_pool()

    asyncio.run(scenario())
    state = manager.status()
    assert state.phase is ConnectionPhase.CONNECTED
    assert state.error_message is None
    assert state.attempts == 2


def test_disconnect_is_idempotent(
    db_env: None, factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    async def scenario() -> None:
        await manager.ensure_connected()
        await manager.disconnect()
        await manager.disconnect()

    asyncio.run(scenario())
    assert factory.pools[0].closed
    state = manager.status()
    assert state.phase is ConnectionPhase.DISCONNECTED
    assert state.pool is None
    assert state.config is None


def test_disconnect_when_never_connected(manager: ConnectionManager) -> None:
    asyncio.run(manager.disconnect())
    assert manager.status().phase is ConnectionPhase.DISCONNECTED


def test_get_pool_requires_server_configuration(
    factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    with pytest.raises(ConfigurationError):
        asyncio.run(manager.get_pool())
    assert factory.configs == []
    assert manager.status().phase is ConnectionPhase.DISCONNECTED


def test_environment_change_triggers_reconnect(
    db_env: None, monkeypatch: MonkeyPatch, factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    async def scenario() -> None:
        await manager.ensure_connected()
        monkeypatch.setenv("DB_DATABASE", "Archive")
        await manager.ensure_connected()

    asyncio.run(scenario())
    assert [c.database for c in factory.configs] == ["Sales", "Archive"]
    assert factory.pools[0].closed


def test_dispose_closes_pool_synchronously(
    db_env: None, factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    asyncio.run(manager.ensure_connected())
    manager.dispose()
    assert factory.pools[0].closed
    assert manager.status().phase is ConnectionPhase.DISCONNECTED


def test_singleton_instance() -> None:
    ConnectionManager.reset_instance()
    try:
        assert ConnectionManager.get_instance() is ConnectionManager.get_instance()
    finally:
        ConnectionManager.reset_instance()


def test_status_report_never_includes_credentials(
    db_env: None, manager: ConnectionManager
) -> None:
    cache = QueryCache()
    before = build_connection_status(manager, cache)
    assert before.connected is False
    assert before.phase == "DISCONNECTED"
    assert before.server == "Not configured"
    assert before.pool_info is None

    asyncio.run(manager.ensure_connected())
    after = build_connection_status(manager, cache)
    assert after.connected is True
    assert after.phase == "CONNECTED"
    assert (after.server, after.database, after.port) == ("sql.example.local", "Sales", 1433)
    assert after.pool_info is not None and after.pool_info.size == 1
    assert after.cache is not None and after.cache.ttl_seconds == 300.0
    assert after.security_features["parameterizedQueries"] == "Enforced"
    payload = after.model_dump_json()
    assert "s3cret" not in payload
    assert "agent" not in payload


def test_unexpected_factory_error_is_reported_as_connection_error(
    db_env: None, factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    factory.error = RuntimeError("ODBC driver manager not found")
    with pytest.raises(DatabaseConnectionError, match="ODBC driver manager not found") as info:
        asyncio.run(manager.ensure_connected())

    assert isinstance(info.value.__cause__, RuntimeError)
    state = manager.status()
    assert state.phase is ConnectionPhase.FAILED
    assert state.config is None
    assert state.error_message is not None
    assert state.error_message.startswith("Could not connect to sql.example.local:1433/Sales")


def test_release_callbacks_fire_on_reconnect_and_disconnect(
    factory: FakePoolFactory, manager: ConnectionManager
) -> None:
    released: list[int] = []
    manager.on_pool_released(lambda: released.append(len(factory.pools)))

    async def scenario() -> None:
        await manager.ensure_connected(ConnectionConfig(server="sql01"))
        assert released == []
        await manager.ensure_connected(ConnectionConfig(server="sql01"))
        assert released == []
        await manager.ensure_connected(ConnectionConfig(server="sql02"))
        await manager.disconnect()

    asyncio.run(scenario())
    assert released == [1, 2]
