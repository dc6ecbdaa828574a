"""Connection lifecycle manager for mssql-mcp.

Owns the single process-wide connection pool and its state machine:
DISCONNECTED -> CONNECTING -> CONNECTED | FAILED. Reconnects are single-flight
so two pools are never opened or closed interleaved. Connection failures are
reported to the caller and never retried internally.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import contextlib
from dataclasses import replace
import threading
import time
from typing import ClassVar, Final

from fastmcp.utilities.logging import get_logger

from mssql_mcp.exceptions import DatabaseConnectionError
from mssql_mcp.services.config_service import ConfigService, ConnectionConfig
from mssql_mcp.services.driver import DatabasePool, PoolFactory, open_pool
from mssql_mcp.services.state import ConnectionPhase, ConnectionState

# Bounded wait for a graceful pool close before moving on.
CLOSE_TIMEOUT_SECONDS: Final[float] = 5.0


class ConnectionManager:
    """Singleton owner of the connection pool.

    The pool handle and lifecycle state are mutated only through
    `ensure_connected` and `disconnect`. Tests build their own instance with a
    fake pool factory instead of using `get_instance`.
    """

    _instance: ClassVar[ConnectionManager | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, pool_factory: PoolFactory = open_pool) -> None:
        """Initialize the manager in the DISCONNECTED phase."""
        self._pool_factory = pool_factory
        self._reconnect_lock = asyncio.Lock()
        self._state = ConnectionState(phase=ConnectionPhase.DISCONNECTED)
        self._release_callbacks: list[Callable[[], object]] = []
        self._logger = get_logger(__name__)

    def on_pool_released(self, callback: Callable[[], object]) -> None:
        """Call `callback` whenever the current pool is closed or replaced.

        Anything derived from the old connection target (cached results) must
        be dropped at that point.
        """
        self._release_callbacks.append(callback)

    @classmethod
    def get_instance(cls) -> ConnectionManager:
        """Get the singleton instance of ConnectionManager.

        Returns:
            ConnectionManager: The singleton instance
        """
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (primarily for testing)."""
        with cls._lock:
            cls._instance = None

    def status(self) -> ConnectionState:
        """Return a snapshot of the connection state."""
        return self._state

    async def get_pool(self) -> DatabasePool:
        """Return the live pool, auto-connecting from the environment when needed.

        Raises:
            ConfigurationError: If the environment configuration is invalid
            DatabaseConnectionError: If connecting fails
        """
        state = self._state
        if state.is_connected and state.pool is not None:
            return state.pool
        self._logger.info("No active connection (phase=%s); auto-connecting", state.phase.name)
        return await self.ensure_connected()

    async def ensure_connected(self, config: ConnectionConfig | None = None) -> DatabasePool:
        """Connect with `config` (environment configuration when omitted).

        Idempotent when already CONNECTED with an equal configuration. Any
        other state first releases the existing pool, then opens a new one.

        Raises:
            ConfigurationError: If the environment configuration is invalid
            DatabaseConnectionError: If the pool cannot be opened
        """
        if config is None:
            config = ConfigService.load_connection_config()

        async with self._reconnect_lock:
            state = self._state
            if state.is_connected and state.pool is not None and state.config == config:
                self._logger.debug("Reusing existing connection to %s", config.describe())
                return state.pool

            await self._release_pool()
            self._state = ConnectionState(
                phase=ConnectionPhase.CONNECTING,
                config=config,
                attempts=state.attempts + 1,
            )
            try:
                pool = await asyncio.to_thread(self._pool_factory, config)
            except Exception as exc:
                error = (
                    exc
                    if isinstance(exc, DatabaseConnectionError)
                    else DatabaseConnectionError(
                        f"Could not connect to {config.describe()}: {exc}"
                    )
                )
                self._state = replace(
                    self._state,
                    phase=ConnectionPhase.FAILED,
                    config=None,
                    error_message=str(error),
                )
                self._logger.error("Database connection failed: %s", error)
                if error is exc:
                    raise
                raise error from exc

            self._state = replace(
                self._state,
                phase=ConnectionPhase.CONNECTED,
                pool=pool,
                connected_at=time.time(),
                error_message=None,
            )
            self._logger.info("Connected to SQL Server: %s", config.describe())
            return pool

    async def disconnect(self) -> None:
        """Close the pool if present and return to DISCONNECTED (idempotent)."""
        async with self._reconnect_lock:
            await self._release_pool()
            self._state = ConnectionState(
                phase=ConnectionPhase.DISCONNECTED, attempts=self._state.attempts
            )

    def dispose(self) -> None:
        """Synchronously close the pool; used on process exit after the loop is gone."""
        pool = self._state.pool
        self._state = ConnectionState(
            phase=ConnectionPhase.DISCONNECTED, attempts=self._state.attempts
        )
        if pool is not None:
            self._notify_released()
            self._logger.info("Closing database connection pool")
            try:
                pool.close()
            except (OSError, RuntimeError) as exc:
                self._logger.warning("Error closing connection pool: %s", exc)

    async def _release_pool(self) -> None:
        pool = self._state.pool
        if pool is None:
            return
        self._logger.info("Closing existing database connection pool")
        self._state = replace(self._state, pool=None)
        self._notify_released()
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(asyncio.to_thread(pool.close), timeout=CLOSE_TIMEOUT_SECONDS)
            return
        self._logger.warning(
            "Connection pool did not close within %.1fs; continuing", CLOSE_TIMEOUT_SECONDS
        )

    def _notify_released(self) -> None:
        for callback in self._release_callbacks:
            callback()
