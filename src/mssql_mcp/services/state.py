"""Typed connection lifecycle state.

Internal module providing the strongly-typed state owned by
`ConnectionManager`. Exactly one state snapshot exists per manager and it is
only replaced through the manager's transition methods.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mssql_mcp.services.config_service import ConnectionConfig
    from mssql_mcp.services.driver import DatabasePool


class ConnectionPhase(Enum):
    """Lifecycle phase of the process-wide connection pool."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    FAILED = auto()


@dataclass(frozen=True)
class ConnectionState:
    """Snapshot of the connection lifecycle.

    `pool` is set only while CONNECTED; `error_message` only while FAILED.
    """

    phase: ConnectionPhase
    config: ConnectionConfig | None = None
    pool: DatabasePool | None = field(default=None, repr=False, compare=False)
    connected_at: float | None = None
    error_message: str | None = None
    attempts: int = 0

    @property
    def is_connected(self) -> bool:
        return self.phase is ConnectionPhase.CONNECTED and self.pool is not None
