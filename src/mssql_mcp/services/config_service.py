"""Configuration service for mssql-mcp.

This module provides configuration management and database engine creation
for the mssql-mcp server. Connection settings come exclusively from the
process environment: credentials are never accepted as tool arguments.
"""

from __future__ import annotations

import math
import os
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
import sqlalchemy as sa

from mssql_mcp.exceptions import ConfigurationError
from mssql_mcp.services.converters import register_output_converters

DEFAULT_PORT: Final[int] = 1433
DEFAULT_TIMEOUT_MS: Final[int] = 30000
CONNECTION_TIMEOUT_BOUNDS_MS: Final[tuple[int, int]] = (1000, 60000)
REQUEST_TIMEOUT_BOUNDS_MS: Final[tuple[int, int]] = (1000, 300000)
DEFAULT_ODBC_DRIVER: Final[str] = "ODBC Driver 18 for SQL Server"

# Pool sizing: connections are opened lazily (min 0) up to POOL_MAX_SIZE.
POOL_MAX_SIZE: Final[int] = 10
POOL_IDLE_SECONDS: Final[int] = 30

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"false", "0", "no", "off"})


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, value))


class ConnectionConfig(BaseModel):
    """Immutable SQL Server connection settings.

    Absence of both user and password selects integrated authentication.
    Timeouts are clamped into their allowed ranges rather than rejected.
    """

    model_config = ConfigDict(frozen=True)

    server: str = Field(min_length=1, description="SQL Server host name or address")
    database: str | None = Field(default=None, description="Initial database")
    user: str | None = Field(default=None, description="SQL login name")
    password: SecretStr | None = Field(default=None, description="SQL login password")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    trust_server_certificate: bool = Field(default=True)
    connection_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS)
    request_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS)
    driver: str = Field(default=DEFAULT_ODBC_DRIVER, min_length=1)

    @field_validator("server")
    @classmethod
    def _server_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "Server address is required"
            raise ValueError(msg)
        return value

    @field_validator("connection_timeout_ms")
    @classmethod
    def _clamp_connection_timeout(cls, value: int) -> int:
        return _clamp(value, CONNECTION_TIMEOUT_BOUNDS_MS)

    @field_validator("request_timeout_ms")
    @classmethod
    def _clamp_request_timeout(cls, value: int) -> int:
        return _clamp(value, REQUEST_TIMEOUT_BOUNDS_MS)

    @property
    def uses_integrated_auth(self) -> bool:
        return self.user is None and self.password is None

    @property
    def encrypt(self) -> bool:
        """Encryption is enabled exactly when the server certificate is not trusted."""
        return not self.trust_server_certificate

    @property
    def connection_timeout_seconds(self) -> int:
        return math.ceil(self.connection_timeout_ms / 1000)

    @property
    def request_timeout_seconds(self) -> int:
        return math.ceil(self.request_timeout_ms / 1000)

    def describe(self) -> str:
        """Return ``server:port[/database]`` for log and status messages."""
        target = f"{self.server}:{self.port}"
        return f"{target}/{self.database}" if self.database else target


class ConfigService:
    """Service for managing configuration and database engine creation."""

    @staticmethod
    def _int_env(name: str, default: int) -> int:
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return default
        try:
            return int(raw.strip())
        except ValueError as exc:
            msg = f"{name} must be an integer, got {raw!r}"
            raise ConfigurationError(msg) from exc

    @staticmethod
    def _bool_env(name: str, *, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            return default
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        msg = f"{name} must be a boolean (true/false), got {raw!r}"
        raise ConfigurationError(msg)

    @staticmethod
    def load_connection_config() -> ConnectionConfig:
        """Build and validate a `ConnectionConfig` from the environment.

        Returns:
            Validated, immutable connection configuration

        Raises:
            ConfigurationError: If DB_SERVER is missing or a value is out of range
        """
        server = os.getenv("DB_SERVER", "").strip()
        if not server:
            msg = "Server is required. Set the DB_SERVER environment variable."
            raise ConfigurationError(msg)

        password = os.getenv("DB_PASSWORD") or None
        try:
            return ConnectionConfig(
                server=server,
                database=os.getenv("DB_DATABASE") or None,
                user=os.getenv("DB_USER") or None,
                password=SecretStr(password) if password is not None else None,
                port=ConfigService._int_env("DB_PORT", DEFAULT_PORT),
                trust_server_certificate=ConfigService._bool_env(
                    "DB_TRUST_SERVER_CERTIFICATE", default=True
                ),
                connection_timeout_ms=ConfigService._int_env(
                    "DB_CONNECTION_TIMEOUT", DEFAULT_TIMEOUT_MS
                ),
                request_timeout_ms=ConfigService._int_env("DB_REQUEST_TIMEOUT", DEFAULT_TIMEOUT_MS),
                driver=os.getenv("DB_ODBC_DRIVER") or DEFAULT_ODBC_DRIVER,
            )
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            msg = f"Invalid connection configuration: {problems}"
            raise ConfigurationError(msg) from exc

    @staticmethod
    def blocked_tokens() -> list[str]:
        """Extra statement-guard tokens from MSSQL_MCP_BLOCKED_TOKENS (comma separated)."""
        raw = os.getenv("MSSQL_MCP_BLOCKED_TOKENS", "")
        return [tok.strip() for tok in raw.split(",") if tok.strip()]

    @staticmethod
    def build_connection_url(config: ConnectionConfig) -> sa.URL:
        """Build the ``mssql+pyodbc`` URL for a configuration.

        Trusting the server certificate and enabling encryption are mutually
        exclusive toggles.
        """
        query: dict[str, str] = {
            "driver": config.driver,
            "Encrypt": "yes" if config.encrypt else "no",
            "TrustServerCertificate": "yes" if config.trust_server_certificate else "no",
        }
        if config.uses_integrated_auth:
            query["Trusted_Connection"] = "yes"

        return sa.URL.create(
            "mssql+pyodbc",
            username=config.user,
            password=config.password.get_secret_value() if config.password else None,
            host=config.server,
            port=config.port,
            database=config.database,
            query=query,
        )

    @staticmethod
    def create_database_engine(config: ConnectionConfig) -> sa.Engine:
        """Create the pooled SQLAlchemy engine for a configuration.

        Args:
            config: Validated connection configuration

        Returns:
            SQLAlchemy Engine backed by a bounded QueuePool
        """
        engine = sa.create_engine(
            ConfigService.build_connection_url(config),
            pool_size=POOL_MAX_SIZE,
            max_overflow=0,
            pool_timeout=config.connection_timeout_seconds,
            pool_recycle=POOL_IDLE_SECONDS,
            pool_pre_ping=True,
            isolation_level="AUTOCOMMIT",
            connect_args={"timeout": config.connection_timeout_seconds},
        )

        request_timeout = config.request_timeout_seconds

        @sa.event.listens_for(engine, "connect")
        def _prepare_connection(dbapi_connection: object, _record: object) -> None:
            # pyodbc: per-statement query timeout in seconds
            dbapi_connection.timeout = request_timeout  # type: ignore[attr-defined]
            register_output_converters(dbapi_connection)  # type: ignore[arg-type]

        return engine
