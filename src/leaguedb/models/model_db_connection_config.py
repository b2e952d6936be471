# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Database Connection Configuration Model.

Security Note:
    The password field uses SecretStr to prevent accidental logging of
    credentials. Passwords come from environment variables, never from
    checked-in configuration files.
"""

from __future__ import annotations

import os
import ssl
from collections.abc import Mapping
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from leaguedb.errors import DbConfigurationError, ModelInfraErrorContext

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})

# Field name -> environment variable, for configuration error messages
_ENV_VARIABLES: dict[str, str] = {
    "host": "DB_HOST",
    "port": "DB_PORT",
    "database": "DB_NAME",
    "user": "DB_USER",
    "password": "DB_PASSWORD",
    "encrypt": "DB_ENCRYPT",
    "trust_server_certificate": "DB_TRUST_SERVER_CERTIFICATE",
    "ssl_ca_file": "DB_SSL_CA_FILE",
    "min_size": "DB_POOL_MIN",
    "max_size": "DB_POOL_MAX",
    "idle_timeout_seconds": "DB_IDLE_TIMEOUT",
    "connection_timeout_seconds": "DB_CONNECTION_TIMEOUT",
    "request_timeout_seconds": "DB_REQUEST_TIMEOUT",
    "application_name": "DB_APPLICATION_NAME",
}


class ModelDbConnectionConfig(BaseModel):
    """Connection and pool settings for the shared database pool.

    Read once at process start and treated as immutable for the process
    lifetime.

    Attributes:
        host: Database server host
        port: Database server port (default 5432)
        database: Database name
        user: Login user
        password: Login password (SecretStr)
        encrypt: Whether to use TLS for the connection
        trust_server_certificate: Encrypt without verifying the server certificate
        ssl_ca_file: Optional CA bundle used when verifying the server certificate
        min_size: Connections opened when the pool is created (default 2)
        max_size: Upper bound of pooled connections (default 10)
        idle_timeout_seconds: Idle connections are closed after this (default 30)
        connection_timeout_seconds: Connect timeout per connection (default 30)
        request_timeout_seconds: Default command timeout (default 30)
        close_timeout_seconds: Graceful pool close budget before terminating (default 10)
        application_name: Reported to the server as application_name

    Example:
        >>> config = ModelDbConnectionConfig(
        ...     host="db.example.com",
        ...     database="league",
        ...     user="league_app",
        ...     password=SecretStr("s3cret"),
        ...     encrypt=True,
        ... )
        >>> config.ssl_mode
        'verify-full'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    host: str = Field(default="localhost", min_length=1, description="Database server host")
    port: int = Field(default=5432, ge=1, le=65535, description="Database server port")
    database: str = Field(default="league_management", min_length=1, description="Database name")
    user: str = Field(default="postgres", description="Login user")
    password: SecretStr = Field(default=SecretStr(""), description="Login password")
    encrypt: bool = Field(default=False, description="Use TLS for the connection")
    trust_server_certificate: bool = Field(
        default=False,
        description="Encrypt without verifying the server certificate",
    )
    ssl_ca_file: str | None = Field(
        default=None,
        description="CA bundle used to verify the server certificate",
    )
    min_size: int = Field(default=2, ge=0, description="Minimum pooled connections")
    max_size: int = Field(default=10, ge=1, description="Maximum pooled connections")
    idle_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Idle connections are closed after this many seconds",
    )
    connection_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout for opening a single connection",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Default timeout for a single command",
    )
    close_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Graceful close budget before connections are terminated",
    )
    application_name: str = Field(
        default="leaguedb",
        description="Reported to the server as application_name",
    )

    @field_validator("max_size", mode="after")
    @classmethod
    def validate_pool_sizes(cls, v: int, info: ValidationInfo) -> int:
        min_size = info.data.get("min_size", 0) if info.data else 0
        if v < min_size:
            raise DbConfigurationError(
                f"max_size ({v}) must be >= min_size ({min_size})",
                context=ModelInfraErrorContext(
                    operation="validate_config",
                    correlation_id=uuid4(),
                ),
                parameter="max_size",
            )
        return v

    @property
    def target_name(self) -> str:
        """Password-free identifier used in logs and error context."""
        return f"{self.host}:{self.port}/{self.database}"

    @property
    def ssl_mode(self) -> str:
        """libpq-style sslmode derived from the encrypt/trust flags."""
        if not self.encrypt:
            return "disable"
        if self.trust_server_certificate:
            return "require"
        return "verify-full"

    def to_pool_kwargs(self) -> dict[str, object]:
        """Build keyword arguments for ``asyncpg.create_pool``."""
        params: dict[str, object] = {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password.get_secret_value(),
            "min_size": self.min_size,
            "max_size": self.max_size,
            "max_inactive_connection_lifetime": self.idle_timeout_seconds,
            "timeout": self.connection_timeout_seconds,
            "command_timeout": self.request_timeout_seconds,
            "server_settings": {"application_name": self.application_name},
            "ssl": self.ssl_mode,
        }
        if self.ssl_mode == "verify-full" and self.ssl_ca_file:
            params["ssl"] = ssl.create_default_context(cafile=self.ssl_ca_file)
        return params

    @classmethod
    def from_environment(
        cls, environ: Mapping[str, str] | None = None
    ) -> ModelDbConnectionConfig:
        """Create configuration from environment variables.

        Environment variables:
            DB_HOST, DB_PORT, DB_NAME, DB_USER,
            DB_PASSWORD (falls back to DB_PASS),
            DB_ENCRYPT, DB_TRUST_SERVER_CERTIFICATE, DB_SSL_CA_FILE,
            DB_POOL_MIN, DB_POOL_MAX, DB_IDLE_TIMEOUT,
            DB_CONNECTION_TIMEOUT, DB_REQUEST_TIMEOUT, DB_APPLICATION_NAME

        Raises:
            DbConfigurationError: If a variable cannot be parsed or is out of
                range.
        """
        env = os.environ if environ is None else environ
        password = env.get("DB_PASSWORD", env.get("DB_PASS", ""))
        values: dict[str, object] = {
            "host": env.get("DB_HOST", "localhost"),
            "port": _parse_int(env, "DB_PORT", 5432),
            "database": env.get("DB_NAME", "league_management"),
            "user": env.get("DB_USER", "postgres"),
            "password": SecretStr(password),
            "encrypt": _parse_bool(env, "DB_ENCRYPT", False),
            "trust_server_certificate": _parse_bool(
                env, "DB_TRUST_SERVER_CERTIFICATE", False
            ),
            "ssl_ca_file": env.get("DB_SSL_CA_FILE") or None,
            "min_size": _parse_int(env, "DB_POOL_MIN", 2),
            "max_size": _parse_int(env, "DB_POOL_MAX", 10),
            "idle_timeout_seconds": _parse_float(env, "DB_IDLE_TIMEOUT", 30.0),
            "connection_timeout_seconds": _parse_float(env, "DB_CONNECTION_TIMEOUT", 30.0),
            "request_timeout_seconds": _parse_float(env, "DB_REQUEST_TIMEOUT", 30.0),
            "application_name": env.get("DB_APPLICATION_NAME", "leaguedb"),
        }
        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0]
            field = str(first["loc"][0]) if first["loc"] else ""
            variable = _ENV_VARIABLES.get(field, field)
            raise DbConfigurationError(
                f"{variable} is invalid: {first['msg']}",
                context=ModelInfraErrorContext(operation="load_config"),
                variable=variable,
            ) from e


def _invalid(name: str, raw: str, expected: str) -> DbConfigurationError:
    return DbConfigurationError(
        f"{name} must be {expected}, got {raw!r}",
        context=ModelInfraErrorContext(operation="load_config"),
        variable=name,
    )


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise _invalid(name, raw, "an integer") from None


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise _invalid(name, raw, "a number") from None


def _parse_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise _invalid(name, raw, "a boolean")


__all__: list[str] = ["ModelDbConnectionConfig"]
