# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Database Error Classes.

Error Hierarchy:
    DbInfraError (base database layer error)
    ├── DbConfigurationError
    ├── DbConnectionError
    │   └── DbAuthenticationError
    ├── TransientNetworkError
    ├── QueryError
    └── TransactionError

All errors:
    - Carry an EnumDbErrorCode for programmatic classification
    - Support proper error chaining with ``raise ... from e``
    - Include structured context for debugging
    - Support correlation IDs for request tracking
    - Accept ModelInfraErrorContext for bundled context parameters
"""

from __future__ import annotations

from uuid import UUID

from leaguedb.enums import EnumDbErrorCode
from leaguedb.errors.model_infra_error_context import ModelInfraErrorContext


class DbInfraError(Exception):
    """Base error class for the database layer.

    Structured Fields (via ModelInfraErrorContext):
        operation: Operation being performed
        target_name: Target database name
        correlation_id: Request correlation ID for tracking

    Example:
        >>> context = ModelInfraErrorContext(
        ...     operation="execute",
        ...     target_name="localhost:5432/league",
        ... )
        >>> raise DbInfraError("Operation failed", context=context, attempt=2)
    """

    default_error_code: EnumDbErrorCode = EnumDbErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        error_code: EnumDbErrorCode | None = None,
        context: ModelInfraErrorContext | None = None,
        **extra_context: object,
    ) -> None:
        """Initialize DbInfraError with structured fields.

        Args:
            message: Human-readable error message
            error_code: Error code (defaults to the class default)
            context: Bundled infrastructure context (operation, target, ...)
            **extra_context: Additional context information
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code

        structured_context: dict[str, object] = dict(extra_context)
        self.correlation_id: UUID | None = None
        if context is not None:
            if context.operation is not None:
                structured_context["operation"] = context.operation
            if context.target_name is not None:
                structured_context["target_name"] = context.target_name
            self.correlation_id = context.correlation_id
        self.context = structured_context

    @property
    def is_retriable(self) -> bool:
        return self.error_code.is_retriable

    def __str__(self) -> str:
        return self.message


class DbConfigurationError(DbInfraError):
    """Raised when connection settings are missing or invalid.

    Example:
        >>> raise DbConfigurationError(
        ...     "DB_PORT must be an integer",
        ...     variable="DB_PORT",
        ... )
    """

    default_error_code = EnumDbErrorCode.CONFIGURATION_ERROR


class DbConnectionError(DbInfraError):
    """Raised when the connection pool cannot be established.

    The error code reflects the classified cause: a connect attempt that
    timed out carries TIMEOUT_ERROR and is therefore retriable by the
    query executor, while a refused connection carries CONNECTION_ERROR.

    Example:
        >>> raise DbConnectionError(
        ...     "Failed to connect to database",
        ...     context=context,
        ...     host="db.example.com",
        ...     port=5432,
        ... )
    """

    default_error_code = EnumDbErrorCode.CONNECTION_ERROR


class DbAuthenticationError(DbConnectionError):
    """Raised when the server rejects the login or a firewall blocks the client.

    Detected heuristically; used for clearer diagnostics only. Control flow
    is the same as for any other DbConnectionError.
    """

    default_error_code = EnumDbErrorCode.AUTH_ERROR


class TransientNetworkError(DbInfraError):
    """Raised when a timeout or connection reset persists through all retries.

    Example:
        >>> raise TransientNetworkError(
        ...     "Query failed after 3 attempts",
        ...     context=context,
        ...     attempts=3,
        ... )
    """

    default_error_code = EnumDbErrorCode.CONNECTION_RESET


class QueryError(DbInfraError):
    """Raised when a command fails for a non-transient reason.

    Syntax errors, constraint violations, unknown parameters and similar
    failures are never retried.
    """

    default_error_code = EnumDbErrorCode.QUERY_ERROR


class TransactionError(DbInfraError):
    """Raised when a transaction cannot be started or committed."""

    default_error_code = EnumDbErrorCode.TRANSACTION_ERROR


__all__ = [
    "DbInfraError",
    "DbConfigurationError",
    "DbConnectionError",
    "DbAuthenticationError",
    "TransientNetworkError",
    "QueryError",
    "TransactionError",
]
