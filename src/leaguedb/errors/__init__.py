# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""leaguedb Errors Module.

Exports:
    ModelInfraErrorContext: Configuration model for bundled error context
    DbInfraError: Base database layer error class
    DbConfigurationError: Invalid or missing connection settings
    DbConnectionError: Pool could not be established
    DbAuthenticationError: Login or firewall rejection (DbConnectionError subclass)
    TransientNetworkError: Timeout or reset that outlived the retry budget
    QueryError: Non-transient command failure
    TransactionError: Begin or commit failure

Correlation ID Assignment:
    Propagate the caller's correlation_id into the error context when one
    exists; otherwise generate one with ``ModelInfraErrorContext.with_correlation()``.
"""

from leaguedb.errors.infra_errors import (
    DbAuthenticationError,
    DbConfigurationError,
    DbConnectionError,
    DbInfraError,
    QueryError,
    TransactionError,
    TransientNetworkError,
)
from leaguedb.errors.model_infra_error_context import ModelInfraErrorContext

__all__: list[str] = [
    "ModelInfraErrorContext",
    "DbInfraError",
    "DbConfigurationError",
    "DbConnectionError",
    "DbAuthenticationError",
    "TransientNetworkError",
    "QueryError",
    "TransactionError",
]
