# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""leaguedb - resilient asyncpg connection layer for the league backend.

    from leaguedb import Database, ModelDbConnectionConfig

    db = Database(ModelDbConnectionConfig.from_environment())
    result = await db.execute("SELECT * FROM teams WHERE id = :id", {"id": 7})
    await db.with_transaction(do_work)
"""

from leaguedb.enums import EnumDbErrorCode, EnumIsolationLevel, EnumPoolState
from leaguedb.errors import (
    DbAuthenticationError,
    DbConfigurationError,
    DbConnectionError,
    DbInfraError,
    QueryError,
    TransactionError,
    TransientNetworkError,
)
from leaguedb.infrastructure import (
    Database,
    PoolManager,
    QueryExecutor,
    TransactionCoordinator,
    close_database,
    get_database,
)
from leaguedb.models import ModelDbConnectionConfig, ModelRetryPolicy, QueryResult

__version__ = "0.1.0"

__all__: list[str] = [
    "Database",
    "DbAuthenticationError",
    "DbConfigurationError",
    "DbConnectionError",
    "DbInfraError",
    "EnumDbErrorCode",
    "EnumIsolationLevel",
    "EnumPoolState",
    "ModelDbConnectionConfig",
    "ModelRetryPolicy",
    "PoolManager",
    "QueryError",
    "QueryExecutor",
    "QueryResult",
    "TransactionCoordinator",
    "TransactionError",
    "TransientNetworkError",
    "close_database",
    "get_database",
]
