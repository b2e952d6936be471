# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Connection pool, query execution and transaction management."""

from leaguedb.infrastructure.database import Database, close_database, get_database
from leaguedb.infrastructure.pool_manager import (
    AsyncpgPoolConnector,
    PoolManager,
    ProtocolPoolConnector,
)
from leaguedb.infrastructure.query_executor import QueryExecutor
from leaguedb.infrastructure.transaction_coordinator import TransactionCoordinator

__all__: list[str] = [
    "AsyncpgPoolConnector",
    "Database",
    "PoolManager",
    "ProtocolPoolConnector",
    "QueryExecutor",
    "TransactionCoordinator",
    "close_database",
    "get_database",
]
