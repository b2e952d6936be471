# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Database facade wiring one PoolManager into the executor and coordinator.

Service layers normally hold a ``Database`` built at startup and pass it
down explicitly. ``get_database()`` offers a lazily-built process default
for entry points that have nowhere to inject one.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import asyncpg

from leaguedb.enums import EnumIsolationLevel
from leaguedb.infrastructure.pool_manager import PoolManager, ProtocolPoolConnector
from leaguedb.infrastructure.query_executor import QueryExecutor
from leaguedb.infrastructure.transaction_coordinator import TransactionCoordinator
from leaguedb.models import (
    ModelDbConnectionConfig,
    ModelPoolHealth,
    ModelRetryPolicy,
    QueryResult,
)

T = TypeVar("T")


class Database:
    """Single entry point for pool access, queries and transactions."""

    def __init__(
        self,
        config: ModelDbConnectionConfig | None = None,
        *,
        retry_policy: ModelRetryPolicy | None = None,
        connector: ProtocolPoolConnector | None = None,
    ) -> None:
        self.pool_manager = PoolManager(config, connector=connector)
        self.executor = QueryExecutor(self.pool_manager, retry_policy)
        self.transactions = TransactionCoordinator(self.pool_manager)

    @property
    def config(self) -> ModelDbConnectionConfig:
        return self.pool_manager.config

    async def acquire_pool(self) -> asyncpg.Pool:
        return await self.pool_manager.acquire_pool()

    async def execute(
        self,
        command_text: str,
        params: Mapping[str, object] | None = None,
        max_attempts: int | None = None,
        **kwargs: Any,
    ) -> QueryResult:
        return await self.executor.execute(command_text, params, max_attempts, **kwargs)

    async def fetch_one(
        self,
        command_text: str,
        params: Mapping[str, object] | None = None,
        max_attempts: int | None = None,
        **kwargs: Any,
    ) -> Any | None:
        return await self.executor.fetch_one(command_text, params, max_attempts, **kwargs)

    async def fetch_value(
        self,
        command_text: str,
        params: Mapping[str, object] | None = None,
        max_attempts: int | None = None,
        **kwargs: Any,
    ) -> Any | None:
        return await self.executor.fetch_value(command_text, params, max_attempts, **kwargs)

    async def with_transaction(
        self,
        unit_of_work: Callable[[asyncpg.Connection], Awaitable[T]],
        isolation_level: EnumIsolationLevel | str | None = None,
        **kwargs: Any,
    ) -> T:
        return await self.transactions.with_transaction(
            unit_of_work, isolation_level, **kwargs
        )

    @asynccontextmanager
    async def transaction(
        self,
        isolation_level: EnumIsolationLevel | str | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[asyncpg.Connection]:
        async with self.transactions.transaction(isolation_level, **kwargs) as connection:
            yield connection

    async def health_check(self) -> ModelPoolHealth:
        return await self.pool_manager.health_check()

    async def close(self) -> None:
        await self.pool_manager.close()


# Process default instance
_database: Database | None = None


def get_database() -> Database:
    """Get the process default Database, built from the environment on first use."""
    global _database
    if _database is None:
        _database = Database(ModelDbConnectionConfig.from_environment())
    return _database


async def close_database() -> None:
    """Close and forget the process default Database."""
    global _database
    if _database is not None:
        database, _database = _database, None
        await database.close()


__all__: list[str] = ["Database", "close_database", "get_database"]
