# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Pytest configuration and shared fixtures for leaguedb tests.

The fakes below stand in for the parts of asyncpg the connection layer
touches: ``Pool`` (is_closing/close/terminate/acquire/fetchval), pooled
``Connection`` (prepare/execute/transaction), ``PreparedStatement`` and
``Transaction``. They record what was called so tests can assert on
connect counts, closes, prepared SQL and transaction outcomes.

Query behaviour is scripted per test through ``FakeConnector.handler``,
a callable ``(pool, sql, args) -> (rows, status)`` that may raise.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import pytest
from pydantic import SecretStr

from leaguedb.infrastructure import PoolManager, QueryExecutor, TransactionCoordinator
from leaguedb.models import ModelDbConnectionConfig

QueryHandler = Callable[["FakePool", str, Sequence[object]], tuple[list[Any], str]]


def scripted(*outcomes: object) -> QueryHandler:
    """Build a handler that replays outcomes in order.

    Exception instances are raised, anything else is returned as the
    ``(rows, status)`` pair. The last outcome repeats once the script runs out.
    """
    remaining = list(outcomes)

    def _handler(pool: FakePool, sql: str, args: Sequence[object]) -> tuple[list[Any], str]:
        outcome = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome  # type: ignore[return-value]

    return _handler


class FakeStatement:
    def __init__(self, connection: FakeConnection, sql: str) -> None:
        self._connection = connection
        self._sql = sql
        self._status = ""

    async def fetch(self, *args: object, timeout: float | None = None) -> list[Any]:
        rows, self._status = self._connection.pool.run(self._sql, args)
        return rows

    def get_statusmsg(self) -> str:
        return self._status


class FakeTransaction:
    def __init__(
        self,
        connection: FakeConnection,
        isolation: str | None,
        readonly: bool,
        deferrable: bool,
    ) -> None:
        self.connection = connection
        self.isolation = isolation
        self.readonly = readonly
        self.deferrable = deferrable

    async def start(self) -> None:
        self.connection.events.append("begin")
        if self.connection.begin_error is not None:
            raise self.connection.begin_error

    async def commit(self) -> None:
        self.connection.events.append("commit")
        if self.connection.commit_error is not None:
            raise self.connection.commit_error
        self.connection.pool.committed.extend(self.connection.pending)
        self.connection.pending.clear()

    async def rollback(self) -> None:
        self.connection.events.append("rollback")
        self.connection.pending.clear()
        if self.connection.rollback_error is not None:
            raise self.connection.rollback_error

    async def __aenter__(self) -> FakeTransaction:
        await self.start()
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, *exc_info: object) -> bool:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()
        return False


class FakeConnection:
    def __init__(self, pool: FakePool) -> None:
        self.pool = pool
        self.events: list[str] = []
        self.pending: list[tuple[str, tuple[object, ...]]] = []
        self.transactions: list[FakeTransaction] = []
        self.begin_error: BaseException | None = None
        self.commit_error: BaseException | None = None
        self.rollback_error: BaseException | None = None

    async def prepare(self, sql: str, timeout: float | None = None) -> FakeStatement:
        self.pool.prepared.append(sql)
        return FakeStatement(self, sql)

    async def execute(self, sql: str, *args: object) -> str:
        self.pending.append((sql, args))
        return "INSERT 0 1"

    def transaction(
        self,
        isolation: str | None = None,
        readonly: bool = False,
        deferrable: bool = False,
    ) -> FakeTransaction:
        tx = FakeTransaction(self, isolation, readonly, deferrable)
        self.transactions.append(tx)
        return tx


class _Lease:
    def __init__(self, pool: FakePool) -> None:
        self._pool = pool

    async def __aenter__(self) -> FakeConnection:
        self._pool.leases += 1
        return self._pool.connection

    async def __aexit__(self, *exc_info: object) -> bool:
        self._pool.leases -= 1
        return False


class FakePool:
    """In-memory stand-in for ``asyncpg.Pool``."""

    def __init__(
        self,
        handler: QueryHandler | None = None,
        version: str = "PostgreSQL 16.2 on x86_64-pc-linux-gnu",
    ) -> None:
        self.handler = handler
        self.version = version
        self.connection = FakeConnection(self)
        self.closing = False
        self.close_calls = 0
        self.terminated = False
        self.close_error: BaseException | None = None
        self.close_hangs = False
        self.fetchval_error: BaseException | None = None
        self.leases = 0
        self.prepared: list[str] = []
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.committed: list[tuple[str, tuple[object, ...]]] = []
        self.init_gate: asyncio.Event | None = None
        self.init_error: BaseException | None = None

    def __await__(self):
        return self._ready().__await__()

    async def _ready(self) -> FakePool:
        if self.init_gate is not None:
            await self.init_gate.wait()
        if self.init_error is not None:
            raise self.init_error
        return self

    def is_closing(self) -> bool:
        return self.closing

    async def close(self) -> None:
        self.close_calls += 1
        self.closing = True
        if self.close_hangs:
            await asyncio.Event().wait()
        if self.close_error is not None:
            raise self.close_error

    def terminate(self) -> None:
        self.terminated = True
        self.closing = True

    def acquire(self) -> _Lease:
        return _Lease(self)

    async def fetchval(self, sql: str) -> Any:
        self.calls.append((sql, ()))
        if self.fetchval_error is not None:
            raise self.fetchval_error
        return self.version

    def run(self, sql: str, args: Sequence[object]) -> tuple[list[Any], str]:
        self.calls.append((sql, tuple(args)))
        if self.handler is None:
            return [], "SELECT 0"
        return self.handler(self, sql, args)

    def get_size(self) -> int:
        return 2

    def get_idle_size(self) -> int:
        return 2 - self.leases

    def get_min_size(self) -> int:
        return 2

    def get_max_size(self) -> int:
        return 10


class FakeConnector:
    """Counting connector producing FakePool instances.

    Attributes:
        calls: Connect attempts received
        pools: Pools handed out, in order
        errors: Exceptions raised by the next attempts, consumed in order
        return_none: Resolve attempts with None instead of a pool
        gate: When set, attempts wait for the event before completing
        handler: Query handler installed on every new pool
        on_pool_error: Error handler passed by the last attempt
    """

    def __init__(self) -> None:
        self.calls = 0
        self.pools: list[FakePool] = []
        self.errors: list[BaseException] = []
        self.return_none = False
        self.gate: asyncio.Event | None = None
        self.handler: QueryHandler | None = None
        self.on_pool_error: Callable[..., None] | None = None

    async def __call__(
        self,
        config: ModelDbConnectionConfig,
        on_pool_error: Callable[..., None],
    ) -> FakePool | None:
        self.calls += 1
        self.on_pool_error = on_pool_error
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        if self.return_none:
            return None
        pool = FakePool(handler=self.handler)
        self.pools.append(pool)
        return pool


@pytest.fixture
def db_config() -> ModelDbConnectionConfig:
    """Connection settings pointing at a fictional test server."""
    return ModelDbConnectionConfig(
        host="db.test",
        port=5432,
        database="league_test",
        user="league",
        password=SecretStr("s3cret-pw"),
        close_timeout_seconds=0.05,
    )


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def pool_manager(db_config: ModelDbConnectionConfig, connector: FakeConnector) -> PoolManager:
    return PoolManager(db_config, connector=connector)


@pytest.fixture
def executor(pool_manager: PoolManager) -> QueryExecutor:
    return QueryExecutor(pool_manager)


@pytest.fixture
def coordinator(pool_manager: PoolManager) -> TransactionCoordinator:
    return TransactionCoordinator(pool_manager)


@pytest.fixture
def recorded_sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace asyncio.sleep so backoff delays are recorded, not waited.

    The replacement still yields to the event loop once, so concurrent
    tasks interleave the way they would with a real delay.
    """
    delays: list[float] = []
    real_sleep = asyncio.sleep

    async def _fake_sleep(delay: float, result: object = None) -> object:
        delays.append(delay)
        await real_sleep(0)
        return result

    monkeypatch.setattr(asyncio, "sleep", _fake_sleep)
    return delays


@pytest.fixture
def scripted_handler() -> Callable[..., QueryHandler]:
    """Expose ``scripted`` to test modules without importing conftest."""
    return scripted


@pytest.fixture
def fake_pool_factory() -> type[FakePool]:
    """FakePool class for tests that build pools outside a connector."""
    return FakePool
