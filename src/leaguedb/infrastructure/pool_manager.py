# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""
Shared PostgreSQL Connection Pool Manager.

Owns the process-wide asyncpg pool and its lifecycle:

- Lazy creation on first demand
- Coalesced initialization: concurrent callers share one connect attempt
- Health-based reset when the pool reports itself closing
- Reset when a pool-level connection loss is detected after connect
- Best-effort close that never raises

State Machine:
    UNINITIALIZED -> CONNECTING -> CONNECTED
    CONNECTED     -> UNINITIALIZED   (unhealthy pool, pool error, reset)
    CONNECTING    -> UNINITIALIZED   (connect failure)

Concurrency:
    All shared state (``_pool``, ``_connect_task``) is read and written only
    inside synchronous sections of code running on the event loop. The
    check for an in-flight attempt and the creation of a new one happen
    without an ``await`` in between, so two tasks can never both start a
    connect. The manager never retries; retries belong to QueryExecutor.

Usage:
    manager = PoolManager(ModelDbConnectionConfig.from_environment())
    pool = await manager.acquire_pool()
    async with pool.acquire() as conn:
        await conn.fetchval("SELECT 1")
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Protocol
from uuid import UUID, uuid4

import asyncpg

from leaguedb.enums import EnumDbErrorCode, EnumHealthStatus, EnumPoolState
from leaguedb.errors import (
    DbAuthenticationError,
    DbConnectionError,
    ModelInfraErrorContext,
)
from leaguedb.models import ModelDbConnectionConfig, ModelPoolHealth
from leaguedb.utils import classify_db_error, sanitize_error_message

logger = logging.getLogger(__name__)

PoolErrorHandler = Callable[[asyncpg.Pool, BaseException | None], None]


class ProtocolPoolConnector(Protocol):
    """Creates and connects a pool.

    The connector must pass ``on_pool_error`` to whatever mechanism reports
    pool-level failures after the connect succeeded. Returning ``None`` is
    treated as a failed connect.
    """

    def __call__(
        self,
        config: ModelDbConnectionConfig,
        on_pool_error: PoolErrorHandler,
    ) -> Awaitable[asyncpg.Pool | None]: ...


class AsyncpgPoolConnector:
    """Default connector backed by ``asyncpg.create_pool``.

    asyncpg has no pool-level error event, so every pooled connection gets a
    termination listener. A termination while the pool is not closing may be
    a normal idle expiry or a dropped server; a single ``SELECT 1`` check
    tells them apart and reports connection-class failures to the error
    handler.
    """

    def __init__(self) -> None:
        self._liveness_checks: dict[int, asyncio.Task[None]] = {}

    async def __call__(
        self,
        config: ModelDbConnectionConfig,
        on_pool_error: PoolErrorHandler,
    ) -> asyncpg.Pool:
        pool: asyncpg.Pool

        def _on_terminated(connection: asyncpg.Connection) -> None:
            if pool.is_closing():
                return
            self._schedule_liveness_check(pool, on_pool_error)

        async def _init(connection: asyncpg.Connection) -> None:
            connection.add_termination_listener(_on_terminated)

        pool = asyncpg.create_pool(**config.to_pool_kwargs(), init=_init)
        try:
            return await pool
        except (Exception, asyncio.CancelledError):
            # Connections opened before the failure or cancellation stay open
            # until the half-built pool is terminated
            _terminate_unfinished(pool)
            raise

    def _schedule_liveness_check(
        self, pool: asyncpg.Pool, on_pool_error: PoolErrorHandler
    ) -> None:
        key = id(pool)
        running = self._liveness_checks.get(key)
        if running is not None and not running.done():
            return
        task = asyncio.get_running_loop().create_task(
            self._check_liveness(pool, on_pool_error)
        )
        self._liveness_checks[key] = task
        task.add_done_callback(lambda _: self._liveness_checks.pop(key, None))

    @staticmethod
    async def _check_liveness(pool: asyncpg.Pool, on_pool_error: PoolErrorHandler) -> None:
        try:
            await pool.fetchval("SELECT 1")
        except Exception as e:  # reported to the handler, never raised from a background task
            if classify_db_error(e).is_connection_error:
                on_pool_error(pool, e)
            else:
                logger.debug(
                    "Pool liveness check failed with non-connection error",
                    extra={"error": sanitize_error_message(e)},
                )


def _terminate_unfinished(pool: asyncpg.Pool) -> None:
    try:
        pool.terminate()
    except Exception as e:  # connect error takes precedence
        logger.debug(
            "Ignoring error while terminating unfinished database pool",
            extra={"error": sanitize_error_message(e)},
        )


def _mark_retrieved(task: asyncio.Task[Any]) -> None:
    # Waiters may all be cancelled; the failure is already logged by _connect.
    if not task.cancelled():
        task.exception()


class PoolManager:
    """Lazily-initialized shared pool with coalesced connects.

    Attributes:
        config: Connection settings, immutable for the manager's lifetime
        connect_count: Connect attempts started so far
    """

    def __init__(
        self,
        config: ModelDbConnectionConfig | None = None,
        connector: ProtocolPoolConnector | None = None,
    ) -> None:
        self.config = config or ModelDbConnectionConfig.from_environment()
        self._connector: ProtocolPoolConnector = connector or AsyncpgPoolConnector()
        self._pool: asyncpg.Pool | None = None
        self._connect_task: asyncio.Task[asyncpg.Pool] | None = None
        self._background_tasks: set[asyncio.Task[None]] = set()
        self.connect_count = 0

    @property
    def state(self) -> EnumPoolState:
        if self._connect_task is not None:
            return EnumPoolState.CONNECTING
        if self._pool is not None:
            return EnumPoolState.CONNECTED
        return EnumPoolState.UNINITIALIZED

    @property
    def pool(self) -> asyncpg.Pool | None:
        """Current pool without triggering a connect."""
        return self._pool

    async def acquire_pool(self) -> asyncpg.Pool:
        """Return a healthy pool, connecting if needed.

        Raises:
            DbAuthenticationError: If the login or a firewall was rejected.
            DbConnectionError: If the connect attempt failed for any other
                reason, or produced no usable pool.
        """
        # Re-checked after every close: another task may have reconnected
        # while this one was suspended.
        while (pool := self._pool) is not None:
            if self._is_healthy(pool):
                return pool
            logger.warning(
                "Database pool disconnected, resetting",
                extra={"target_name": self.config.target_name},
            )
            self._clear_state()
            await self._close_quietly(pool)

        task = self._connect_task
        if task is None:
            task = self._start_connect()
        # Shielded so a cancelled waiter does not cancel the shared attempt.
        return await asyncio.shield(task)

    async def reset_pool(self, observed: asyncpg.Pool | None = None) -> None:
        """Force-close the current pool and clear state.

        Args:
            observed: The pool a failure was seen on. When given, the reset
                only happens if that pool is still the current one, so a
                pool already rebuilt by another task is left alone.

        An in-flight connect attempt is not touched.
        """
        pool = self._pool
        if pool is None:
            return
        if observed is not None and observed is not pool:
            return
        self._pool = None
        logger.warning(
            "Resetting database pool",
            extra={"target_name": self.config.target_name},
        )
        await self._close_quietly(pool)

    def handle_pool_error(
        self, pool: asyncpg.Pool, error: BaseException | None = None
    ) -> None:
        """Pool-level error handler, invoked asynchronously by the connector.

        Only acts when ``pool`` is the current connected pool: errors raised
        by a pool that is still connecting, or one that was already replaced,
        are ignored. The next ``acquire_pool`` call reconnects.
        """
        if pool is not self._pool:
            return
        logger.error(
            "Database pool error",
            extra={
                "target_name": self.config.target_name,
                "error": sanitize_error_message(error) if error else None,
            },
        )
        self._clear_state()
        self._spawn(self._close_quietly(pool))

    async def health_check(self) -> ModelPoolHealth:
        """Check the database through the shared pool. Never raises."""
        start_time = time.perf_counter()
        try:
            pool = await self.acquire_pool()
            version = await pool.fetchval("SELECT version()")
            response_time_ms = (time.perf_counter() - start_time) * 1000
            return ModelPoolHealth(
                status=EnumHealthStatus.HEALTHY,
                state=self.state,
                target_name=self.config.target_name,
                server_version=str(version) if version is not None else None,
                pool_size=pool.get_size(),
                idle_size=pool.get_idle_size(),
                min_size=pool.get_min_size(),
                max_size=pool.get_max_size(),
                response_time_ms=response_time_ms,
                connect_count=self.connect_count,
            )
        except Exception as e:  # health reporting must not raise
            return ModelPoolHealth(
                status=EnumHealthStatus.UNHEALTHY,
                state=self.state,
                target_name=self.config.target_name,
                min_size=self.config.min_size,
                max_size=self.config.max_size,
                connect_count=self.connect_count,
                errors=[sanitize_error_message(e)],
            )

    async def close(self) -> None:
        """Close the pool and cancel an in-flight connect (process shutdown)."""
        task = self._connect_task
        pool = self._pool
        self._clear_state()
        if task is not None and not task.done():
            task.cancel()
        if pool is not None:
            await self._close_quietly(pool)
            logger.info(
                "Database connection pool closed",
                extra={"target_name": self.config.target_name},
            )
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_connect(self) -> asyncio.Task[asyncpg.Pool]:
        self.connect_count += 1
        correlation_id = uuid4()
        task = asyncio.get_running_loop().create_task(self._connect(correlation_id))
        self._connect_task = task
        task.add_done_callback(_mark_retrieved)
        logger.debug(
            "Starting database connect attempt",
            extra={
                "target_name": self.config.target_name,
                "correlation_id": str(correlation_id),
                "connect_count": self.connect_count,
            },
        )
        return task

    async def _connect(self, correlation_id: UUID) -> asyncpg.Pool:
        try:
            pool = await self._connector(self.config, self.handle_pool_error)
        except asyncio.CancelledError:
            self._forget_attempt()
            raise
        except Exception as e:
            self._forget_attempt()
            raise self._connection_failure(e, correlation_id) from e

        if pool is None:
            self._forget_attempt()
            logger.error(
                "Database connect produced no pool",
                extra={
                    "target_name": self.config.target_name,
                    "correlation_id": str(correlation_id),
                },
            )
            raise DbConnectionError(
                "Failed to establish database connection",
                context=self._context("connect", correlation_id),
            )

        self._pool = pool
        self._forget_attempt()
        logger.info(
            "Database connection pool established",
            extra={
                "target_name": self.config.target_name,
                "correlation_id": str(correlation_id),
            },
        )
        return pool

    def _connection_failure(
        self, error: Exception, correlation_id: UUID
    ) -> DbConnectionError:
        code = classify_db_error(error)
        context = self._context("connect", correlation_id)
        log_extra = {
            "target_name": self.config.target_name,
            "correlation_id": str(correlation_id),
            "error_type": type(error).__name__,
            "error": sanitize_error_message(error),
        }

        if code == EnumDbErrorCode.AUTH_ERROR:
            logger.error(
                "Database login rejected - check credentials and firewall rules "
                "for this client address",
                extra=log_extra,
            )
            return DbAuthenticationError(
                f"Database rejected the login to {self.config.target_name}",
                context=context,
                host=self.config.host,
                port=self.config.port,
            )

        logger.error("Database connection failed", extra=log_extra)
        return DbConnectionError(
            f"Failed to connect to database {self.config.target_name}",
            error_code=code if code.is_connection_error else EnumDbErrorCode.CONNECTION_ERROR,
            context=context,
            host=self.config.host,
            port=self.config.port,
        )

    def _forget_attempt(self) -> None:
        if self._connect_task is asyncio.current_task():
            self._connect_task = None

    def _clear_state(self) -> None:
        self._pool = None
        self._connect_task = None

    @staticmethod
    def _is_healthy(pool: asyncpg.Pool) -> bool:
        return not pool.is_closing()

    async def _close_quietly(self, pool: asyncpg.Pool) -> None:
        try:
            await asyncio.wait_for(pool.close(), timeout=self.config.close_timeout_seconds)
        except TimeoutError:
            logger.warning(
                "Database pool close timed out, terminating connections",
                extra={"target_name": self.config.target_name},
            )
            try:
                pool.terminate()
            except Exception as e:  # close is best-effort
                logger.debug(
                    "Ignoring error while terminating database pool",
                    extra={"error": sanitize_error_message(e)},
                )
        except Exception as e:  # close is best-effort
            logger.debug(
                "Ignoring error while closing database pool",
                extra={"error": sanitize_error_message(e)},
            )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _context(self, operation: str, correlation_id: UUID) -> ModelInfraErrorContext:
        return ModelInfraErrorContext(
            operation=operation,
            target_name=self.config.target_name,
            correlation_id=correlation_id,
        )


__all__: list[str] = [
    "AsyncpgPoolConnector",
    "PoolErrorHandler",
    "PoolManager",
    "ProtocolPoolConnector",
]
