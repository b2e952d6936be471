# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Retrying query execution on top of the shared pool.

Each attempt acquires the pool from the PoolManager, leases a connection,
binds the named parameters and runs the command. Failures are classified
with ``classify_db_error``:

    | Classification            | Action                                   |
    |---------------------------|------------------------------------------|
    | TIMEOUT_ERROR             | reset pool, back off, retry if budget    |
    | CONNECTION_RESET          | reset pool, back off, retry if budget    |
    | anything else             | raise immediately                        |

Backoff before attempt ``i + 1`` is ``ModelRetryPolicy.delay_for_attempt(i)``,
``min(1s * 2**i, 5s)`` with the default policy. A transient retry invalidates
the shared pool, so every other caller reconnects on its next acquisition.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID, uuid4

import asyncpg

from leaguedb.enums import EnumDbErrorCode
from leaguedb.errors import (
    DbAuthenticationError,
    DbConnectionError,
    DbInfraError,
    ModelInfraErrorContext,
    QueryError,
    TransientNetworkError,
)
from leaguedb.infrastructure.pool_manager import PoolManager
from leaguedb.models import ModelRetryPolicy, ModelRetryState, QueryResult
from leaguedb.utils import (
    bind_named_params,
    classify_db_error,
    sanitize_error_message,
    split_statements,
)

logger = logging.getLogger(__name__)


class QueryExecutor:
    """Executes commands with transient-error retries.

    Example:
        >>> executor = QueryExecutor(manager)
        >>> result = await executor.execute(
        ...     "SELECT id, name FROM teams WHERE season_id = :season",
        ...     {"season": 2026},
        ... )
        >>> [row["name"] for row in result.rows]
    """

    def __init__(
        self,
        pool_manager: PoolManager,
        retry_policy: ModelRetryPolicy | None = None,
    ) -> None:
        self._pool_manager = pool_manager
        self.retry_policy = retry_policy or ModelRetryPolicy()

    async def execute(
        self,
        command_text: str,
        params: Mapping[str, object] | None = None,
        max_attempts: int | None = None,
        *,
        timeout: float | None = None,
        correlation_id: UUID | None = None,
    ) -> QueryResult:
        """Execute a command, retrying transient connectivity failures.

        A command holding several statements separated by semicolons runs as
        a batch on one connection inside a single transaction. The result is
        the last statement's rows and status.

        Args:
            command_text: SQL with ``:name`` placeholders
            params: Values keyed by placeholder name
            max_attempts: Attempt budget (defaults to the retry policy's)
            timeout: Per-command timeout overriding the pool default
            correlation_id: Propagated into logs and error context

        Returns:
            QueryResult with rows, command status and attempts used.

        Raises:
            ValueError: If max_attempts is below 1.
            QueryError: On a non-transient command failure or unknown parameter.
            TransientNetworkError: If every attempt hit a transient failure.
            DbConnectionError: If the pool could not be established.
        """
        attempts_allowed = (
            self.retry_policy.max_attempts if max_attempts is None else max_attempts
        )
        if attempts_allowed < 1:
            raise ValueError(f"max_attempts must be >= 1, got {attempts_allowed}")

        op_correlation_id = correlation_id or uuid4()
        statements = split_statements(command_text)
        if len(statements) > 1:
            batch = [bind_named_params(statement, params) for statement in statements]
        else:
            batch = [bind_named_params(command_text, params)]

        state = ModelRetryState(max_attempts=attempts_allowed)
        last_error: Exception | None = None

        while state.is_retriable():
            pool: asyncpg.Pool | None = None
            try:
                pool = await self._pool_manager.acquire_pool()
                rows, status = await self._run(pool, batch, timeout)
                return QueryResult(rows=rows, status=status, attempts=state.attempt + 1)
            except Exception as e:
                last_error = e
                code = classify_db_error(e)
                if not code.is_retriable or state.is_last_attempt:
                    if isinstance(e, DbInfraError):
                        raise
                    raise self._surface_error(
                        e, code, state.attempt + 1, op_correlation_id
                    ) from e

                delay_seconds = self.retry_policy.delay_for_attempt(state.attempt)
                logger.warning(
                    "Query failed with transient error, resetting pool and retrying",
                    extra={
                        "correlation_id": str(op_correlation_id),
                        "attempt": state.attempt + 1,
                        "max_attempts": attempts_allowed,
                        "delay_seconds": delay_seconds,
                        "error_code": code.value,
                        "error": sanitize_error_message(e),
                    },
                )
                await self._pool_manager.reset_pool(observed=pool)
                await asyncio.sleep(delay_seconds)
                state = state.next_attempt(error_message=sanitize_error_message(e))

        # Only reachable if the loop exits without returning or raising.
        raise QueryError(
            "Query failed after retries",
            context=self._context(op_correlation_id),
            attempts=state.attempt,
        ) from last_error

    async def fetch_one(
        self,
        command_text: str,
        params: Mapping[str, object] | None = None,
        max_attempts: int | None = None,
        **kwargs: Any,
    ) -> Any | None:
        """Return the first row, or None when the command returns no rows."""
        result = await self.execute(command_text, params, max_attempts, **kwargs)
        return result.first()

    async def fetch_value(
        self,
        command_text: str,
        params: Mapping[str, object] | None = None,
        max_attempts: int | None = None,
        **kwargs: Any,
    ) -> Any | None:
        """Return the first column of the first row, or None."""
        result = await self.execute(command_text, params, max_attempts, **kwargs)
        return result.scalar()

    @staticmethod
    async def _run(
        pool: asyncpg.Pool,
        batch: Sequence[tuple[str, Sequence[object]]],
        timeout: float | None,
    ) -> tuple[list[Any], str]:
        async with pool.acquire() as connection:
            if len(batch) == 1:
                sql, args = batch[0]
                statement = await connection.prepare(sql, timeout=timeout)
                rows = await statement.fetch(*args, timeout=timeout)
                return list(rows), statement.get_statusmsg() or ""

            # Batches are atomic so a retried attempt never re-applies a prefix
            async with connection.transaction():
                for sql, args in batch:
                    statement = await connection.prepare(sql, timeout=timeout)
                    rows = await statement.fetch(*args, timeout=timeout)
            return list(rows), statement.get_statusmsg() or ""

    def _surface_error(
        self,
        error: Exception,
        code: EnumDbErrorCode,
        attempts: int,
        correlation_id: UUID,
    ) -> DbInfraError:
        context = self._context(correlation_id)
        sanitized = sanitize_error_message(error)

        if code.is_retriable:
            logger.error(
                "Query failed after exhausting retries",
                extra={
                    "correlation_id": str(correlation_id),
                    "attempts": attempts,
                    "error": sanitized,
                },
            )
            return TransientNetworkError(
                f"Query failed after {attempts} attempt(s): {sanitized}",
                error_code=code,
                context=context,
                attempts=attempts,
            )
        if code == EnumDbErrorCode.AUTH_ERROR:
            return DbAuthenticationError(
                f"Database rejected the login: {sanitized}",
                context=context,
            )
        if code == EnumDbErrorCode.CONNECTION_ERROR:
            return DbConnectionError(
                f"Database connection failed: {sanitized}",
                context=context,
            )
        return QueryError(
            f"Query failed: {sanitized}",
            error_code=code,
            context=context,
            attempts=attempts,
        )

    def _context(self, correlation_id: UUID) -> ModelInfraErrorContext:
        return ModelInfraErrorContext(
            operation="execute",
            target_name=self._pool_manager.config.target_name,
            correlation_id=correlation_id,
        )


__all__: list[str] = ["QueryExecutor"]
