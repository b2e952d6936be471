# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Exception-safe transactions on the shared pool.

Every begun transaction ends in exactly one of commit or rollback:

    begin ──► unit of work succeeds ──► commit ──► result
          └─► unit of work raises  ──► rollback ──► original error re-raised

If the rollback itself fails, the original error still wins. The rollback
failure is logged, stored on the original exception as ``rollback_error``
and added to it as a note. There is no retry at this layer; callers that
want one wrap the whole unit of work.

Usage:
    coordinator = TransactionCoordinator(manager)

    async def transfer(conn: asyncpg.Connection) -> None:
        await conn.execute("UPDATE players SET team_id = $1 WHERE id = $2", 7, 42)
        await conn.execute("INSERT INTO transfers (player_id, team_id) VALUES ($1, $2)", 42, 7)

    await coordinator.with_transaction(transfer, EnumIsolationLevel.SERIALIZABLE)

    async with coordinator.transaction() as conn:
        await conn.execute("DELETE FROM lineups WHERE match_id = $1", 7747)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar
from uuid import UUID, uuid4

import asyncpg

from leaguedb.enums import EnumIsolationLevel
from leaguedb.errors import ModelInfraErrorContext, TransactionError
from leaguedb.infrastructure.pool_manager import PoolManager
from leaguedb.utils import sanitize_error_message

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionCoordinator:
    """Wraps units of work in begin/commit/rollback."""

    def __init__(self, pool_manager: PoolManager) -> None:
        self._pool_manager = pool_manager

    async def with_transaction(
        self,
        unit_of_work: Callable[[asyncpg.Connection], Awaitable[T]],
        isolation_level: EnumIsolationLevel | str | None = None,
        *,
        readonly: bool = False,
        deferrable: bool = False,
        correlation_id: UUID | None = None,
    ) -> T:
        """Run ``unit_of_work`` inside a transaction and return its result.

        Args:
            unit_of_work: Coroutine function receiving the transaction's connection
            isolation_level: Isolation level; server default when None
            readonly: Start a READ ONLY transaction
            deferrable: Start a DEFERRABLE transaction (serializable read-only only)
            correlation_id: Propagated into logs and error context

        Raises:
            TransactionError: If begin or commit fails.
            Exception: Whatever ``unit_of_work`` raised, after rollback.
        """
        async with self.transaction(
            isolation_level,
            readonly=readonly,
            deferrable=deferrable,
            correlation_id=correlation_id,
        ) as connection:
            return await unit_of_work(connection)

    @asynccontextmanager
    async def transaction(
        self,
        isolation_level: EnumIsolationLevel | str | None = None,
        *,
        readonly: bool = False,
        deferrable: bool = False,
        correlation_id: UUID | None = None,
    ) -> AsyncIterator[asyncpg.Connection]:
        """Context manager form of ``with_transaction`` with the same guarantees."""
        isolation = (
            EnumIsolationLevel(isolation_level).value
            if isolation_level is not None
            else None
        )
        op_correlation_id = correlation_id or uuid4()
        pool = await self._pool_manager.acquire_pool()

        async with pool.acquire() as connection:
            tx = connection.transaction(
                isolation=isolation, readonly=readonly, deferrable=deferrable
            )
            try:
                await tx.start()
            except Exception as e:
                raise TransactionError(
                    f"Failed to begin transaction: {sanitize_error_message(e)}",
                    context=self._context("begin", op_correlation_id),
                    isolation_level=isolation,
                ) from e

            try:
                yield connection
            except (Exception, asyncio.CancelledError) as error:
                await self._rollback(tx, error, op_correlation_id)
                raise

            try:
                await tx.commit()
            except Exception as e:
                raise TransactionError(
                    f"Failed to commit transaction: {sanitize_error_message(e)}",
                    context=self._context("commit", op_correlation_id),
                ) from e

    async def _rollback(
        self,
        tx: asyncpg.transaction.Transaction,
        error: BaseException,
        correlation_id: UUID,
    ) -> None:
        try:
            await tx.rollback()
        except Exception as rollback_error:
            logger.exception(
                "Transaction rollback failed, re-raising the original error",
                extra={
                    "correlation_id": str(correlation_id),
                    "error_type": type(error).__name__,
                    "error": sanitize_error_message(error),
                    "rollback_error": sanitize_error_message(rollback_error),
                },
            )
            error.rollback_error = rollback_error  # type: ignore[attr-defined]
            error.add_note(
                f"Rollback also failed: {sanitize_error_message(rollback_error)}"
            )
            return

        logger.debug(
            "Transaction rolled back",
            extra={
                "correlation_id": str(correlation_id),
                "error_type": type(error).__name__,
            },
        )

    def _context(self, operation: str, correlation_id: UUID) -> ModelInfraErrorContext:
        return ModelInfraErrorContext(
            operation=operation,
            target_name=self._pool_manager.config.target_name,
            correlation_id=correlation_id,
        )


__all__: list[str] = ["TransactionCoordinator"]
