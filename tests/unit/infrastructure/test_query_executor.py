# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Tests for QueryExecutor retry behaviour."""

from __future__ import annotations

import asyncio
import logging

import asyncpg
import pytest

from leaguedb.enums import EnumDbErrorCode
from leaguedb.errors import (
    DbAuthenticationError,
    DbConnectionError,
    QueryError,
    TransientNetworkError,
)
from leaguedb.infrastructure import QueryExecutor
from leaguedb.models import ModelRetryPolicy

TEAM_ROWS = ([("Harbour City FC",), ("Northside Rovers",)], "SELECT 2")


class TestExecuteSuccess:
    """Happy path: one attempt, named parameters bound positionally."""

    @pytest.mark.asyncio
    async def test_returns_rows_and_status(self, executor, connector, scripted_handler):
        connector.handler = scripted_handler(TEAM_ROWS)

        result = await executor.execute(
            "SELECT name FROM teams WHERE season_id = :season ORDER BY name",
            {"season": 2026},
        )

        assert [row[0] for row in result.rows] == ["Harbour City FC", "Northside Rovers"]
        assert result.status == "SELECT 2"
        assert result.rows_affected == 2
        assert result.attempts == 1
        pool = connector.pools[0]
        assert pool.prepared == ["SELECT name FROM teams WHERE season_id = $1 ORDER BY name"]
        assert pool.calls == [(pool.prepared[0], (2026,))]

    @pytest.mark.asyncio
    async def test_connection_is_returned_to_pool(self, executor, connector):
        await executor.execute("SELECT 1")
        assert connector.pools[0].leases == 0

    @pytest.mark.asyncio
    async def test_fetch_one_and_fetch_value(self, executor, connector, scripted_handler):
        connector.handler = scripted_handler(TEAM_ROWS)

        row = await executor.fetch_one("SELECT name FROM teams")
        value = await executor.fetch_value("SELECT name FROM teams")

        assert row == ("Harbour City FC",)
        assert value == "Harbour City FC"

    @pytest.mark.asyncio
    async def test_fetch_value_without_rows(self, executor, connector, scripted_handler):
        connector.handler = scripted_handler(([], "SELECT 0"))

        assert await executor.fetch_value("SELECT id FROM teams WHERE false") is None
        assert await executor.fetch_one("SELECT id FROM teams WHERE false") is None


class TestExecuteBatch:
    """Semicolon-separated statements run together in one transaction."""

    @pytest.mark.asyncio
    async def test_statements_run_in_order_and_commit(
        self, executor, connector, scripted_handler
    ):
        connector.handler = scripted_handler(([], "DELETE 12"), ([], "DELETE 1"))

        result = await executor.execute(
            "DELETE FROM fixtures WHERE season_id = :season_id;\n"
            "DELETE FROM seasons WHERE id = :season_id;",
            {"season_id": 7},
        )

        pool = connector.pools[0]
        assert pool.prepared == [
            "DELETE FROM fixtures WHERE season_id = $1",
            "DELETE FROM seasons WHERE id = $1",
        ]
        assert [args for _, args in pool.calls] == [(7,), (7,)]
        assert pool.connection.events == ["begin", "commit"]
        assert result.status == "DELETE 1"
        assert result.attempts == 1
        assert pool.leases == 0

    @pytest.mark.asyncio
    async def test_failure_mid_batch_rolls_back(
        self, executor, connector, scripted_handler, recorded_sleeps
    ):
        violation = asyncpg.ForeignKeyViolationError("update or delete violates foreign key")
        connector.handler = scripted_handler(([], "DELETE 3"), violation)

        with pytest.raises(QueryError) as exc_info:
            await executor.execute(
                "DELETE FROM standings WHERE season_id = :s; DELETE FROM teams WHERE season_id = :s",
                {"s": 7},
            )

        assert exc_info.value.__cause__ is violation
        pool = connector.pools[0]
        assert pool.connection.events == ["begin", "rollback"]
        assert len(pool.calls) == 2
        assert recorded_sleeps == []

    @pytest.mark.asyncio
    async def test_trailing_semicolon_is_a_single_statement(self, executor, connector):
        await executor.execute("SELECT 1;")

        pool = connector.pools[0]
        assert pool.prepared == ["SELECT 1;"]
        assert pool.connection.transactions == []

    @pytest.mark.asyncio
    async def test_unknown_parameter_in_later_statement(self, executor, connector):
        with pytest.raises(QueryError) as exc_info:
            await executor.execute("DELETE FROM a WHERE id = :id; DELETE FROM b WHERE x = :x", {"id": 1})

        assert exc_info.value.context["parameter"] == "x"
        assert connector.calls == 0


class TestExecuteValidation:
    """Argument problems are reported before any I/O."""

    @pytest.mark.asyncio
    async def test_unknown_parameter(self, executor, connector):
        with pytest.raises(QueryError) as exc_info:
            await executor.execute("SELECT * FROM players WHERE id = :player_id", {})

        assert exc_info.value.context["parameter"] == "player_id"
        assert connector.calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_attempts", [0, -1])
    async def test_max_attempts_below_one(self, executor, connector, max_attempts):
        with pytest.raises(ValueError, match="max_attempts must be >= 1"):
            await executor.execute("SELECT 1", max_attempts=max_attempts)

        assert connector.calls == 0


class TestNonTransientFailures:
    """Non-transient failures surface on the first attempt."""

    @pytest.mark.asyncio
    async def test_constraint_violation_is_not_retried(
        self, executor, connector, scripted_handler, recorded_sleeps
    ):
        violation = asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
        connector.handler = scripted_handler(violation)

        with pytest.raises(QueryError) as exc_info:
            await executor.execute("INSERT INTO teams (name) VALUES (:name)", {"name": "Dup"})

        assert exc_info.value.__cause__ is violation
        assert exc_info.value.error_code == EnumDbErrorCode.QUERY_ERROR
        assert len(connector.pools[0].calls) == 1
        assert recorded_sleeps == []
        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_constraint_named_after_firewall_is_a_query_error(
        self, executor, connector, scripted_handler, recorded_sleeps
    ):
        violation = asyncpg.UniqueViolationError(
            'duplicate key value violates unique constraint "firewall_rules_pkey"'
        )
        connector.handler = scripted_handler(violation)

        with pytest.raises(QueryError) as exc_info:
            await executor.execute(
                "INSERT INTO firewall_rules (cidr) VALUES (:cidr)", {"cidr": "10.0.0.0/8"}
            )

        assert not isinstance(exc_info.value, DbAuthenticationError)
        assert exc_info.value.error_code == EnumDbErrorCode.QUERY_ERROR
        assert exc_info.value.__cause__ is violation
        assert recorded_sleeps == []

    @pytest.mark.asyncio
    async def test_statement_timeout_is_not_retried(
        self, executor, connector, scripted_handler, recorded_sleeps
    ):
        connector.handler = scripted_handler(
            asyncpg.QueryCanceledError("canceling statement due to statement timeout")
        )

        with pytest.raises(QueryError):
            await executor.execute("SELECT pg_sleep(60)")

        assert recorded_sleeps == []

    @pytest.mark.asyncio
    async def test_refused_connect_is_not_retried(self, executor, connector, recorded_sleeps):
        connector.errors = [ConnectionRefusedError("Connection refused")]

        with pytest.raises(DbConnectionError) as exc_info:
            await executor.execute("SELECT 1")

        assert exc_info.value.error_code == EnumDbErrorCode.CONNECTION_ERROR
        assert connector.calls == 1
        assert recorded_sleeps == []

    @pytest.mark.asyncio
    async def test_rejected_login_is_not_retried(self, executor, connector, recorded_sleeps):
        connector.errors = [asyncpg.InvalidPasswordError("password authentication failed")]

        with pytest.raises(DbAuthenticationError):
            await executor.execute("SELECT 1")

        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(
        self, executor, connector, scripted_handler, recorded_sleeps
    ):
        connector.handler = scripted_handler(RuntimeError("codec blew up"))

        with pytest.raises(QueryError) as exc_info:
            await executor.execute("SELECT 1")

        assert exc_info.value.error_code == EnumDbErrorCode.UNKNOWN_ERROR
        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestTransientRetries:
    """Timeouts and resets are retried with backoff after a pool reset."""

    @pytest.mark.asyncio
    async def test_reset_then_success(
        self, executor, connector, scripted_handler, recorded_sleeps, caplog
    ):
        connector.handler = scripted_handler(
            ConnectionResetError("Connection reset by peer"), TEAM_ROWS
        )

        with caplog.at_level(logging.WARNING):
            result = await executor.execute("SELECT name FROM teams")

        assert result.attempts == 2
        assert recorded_sleeps == [1.0]
        assert connector.calls == 2
        assert connector.pools[0].close_calls == 1
        assert "resetting pool and retrying" in caplog.text

    @pytest.mark.asyncio
    async def test_exhaustion_raises_transient_error(
        self, executor, connector, scripted_handler, recorded_sleeps
    ):
        connector.handler = scripted_handler(TimeoutError())

        with pytest.raises(TransientNetworkError) as exc_info:
            await executor.execute("SELECT name FROM teams")

        error = exc_info.value
        assert error.error_code == EnumDbErrorCode.TIMEOUT_ERROR
        assert error.context["attempts"] == 3
        assert isinstance(error.__cause__, TimeoutError)
        assert recorded_sleeps == [1.0, 2.0]
        assert sum(len(pool.calls) for pool in connector.pools) == 3

    @pytest.mark.asyncio
    async def test_backoff_is_capped(
        self, executor, connector, scripted_handler, recorded_sleeps
    ):
        connector.handler = scripted_handler(ConnectionResetError())

        with pytest.raises(TransientNetworkError):
            await executor.execute("SELECT 1", max_attempts=6)

        assert recorded_sleeps == [1.0, 2.0, 4.0, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_single_attempt_budget(
        self, executor, connector, scripted_handler, recorded_sleeps
    ):
        connector.handler = scripted_handler(ConnectionResetError())

        with pytest.raises(TransientNetworkError):
            await executor.execute("SELECT 1", max_attempts=1)

        assert recorded_sleeps == []
        assert connector.calls == 1

    @pytest.mark.asyncio
    async def test_closed_pool_interface_error_is_retried(
        self, executor, connector, scripted_handler, recorded_sleeps
    ):
        connector.handler = scripted_handler(
            asyncpg.InterfaceError("pool is closing"), ([(1,)], "SELECT 1")
        )

        result = await executor.execute("SELECT 1")

        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_connect_timeout_is_retried(
        self, executor, connector, recorded_sleeps
    ):
        connector.errors = [TimeoutError()]

        result = await executor.execute("SELECT 1")

        assert result.attempts == 2
        assert connector.calls == 2
        assert recorded_sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_custom_retry_policy(
        self, pool_manager, connector, scripted_handler, recorded_sleeps
    ):
        executor = QueryExecutor(
            pool_manager,
            ModelRetryPolicy(max_attempts=4, base_delay_seconds=0.5, max_delay_seconds=1.5),
        )
        connector.handler = scripted_handler(ConnectionResetError())

        with pytest.raises(TransientNetworkError):
            await executor.execute("SELECT 1")

        assert recorded_sleeps == [0.5, 1.0, 1.5]


class TestConcurrentRetries:
    """Concurrent failures on one dead pool lead to a single reconnect."""

    @pytest.mark.asyncio
    async def test_two_callers_share_reconnect(self, executor, connector, recorded_sleeps):
        def _handler(pool, sql, args):
            if pool is connector.pools[0]:
                raise ConnectionResetError("server closed the connection")
            return [(len(connector.pools),)], "SELECT 1"

        connector.handler = _handler

        first, second = await asyncio.gather(
            executor.execute("SELECT 1"),
            executor.execute("SELECT 2"),
        )

        assert first.attempts == 2
        assert second.attempts == 2
        assert connector.calls == 2
        assert connector.pools[0].close_calls == 1
