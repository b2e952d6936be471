# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Database error classification.

Maps driver, OS and leaguedb exceptions onto EnumDbErrorCode. The query
executor retries only codes whose ``is_retriable`` is True; the pool manager
uses the AUTH_ERROR classification to pick a clearer log message.

Exception Mapping:
    | Exception                                   | Code              |
    |---------------------------------------------|-------------------|
    | DbInfraError                                | its error_code    |
    | asyncpg.QueryCanceledError                  | QUERY_ERROR       |
    | TimeoutError / asyncio.TimeoutError         | TIMEOUT_ERROR     |
    | ConnectionResetError, ConnectionAbortedError,|                  |
    | BrokenPipeError                             | CONNECTION_RESET  |
    | asyncpg.PostgresConnectionError (08xxx)     | CONNECTION_RESET  |
    | asyncpg.ConnectionDoesNotExistError         | CONNECTION_RESET  |
    | asyncpg.InterfaceError "pool is closing"    | CONNECTION_RESET  |
    | asyncpg.InvalidPasswordError (28P01),       |                   |
    | InvalidAuthorizationSpecificationError      | AUTH_ERROR        |
    | asyncpg.PostgresError (other)               | QUERY_ERROR       |
    | login/firewall wording in the message       | AUTH_ERROR        |
    | other OSError                               | CONNECTION_ERROR  |
    | anything else                               | UNKNOWN_ERROR     |

``asyncpg.QueryCanceledError`` is raised when a server-side
``statement_timeout`` fires. The connection is still alive, so it is a
query failure rather than a transient network failure.

The AUTH_ERROR wording heuristic is best-effort diagnostics. It only applies
to errors the server did not classify itself, so a constraint or table whose
name contains "firewall" stays a QUERY_ERROR.
"""

from __future__ import annotations

import asyncio

import asyncpg

from leaguedb.enums import EnumDbErrorCode
from leaguedb.errors import DbInfraError

AUTH_FAILURE_MARKERS: tuple[str, ...] = (
    "password authentication failed",
    "no pg_hba.conf entry",
    "login failed",
    "firewall",
)

_AUTH_ERROR_TYPES: tuple[type[BaseException], ...] = (
    asyncpg.InvalidPasswordError,
    asyncpg.InvalidAuthorizationSpecificationError,
)

_POOL_CLOSED_MARKERS: tuple[str, ...] = (
    "pool is closing",
    "pool is closed",
    "connection is closed",
)


def is_auth_failure(error: BaseException) -> bool:
    """Heuristically detect login or firewall rejections.

    Looks at the exception, then its ``__cause__``, so wrapped errors are
    recognised too. Message wording is ignored for server-reported errors
    other than the invalid-authorization class (28xxx).
    """
    current: BaseException | None = error
    seen: set[int] = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, _AUTH_ERROR_TYPES):
            return True
        if not isinstance(current, asyncpg.PostgresError):
            message = str(current).lower()
            if any(marker in message for marker in AUTH_FAILURE_MARKERS):
                return True
        current = current.__cause__
    return False


def classify_db_error(error: BaseException) -> EnumDbErrorCode:
    """Classify an exception raised while talking to the database."""
    if isinstance(error, DbInfraError):
        return error.error_code

    if isinstance(error, asyncpg.QueryCanceledError):
        return EnumDbErrorCode.QUERY_ERROR

    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return EnumDbErrorCode.TIMEOUT_ERROR

    if isinstance(error, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)):
        return EnumDbErrorCode.CONNECTION_RESET

    if isinstance(error, _AUTH_ERROR_TYPES):
        return EnumDbErrorCode.AUTH_ERROR

    if isinstance(
        error, (asyncpg.PostgresConnectionError, asyncpg.ConnectionDoesNotExistError)
    ):
        return EnumDbErrorCode.CONNECTION_RESET

    if isinstance(error, asyncpg.InterfaceError):
        message = str(error).lower()
        if any(marker in message for marker in _POOL_CLOSED_MARKERS):
            return EnumDbErrorCode.CONNECTION_RESET
        return EnumDbErrorCode.QUERY_ERROR

    # Server-reported errors carry a SQLSTATE; trust it over message wording
    if isinstance(error, asyncpg.PostgresError):
        return EnumDbErrorCode.QUERY_ERROR

    if is_auth_failure(error):
        return EnumDbErrorCode.AUTH_ERROR

    if isinstance(error, OSError):
        return EnumDbErrorCode.CONNECTION_ERROR

    return EnumDbErrorCode.UNKNOWN_ERROR


def is_transient_error(error: BaseException) -> bool:
    """True when the error qualifies for an automatic retry."""
    return classify_db_error(error).is_retriable


__all__: list[str] = [
    "AUTH_FAILURE_MARKERS",
    "classify_db_error",
    "is_auth_failure",
    "is_transient_error",
]
