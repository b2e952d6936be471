# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Database Error Code Enumeration.

Defines structured error codes for the database connection layer. These codes
drive the retry decision in the query executor and give log lines and callers
a stable classification independent of the driver's exception types.

Error Code Categories:
    - Transient errors: Timeouts and dropped connections (retriable)
    - Connection errors: Connect failures, authentication/firewall rejections
    - Operation errors: Query, transaction and configuration failures
    - Unknown errors: Catch-all for unclassified failures

Usage:
    >>> from leaguedb.enums import EnumDbErrorCode
    >>> error_code = EnumDbErrorCode.CONNECTION_RESET
    >>> error_code.is_retriable
    True
    >>> EnumDbErrorCode.QUERY_ERROR.is_retriable
    False
"""

from enum import Enum


class EnumDbErrorCode(str, Enum):
    """Error codes for database operations.

    Transient Errors (retriable):
        TIMEOUT_ERROR: A connect or command exceeded its network timeout.

        CONNECTION_RESET: The connection was reset, aborted or closed by the
            server while an operation was running.

    Connection Errors (non-retriable):
        CONNECTION_ERROR: The pool could not be established.

        AUTH_ERROR: The server rejected the login, or a firewall refused the
            client address. Verify DB_USER, DB_PASSWORD and network rules.

    Operation Errors (non-retriable):
        QUERY_ERROR: The command failed (syntax, constraint violation, ...).

        TRANSACTION_ERROR: Begin or commit of a transaction failed.

        CONFIGURATION_ERROR: Connection settings are missing or invalid.

    Unknown Errors (non-retriable):
        UNKNOWN_ERROR: Catch-all for unclassified failures.
    """

    # Transient errors
    TIMEOUT_ERROR = "DB_TIMEOUT_ERROR"
    CONNECTION_RESET = "DB_CONNECTION_RESET"

    # Connection errors
    CONNECTION_ERROR = "DB_CONNECTION_ERROR"
    AUTH_ERROR = "DB_AUTH_ERROR"

    # Operation errors
    QUERY_ERROR = "DB_QUERY_ERROR"
    TRANSACTION_ERROR = "DB_TRANSACTION_ERROR"
    CONFIGURATION_ERROR = "DB_CONFIGURATION_ERROR"

    # Unknown errors
    UNKNOWN_ERROR = "DB_UNKNOWN_ERROR"

    @property
    def is_retriable(self) -> bool:
        """Check if this error is retriable.

        Only transient connectivity failures qualify. Every other code is
        surfaced to the caller on first occurrence.

        Returns:
            True if the error is retriable, False otherwise.
        """
        return self in {
            EnumDbErrorCode.TIMEOUT_ERROR,
            EnumDbErrorCode.CONNECTION_RESET,
        }

    @property
    def is_connection_error(self) -> bool:
        """Check if this error happened at the connection level."""
        return self in {
            EnumDbErrorCode.TIMEOUT_ERROR,
            EnumDbErrorCode.CONNECTION_RESET,
            EnumDbErrorCode.CONNECTION_ERROR,
            EnumDbErrorCode.AUTH_ERROR,
        }


__all__ = ["EnumDbErrorCode"]
