# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Transaction isolation levels accepted by the transaction coordinator."""

from enum import Enum


class EnumIsolationLevel(str, Enum):
    """PostgreSQL transaction isolation levels.

    Values match the ``isolation`` argument of ``asyncpg.Connection.transaction``.
    """

    READ_UNCOMMITTED = "read_uncommitted"
    READ_COMMITTED = "read_committed"
    REPEATABLE_READ = "repeatable_read"
    SERIALIZABLE = "serializable"


__all__ = ["EnumIsolationLevel"]
