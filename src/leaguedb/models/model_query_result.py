# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Query result returned by the query executor."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class QueryResult:
    """Rows and command status of one executed command.

    ``rows`` holds ``asyncpg.Record`` objects (mapping and sequence access).
    ``status`` is the server command tag, e.g. ``"SELECT 3"`` or ``"UPDATE 5"``.
    """

    rows: Sequence[Any] = field(default_factory=list)
    status: str = ""
    attempts: int = 1

    @property
    def rows_affected(self) -> int:
        """Row count parsed from the command tag (0 when absent)."""
        parts = self.status.split()
        if not parts:
            return 0
        try:
            return int(parts[-1])
        except ValueError:
            return 0

    def first(self) -> Any | None:
        return self.rows[0] if self.rows else None

    def scalar(self) -> Any | None:
        """First column of the first row, or None when there are no rows."""
        row = self.first()
        if row is None:
            return None
        return row[0]

    def __len__(self) -> int:
        return len(self.rows)


__all__: list[str] = ["QueryResult"]
