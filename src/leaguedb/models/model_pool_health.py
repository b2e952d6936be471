# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Pool health report model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from leaguedb.enums import EnumHealthStatus, EnumPoolState


class ModelPoolHealth(BaseModel):
    """Result of ``PoolManager.health_check``.

    Attributes:
        status: Overall health
        state: Pool manager state at the end of the check
        target_name: Password-free ``host:port/database``
        server_version: ``SELECT version()`` output when reachable
        pool_size: Open connections in the pool
        idle_size: Idle connections in the pool
        min_size: Configured minimum pool size
        max_size: Configured maximum pool size
        response_time_ms: Round trip of the version query
        connect_count: Connect attempts started by this manager so far
        errors: Sanitized error messages collected during the check
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: EnumHealthStatus
    state: EnumPoolState
    target_name: str
    server_version: str | None = None
    pool_size: int = 0
    idle_size: int = 0
    min_size: int = 0
    max_size: int = 0
    response_time_ms: float | None = None
    connect_count: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return self.status == EnumHealthStatus.HEALTHY


__all__: list[str] = ["ModelPoolHealth"]
