# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""leaguedb Enumerations Module.

Exports:
    EnumDbErrorCode: Error codes with retriability metadata
    EnumHealthStatus: Health check status
    EnumIsolationLevel: Transaction isolation levels
    EnumPoolState: Pool manager lifecycle state
"""

from leaguedb.enums.enum_db_error_code import EnumDbErrorCode
from leaguedb.enums.enum_health_status import EnumHealthStatus
from leaguedb.enums.enum_isolation_level import EnumIsolationLevel
from leaguedb.enums.enum_pool_state import EnumPoolState

__all__: list[str] = [
    "EnumDbErrorCode",
    "EnumHealthStatus",
    "EnumIsolationLevel",
    "EnumPoolState",
]
