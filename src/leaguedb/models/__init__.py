# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""leaguedb models."""

from leaguedb.models.model_db_connection_config import ModelDbConnectionConfig
from leaguedb.models.model_pool_health import ModelPoolHealth
from leaguedb.models.model_query_result import QueryResult
from leaguedb.models.model_retry_policy import ModelRetryPolicy, ModelRetryState

__all__: list[str] = [
    "ModelDbConnectionConfig",
    "ModelPoolHealth",
    "ModelRetryPolicy",
    "ModelRetryState",
    "QueryResult",
]
