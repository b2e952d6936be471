# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Utility modules for leaguedb.

    - util_db_error_classification: Exception to EnumDbErrorCode mapping
    - util_error_sanitization: Error message sanitization for secure logging
    - util_param_binding: ``:name`` to ``$n`` placeholder binding, batch splitting
"""

from leaguedb.utils.util_db_error_classification import (
    classify_db_error,
    is_auth_failure,
    is_transient_error,
)
from leaguedb.utils.util_error_sanitization import (
    SENSITIVE_PATTERNS,
    sanitize_error_message,
    sanitize_error_string,
)
from leaguedb.utils.util_param_binding import (
    bind_named_params,
    find_named_params,
    split_statements,
)

__all__: list[str] = [
    "SENSITIVE_PATTERNS",
    "bind_named_params",
    "classify_db_error",
    "find_named_params",
    "is_auth_failure",
    "is_transient_error",
    "sanitize_error_message",
    "sanitize_error_string",
    "split_statements",
]
