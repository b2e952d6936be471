# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Pool Manager State Enumeration.

The pool manager cycles through these states for the life of the process:

    UNINITIALIZED -> CONNECTING -> CONNECTED
    CONNECTED     -> UNINITIALIZED   (unhealthy pool, pool error, reset)
    CONNECTING    -> UNINITIALIZED   (connect failure)

There is no terminal state.
"""

from enum import Enum


class EnumPoolState(str, Enum):
    """Lifecycle state of the shared connection pool."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"


__all__ = ["EnumPoolState"]
