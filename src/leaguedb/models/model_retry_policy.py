# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Retry Policy and Retry State Models.

The policy is static configuration; the state is created per ``execute``
call and advanced immutably after every failed attempt.

Backoff:
    delay(i) = min(base_delay_seconds * multiplier ** i, max_delay_seconds)

    With the defaults this is 1s, 2s, 4s, 5s, 5s, ...
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ModelRetryPolicy(BaseModel):
    """Retry configuration with exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        base_delay_seconds: Delay after the first failed attempt
        multiplier: Growth factor between consecutive delays
        max_delay_seconds: Upper bound for any single delay
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1, le=20)
    base_delay_seconds: float = Field(default=1.0, ge=0.0)
    multiplier: float = Field(default=2.0, ge=1.0)
    max_delay_seconds: float = Field(default=5.0, ge=0.0)

    def delay_for_attempt(self, attempt: int) -> float:
        """Return the sleep before the attempt after ``attempt`` (0-indexed)."""
        if attempt < 0:
            raise ValueError(f"attempt must be >= 0, got {attempt}")
        return min(
            self.base_delay_seconds * (self.multiplier**attempt),
            self.max_delay_seconds,
        )


class ModelRetryState(BaseModel):
    """Attempt bookkeeping for a single query call.

    Example:
        >>> state = ModelRetryState(max_attempts=3)
        >>> state = state.next_attempt(error_message="ConnectionResetError")
        >>> state.attempt, state.is_retriable()
        (1, True)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    attempt: int = Field(default=0, ge=0)
    max_attempts: int = Field(ge=1)
    last_error: str | None = None

    def is_retriable(self) -> bool:
        """True while attempts remain."""
        return self.attempt < self.max_attempts

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts - 1

    def next_attempt(self, error_message: str) -> ModelRetryState:
        return self.model_copy(
            update={"attempt": self.attempt + 1, "last_error": error_message}
        )


__all__: list[str] = ["ModelRetryPolicy", "ModelRetryState"]
