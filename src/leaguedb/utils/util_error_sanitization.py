# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Error message sanitization utilities.

Driver errors can echo DSNs, login names or passwords. Every error string
that reaches a log line or a health report passes through this module first.

Example:
    >>> try:
    ...     raise ValueError("Auth failed with password=secret123")
    ... except Exception as e:
    ...     safe_msg = sanitize_error_message(e)
    >>> "secret123" not in safe_msg
    True
"""

from __future__ import annotations

# Checked case-insensitively against the error message. When matched, the
# message is redacted.
SENSITIVE_PATTERNS: tuple[str, ...] = (
    # Credentials
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "credential",
    # Connection strings
    "connection_string",
    "conn_str",
    "user:pass",
    "pgpassword",
    "db_password",
    # Certificate and key material
    "-----begin",
    "-----end",
    # Database connection URI schemes (often contain credentials)
    "postgres://",
    "postgresql://",
    "mssql://",
    "sqlserver://",
)


def sanitize_error_string(error_str: str, max_length: int = 500) -> str:
    """Sanitize a raw error string for safe inclusion in logs and reports.

    Args:
        error_str: The error string to sanitize
        max_length: Maximum length of the sanitized message (default 500)

    Returns:
        The string itself, a redaction marker, or a truncated copy.
    """
    if not error_str:
        return ""

    error_lower = error_str.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in error_lower:
            return "[REDACTED - potentially sensitive data]"

    if len(error_str) > max_length:
        return error_str[:max_length] + "... [truncated]"

    return error_str


def sanitize_error_message(exception: BaseException, max_length: int = 500) -> str:
    """Sanitize an exception message for safe inclusion in logs.

    Args:
        exception: The exception to sanitize
        max_length: Maximum length of the sanitized message (default 500)

    Returns:
        ``"{ExceptionType}: {sanitized_message}"``; only the type when the
        message looks sensitive.
    """
    exception_type = type(exception).__name__
    exception_str = str(exception)

    exception_lower = exception_str.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in exception_lower:
            return f"{exception_type}: [REDACTED - potentially sensitive data]"

    if len(exception_str) > max_length:
        exception_str = exception_str[:max_length] + "... [truncated]"

    return f"{exception_type}: {exception_str}" if exception_str else exception_type


__all__: list[str] = [
    "SENSITIVE_PATTERNS",
    "sanitize_error_message",
    "sanitize_error_string",
]
