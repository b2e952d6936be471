# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Named parameter binding for asyncpg.

asyncpg only understands positional ``$n`` placeholders. Callers of the
query executor write ``:name`` placeholders and pass a mapping; this module
rewrites the command and produces the positional argument list.

Rules:
    - ``:name`` binds the mapping value for ``name``; repeated names reuse
      the same ``$n``.
    - ``::type`` casts, quoted literals, quoted identifiers, dollar-quoted
      bodies and comments are left untouched.
    - A placeholder without a value raises QueryError before any I/O.
    - Mapping entries that the command never references are ignored.
    - ``split_statements`` cuts a batch at top-level semicolons so each
      statement can be prepared on its own.

Example:
    >>> bind_named_params(
    ...     "SELECT * FROM players WHERE team_id = :team AND age > :age::int",
    ...     {"team": 7, "age": 18},
    ... )
    ('SELECT * FROM players WHERE team_id = $1 AND age > $2::int', [7, 18])
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from leaguedb.errors import ModelInfraErrorContext, QueryError

_TOKEN_PATTERN = re.compile(
    r"""
      (?P<single_quoted>'(?:[^']|'')*')
    | (?P<double_quoted>"(?:[^"]|"")*")
    | (?P<dollar_quoted>\$\$.*?\$\$)
    | (?P<tagged_dollar_quoted>\$(?P<tag>[A-Za-z_]\w*)\$.*?\$(?P=tag)\$)
    | (?P<line_comment>--[^\n]*)
    | (?P<block_comment>/\*.*?\*/)
    | (?<![:\w]):(?P<name>[A-Za-z_]\w*)
    | (?P<terminator>;)
    """,
    re.VERBOSE | re.DOTALL,
)


def find_named_params(command_text: str) -> list[str]:
    """Return placeholder names in order of first appearance."""
    names: list[str] = []
    for match in _TOKEN_PATTERN.finditer(command_text):
        name = match.group("name")
        if name is not None and name not in names:
            names.append(name)
    return names


def bind_named_params(
    command_text: str,
    params: Mapping[str, object] | None = None,
) -> tuple[str, list[object]]:
    """Rewrite ``:name`` placeholders to ``$n`` and collect the arguments.

    Args:
        command_text: SQL with ``:name`` placeholders
        params: Values keyed by placeholder name

    Returns:
        The rewritten command and its positional arguments.

    Raises:
        QueryError: If a placeholder has no value in ``params``.
    """
    values: Mapping[str, object] = params or {}
    positions: dict[str, int] = {}
    args: list[object] = []

    def _replace(match: re.Match[str]) -> str:
        name = match.group("name")
        if name is None:
            return match.group(0)
        if name not in positions:
            if name not in values:
                raise QueryError(
                    f"No value supplied for parameter :{name}",
                    context=ModelInfraErrorContext(operation="bind_params"),
                    parameter=name,
                )
            args.append(values[name])
            positions[name] = len(args)
        return f"${positions[name]}"

    return _TOKEN_PATTERN.sub(_replace, command_text), args


def split_statements(command_text: str) -> list[str]:
    """Split a batch into statements at semicolons outside quotes and comments.

    Empty and comment-only statements are dropped, so ``"SELECT 1;"`` yields
    a single statement.

    Example:
        >>> split_statements("DELETE FROM fixtures WHERE season_id = :s; DELETE FROM seasons WHERE id = :s;")
        ['DELETE FROM fixtures WHERE season_id = :s', 'DELETE FROM seasons WHERE id = :s']
    """
    statements: list[str] = []
    start = 0
    for match in _TOKEN_PATTERN.finditer(command_text):
        if match.group("terminator") is not None:
            statements.append(command_text[start : match.start()])
            start = match.end()
    statements.append(command_text[start:])
    return [s.strip() for s in statements if not _is_blank(s)]


def _is_blank(segment: str) -> bool:
    def _drop_comments(match: re.Match[str]) -> str:
        if match.group("line_comment") or match.group("block_comment"):
            return ""
        return match.group(0)

    return _TOKEN_PATTERN.sub(_drop_comments, segment).strip() == ""


__all__: list[str] = ["bind_named_params", "find_named_params", "split_statements"]
