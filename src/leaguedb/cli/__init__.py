# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""leaguedb command line interface."""

from leaguedb.cli.commands import cli

__all__: list[str] = ["cli"]
