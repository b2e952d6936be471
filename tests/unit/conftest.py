# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Shared pytest configuration for all unit tests.

Applies the ``unit`` marker to every test under tests/unit so the suite can
be selected with ``pytest -m unit``.
"""

import pytest


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: list[pytest.Item],
) -> None:
    """Dynamically add the unit marker to all tests in the unit directory."""
    for item in items:
        if "tests/unit" in str(item.fspath).replace("\\", "/"):
            item.add_marker(pytest.mark.unit)
