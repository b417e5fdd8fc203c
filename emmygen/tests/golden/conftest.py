"""Configuration for golden tests (annotation file snapshots)."""
from __future__ import annotations

from pathlib import Path

import pytest

from emmygen.tests._env import env_flag, in_ci


_RUN_GOLDEN_TESTS = env_flag("RUN_GOLDEN_TESTS", default=not in_ci())
_GOLDEN_DIR = Path(__file__).resolve().parent

if not _RUN_GOLDEN_TESTS:
    _SKIP_REASON = "Golden tests disabled. Set RUN_GOLDEN_TESTS=1 to enable."

    def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
        skip_marker = pytest.mark.skip(reason=_SKIP_REASON)
        for item in items:
            if _GOLDEN_DIR in Path(item.path).resolve().parents:
                item.add_marker(skip_marker)
