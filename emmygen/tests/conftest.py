"""Test configuration helpers to ensure package imports work from the repository root."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
REPO_ROOT = ROOT.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from emmygen.tests._context import build_context  # noqa: E402
from emmygen.utils.logging import RunContext  # noqa: E402


@pytest.fixture
def context() -> RunContext:
    return build_context()


@pytest.fixture
def strict_context() -> RunContext:
    return build_context(strict=True)


@pytest.fixture
def verbose_context() -> RunContext:
    return build_context(verbose=True)
