"""Helpers for loading local environment defaults."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

__all__ = ["load_env"]


_env_loaded = False


def load_env(*, dotenv_path: Optional[str | Path] = None) -> bool:
    """Load a ``.env`` file once and report whether anything was read.

    ``EMMYGEN_ENV_FILE`` points at an alternative file when no explicit path is
    given. Values already present in the process environment always win.
    """

    global _env_loaded
    if _env_loaded:
        return False

    if dotenv_path is None:
        override = os.getenv("EMMYGEN_ENV_FILE", "").strip()
        dotenv_path = Path(override).expanduser() if override else None

    loaded = load_dotenv(dotenv_path=dotenv_path, override=False)
    _env_loaded = True
    return loaded
