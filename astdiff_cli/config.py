"""Configuration paths for local astdiff state."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("ASTDIFF_HOME", str(Path.home() / ".astdiff"))).expanduser()
DB_FILE = BASE_DIR / "snapshots.db"
CONFIG_FILE = BASE_DIR / "config.toml"
SUPPORTED_EXTENSIONS = {".js", ".mjs", ".cjs", ".jsx"}


def ensure_base_dirs() -> None:
    """Create base directories for local storage if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
