"""Pytest configuration and fixtures for astdiff tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator, Optional

import pytest

from astdiff_cli.models import Entry, SyntaxNode
from astdiff_cli.storage import SnapshotStore


def make_entry(
    fingerprint: str,
    identity: Optional[str] = None,
    index: int = 0,
    node_type: str = "expression_statement",
) -> Entry:
    """Build an entry by hand, bypassing the parser."""
    node = SyntaxNode(type=node_type, start=index, end=index + 1)
    return Entry(
        identity_key=identity,
        key=identity or node_type,
        fingerprint=fingerprint,
        source_index=index,
        node=node,
        summary=f"stmt {index}",
        summary_id=f"test_{fingerprint}_{index}",
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def temp_home(temp_dir: Path, monkeypatch) -> Path:
    """Point config and snapshot storage at a temporary directory."""
    home = temp_dir / "home"
    monkeypatch.setattr("astdiff_cli.config.BASE_DIR", home)
    monkeypatch.setattr("astdiff_cli.config.DB_FILE", home / "snapshots.db")
    monkeypatch.setattr("astdiff_cli.config.CONFIG_FILE", home / "config.toml")
    return home


@pytest.fixture
def temp_snapshot_store(temp_dir: Path) -> Generator[SnapshotStore, None, None]:
    """Create a SnapshotStore with temporary storage."""
    store = SnapshotStore(temp_dir / "db" / "snapshots.db")
    yield store
    store.close()


@pytest.fixture
def entry_factory():
    """Factory for hand-built entries."""
    return make_entry


@pytest.fixture
def express_app_old() -> str:
    return '''const express = require("express");
const app = express();

app.get("/", (req, res) => {
  res.send("hello");
});

function helper(x) {
  return x + 1;
}
'''


@pytest.fixture
def express_app_new() -> str:
    return '''const express = require("express");
const app = express();

app.get("/", (req, res) => {
  res.send("hello world");
});

function helper(x) {
  return x + 2;
}

app.listen(3000);
'''
