"""Shared fixtures for sqlpeek tests."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterator

import pytest

from sqlpeek import config as config_module
from sqlpeek.store import ConnectionStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real ~/.config/sqlpeek directory."""

    monkeypatch.setattr(config_module, "CONFIG_DIR", tmp_path / "home-config")
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "home-config" / "config.toml")


@pytest.fixture
def sample_db(tmp_path: Path) -> Path:
    """SQLite file holding ``t(id int, name text)`` with two rows."""

    path = tmp_path / "test.db"
    with sqlite3.connect(path) as conn:
        conn.execute("CREATE TABLE t (id int, name text)")
        conn.executemany("INSERT INTO t VALUES (?, ?)", [(1, "a"), (2, "b")])
    conn.close()
    return path


@pytest.fixture
def other_db(tmp_path: Path) -> Path:
    """A second SQLite file with a different schema."""

    path = tmp_path / "other.db"
    with sqlite3.connect(path) as conn:
        conn.execute("CREATE TABLE accounts (id INTEGER PRIMARY KEY, email TEXT NOT NULL)")
        conn.execute("INSERT INTO accounts (email) VALUES ('anna@example.com')")
    conn.close()
    return path


@pytest.fixture
def store(tmp_path: Path) -> Iterator[ConnectionStore]:
    store = ConnectionStore(tmp_path / "config" / "config.db")
    yield store
    store.close()
