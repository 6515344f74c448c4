"""Shared fixtures: isolated cache directories and a populated history database."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from histsearch.database import get_db_connection, init_db, save_history
from histsearch.history import Context, HistoryRecord
from histsearch.search import HistoryDatabase
from histsearch.settings import Settings

NOW = 1_700_000_000.0


@pytest.fixture(autouse=True)
def isolated_cache(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep logs, settings and manifests out of the real home directory."""
    cache_dir = tmp_path_factory.getbasetemp() / "cache"
    cache_dir.mkdir(exist_ok=True)
    monkeypatch.setattr("histsearch.logger.LOG_DIR", cache_dir / "logs")
    monkeypatch.setattr("histsearch.settings.SETTINGS_PATH", cache_dir / "settings.json")
    monkeypatch.setattr("histsearch.importer.MANIFEST_PATH", cache_dir / "import_manifest.json")
    return cache_dir


@pytest.fixture
def context() -> Context:
    return Context(session="session-1", cwd="/home/dev/project", hostname="box:dev")


@pytest.fixture
def temp_db(tmp_path: Path) -> Iterator[sqlite3.Connection]:
    conn = get_db_connection(tmp_path / "history.db")
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(update_check=False, db_path=tmp_path / "history.db")


def make_record(command: str, age: float = 0.0, **kwargs: Any) -> HistoryRecord:
    """A record run `age` seconds before NOW."""
    kwargs.setdefault("cwd", "/home/dev/project")
    kwargs.setdefault("session", "session-1")
    kwargs.setdefault("hostname", "box:dev")
    return HistoryRecord(command=command, timestamp=NOW - age, **kwargs)


class CountingDatabase(HistoryDatabase):
    """HistoryDatabase that counts list/search queries."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        self.queries = 0

    async def list(self, *args: Any, **kwargs: Any) -> list[HistoryRecord]:
        self.queries += 1
        return await super().list(*args, **kwargs)

    async def search(self, *args: Any, **kwargs: Any) -> list[HistoryRecord]:
        self.queries += 1
        return await super().search(*args, **kwargs)


@pytest.fixture
def db(temp_db: sqlite3.Connection) -> CountingDatabase:
    """Database holding a small, mixed history (newest first: git status)."""
    save_history(
        temp_db,
        [
            make_record("ls -la", age=500),
            make_record("git commit -m wip", age=400),
            make_record("cargo build", age=300, hostname="other:dev"),
            make_record("git push origin main", age=200, cwd="/tmp"),
            make_record("git status", age=100, session="session-2"),
        ],
    )
    return CountingDatabase(temp_db)
