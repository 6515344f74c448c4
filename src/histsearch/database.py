"""History storage using SQLite with an FTS5 index over commands."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from pathlib import Path

from histsearch.history import HistoryRecord
from histsearch.settings import DEFAULT_DB_PATH

# Schema version - bump when database structure changes
SCHEMA_VERSION = 1

HISTORY_COLUMNS = "id, timestamp, duration, exit, command, cwd, session, hostname"


def get_db_connection(db_path: Path | None = None) -> sqlite3.Connection:
    """Get a connection to the history database, creating its directory if needed."""
    db_path = db_path or DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Initialize the database schema."""
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS history (
            id TEXT PRIMARY KEY,
            timestamp REAL NOT NULL,
            duration INTEGER DEFAULT -1,
            exit INTEGER DEFAULT 0,
            command TEXT NOT NULL,
            cwd TEXT DEFAULT '',
            session TEXT DEFAULT '',
            hostname TEXT DEFAULT ''
        );

        CREATE VIRTUAL TABLE IF NOT EXISTS history_fts USING fts5(
            command,
            content='history',
            content_rowid='rowid',
            tokenize='unicode61'
        );

        CREATE TRIGGER IF NOT EXISTS history_ai AFTER INSERT ON history BEGIN
            INSERT INTO history_fts(rowid, command) VALUES (new.rowid, new.command);
        END;

        CREATE TRIGGER IF NOT EXISTS history_ad AFTER DELETE ON history BEGIN
            INSERT INTO history_fts(history_fts, rowid, command)
                VALUES('delete', old.rowid, old.command);
        END;

        CREATE TRIGGER IF NOT EXISTS history_au AFTER UPDATE ON history BEGIN
            INSERT INTO history_fts(history_fts, rowid, command)
                VALUES('delete', old.rowid, old.command);
            INSERT INTO history_fts(rowid, command) VALUES (new.rowid, new.command);
        END;

        CREATE INDEX IF NOT EXISTS idx_history_timestamp ON history(timestamp);
        CREATE INDEX IF NOT EXISTS idx_history_command ON history(command);
    """)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()


def save_history(conn: sqlite3.Connection, records: Iterable[HistoryRecord]) -> int:
    """Insert records, ignoring ids that are already stored. Returns rows inserted."""
    cursor = conn.executemany(
        f"INSERT OR IGNORE INTO history ({HISTORY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (
            (r.id, r.timestamp, r.duration, r.exit, r.command, r.cwd, r.session, r.hostname)
            for r in records
        ),
    )
    conn.commit()
    # rowcount excludes the FTS trigger writes
    return max(cursor.rowcount, 0)


def history_count(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(*) AS count FROM history").fetchone()
    return row["count"] if row else 0


def row_to_record(row: sqlite3.Row) -> HistoryRecord:
    return HistoryRecord(
        id=row["id"],
        timestamp=row["timestamp"],
        duration=row["duration"],
        exit=row["exit"],
        command=row["command"],
        cwd=row["cwd"],
        session=row["session"],
        hostname=row["hostname"],
    )
