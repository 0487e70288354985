"""SQLite schema and connection manager for the signal store.

SQLiteDB is the single entry point for relational persistence. Enables WAL
mode and foreign keys on connect and creates the three investigation tables
on initialization.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Sequence

_SCHEMA_SQL = """
-- Investigation threads
CREATE TABLE IF NOT EXISTS investigation_threads (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    initial_hypothesis TEXT NOT NULL,
    scope TEXT,
    status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active','dormant','closed')),
    confidence_score REAL CHECK(confidence_score >= 0 AND confidence_score <= 1),
    investigative_axes TEXT NOT NULL DEFAULT '[]',
    current_assessment TEXT CHECK(current_assessment IN
        ('supported','partially_supported','unclear','contradicted')),
    blind_spots TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Signals (append-only evidence)
CREATE TABLE IF NOT EXISTS investigation_signals (
    id TEXT PRIMARY KEY,
    thread_id TEXT NOT NULL REFERENCES investigation_threads(id) ON DELETE CASCADE,
    type TEXT NOT NULL,
    source TEXT NOT NULL,
    url TEXT,
    date TEXT,
    summary TEXT NOT NULL,
    credibility_score TEXT CHECK(credibility_score IN ('A','B','C','D')),
    confidence REAL,
    impact_on_hypothesis TEXT NOT NULL CHECK(impact_on_hypothesis IN ('supports','weakens','neutral')),
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_signals_thread_id ON investigation_signals(thread_id);

-- Chat messages
CREATE TABLE IF NOT EXISTS investigation_messages (
    id TEXT PRIMARY KEY,
    thread_id TEXT NOT NULL REFERENCES investigation_threads(id) ON DELETE CASCADE,
    role TEXT NOT NULL CHECK(role IN ('user','assistant')),
    content TEXT NOT NULL,
    citations TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_thread_id ON investigation_messages(thread_id);
"""


class SQLiteDB:
    """SQLite connection manager with schema auto-creation.

    Usage:
        db = SQLiteDB("/path/to/db.sqlite")
        db.execute("INSERT INTO ...", params)
        rows = db.fetchall("SELECT * FROM ...")

    The connection may be used from the worker threads of an ASGI server.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._configure()
        self._create_schema()

    def _configure(self) -> None:
        """Enable WAL mode and foreign keys."""
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

    def _create_schema(self) -> None:
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.commit()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Execute a single SQL statement and commit, rolling back on error."""
        with self._conn:
            return self._conn.execute(sql, params)

    def executemany(self, sql: str, params_seq: Sequence[Sequence[Any]]) -> sqlite3.Cursor:
        """Execute a SQL statement for each set of params as one transaction.

        Either every row is written or, on any error, none is.
        """
        with self._conn:
            return self._conn.executemany(sql, params_seq)

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        row = self._conn.execute(sql, params).fetchone()
        return dict(row) if row is not None else None

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        return [dict(row) for row in self._conn.execute(sql, params).fetchall()]

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteDB":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
