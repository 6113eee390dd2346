"""Forward-only migration runner for the vector database schema.

Per-index vec0 tables are NOT migration-managed; see apidocs.db.vectors.
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS indexes (
    name        TEXT PRIMARY KEY,
    dimensions  INTEGER NOT NULL,
    vec_table   TEXT NOT NULL UNIQUE,
    created_at  DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS vectors (
    rowid       INTEGER PRIMARY KEY AUTOINCREMENT,
    index_name  TEXT NOT NULL REFERENCES indexes(name) ON DELETE CASCADE,
    key         TEXT NOT NULL,
    metadata    TEXT NOT NULL DEFAULT '{}',
    updated_at  DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (index_name, key)
);

CREATE INDEX IF NOT EXISTS idx_vectors_index_name ON vectors(index_name);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]

CURRENT_VERSION = MIGRATIONS[-1][0]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
            conn.commit()
