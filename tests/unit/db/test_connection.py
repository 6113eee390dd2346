"""Tests for the Database connection layer."""

from __future__ import annotations

import sqlite3

from apidocs.db.connection import Database


def test_connect_creates_file_and_parent_dirs(tmp_path):
    db_path = tmp_path / "nested" / "dir" / "vectors.db"
    conn = Database(db_path).connect()
    conn.close()
    assert db_path.exists()


def test_sqlite_vec_loads(tmp_path):
    conn = Database(tmp_path / "vectors.db").connect()
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    conn.close()
    assert version.startswith("v")


def test_foreign_keys_enabled(tmp_path):
    conn = Database(tmp_path / "vectors.db").connect()
    result = conn.execute("PRAGMA foreign_keys").fetchone()[0]
    conn.close()
    assert result == 1


def test_wal_journal_mode_for_files(tmp_path):
    conn = Database(tmp_path / "vectors.db").connect()
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    conn.close()
    assert mode == "wal"


def test_in_memory_database():
    conn = Database(":memory:").connect()
    assert conn.execute("SELECT vec_version()").fetchone()[0]
    conn.close()


def test_row_factory_set(tmp_path):
    conn = Database(tmp_path / "vectors.db").connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.execute("INSERT INTO t VALUES (42)")
    row = conn.execute("SELECT x FROM t").fetchone()
    conn.close()
    assert isinstance(row, sqlite3.Row)
    assert row["x"] == 42


def test_context_manager_closes(tmp_path):
    db = Database(tmp_path / "vectors.db")
    with db as conn:
        conn.execute("SELECT 1")
    assert db._conn is None
