"""Tests for the forward-only migration runner."""

from __future__ import annotations

from apidocs.db.connection import Database
from apidocs.db.migrations import CURRENT_VERSION, run_migrations


def _tables(conn) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {r["name"] for r in rows}


def test_creates_schema(tmp_path):
    conn = Database(tmp_path / "vectors.db").connect()
    run_migrations(conn)
    assert {"schema_version", "indexes", "vectors"} <= _tables(conn)
    conn.close()


def test_records_current_version(tmp_db):
    version = tmp_db.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == CURRENT_VERSION


def test_idempotent(tmp_db):
    run_migrations(tmp_db)
    run_migrations(tmp_db)
    count = tmp_db.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == CURRENT_VERSION


def test_vectors_key_unique_per_index(tmp_db):
    tmp_db.execute("INSERT INTO indexes (name, dimensions, vec_table) VALUES ('a', 3, 'vec_a')")
    tmp_db.execute("INSERT INTO indexes (name, dimensions, vec_table) VALUES ('b', 3, 'vec_b')")
    tmp_db.execute("INSERT INTO vectors (index_name, key) VALUES ('a', 'k')")
    tmp_db.execute("INSERT INTO vectors (index_name, key) VALUES ('b', 'k')")
    tmp_db.commit()
    count = tmp_db.execute("SELECT COUNT(*) FROM vectors WHERE key = 'k'").fetchone()[0]
    assert count == 2
