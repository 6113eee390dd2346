"""Tests for per-index vec0 table management."""

from __future__ import annotations

import pytest

from apidocs.db.vectors import drop_vec_table, ensure_vec_table, vec_table_name


def test_vec_table_name_is_safe_and_stable():
    name = vec_table_name("Stripe.com-20240115")
    assert name.startswith("vec_stripe_com_20240115_")
    assert name == vec_table_name("Stripe.com-20240115")
    assert len(name.rsplit("_", 1)[1]) == 8


def test_vec_table_name_distinguishes_similar_names():
    assert vec_table_name("a.b-1") != vec_table_name("a-b-1")


def test_ensure_creates_table(tmp_db):
    table = ensure_vec_table(tmp_db, vec_table_name("lib-20240101"), 4)
    tmp_db.execute(f"INSERT INTO {table}(rowid, embedding) VALUES (1, '[1, 0, 0, 0]')")
    count = tmp_db.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    assert count == 1


def test_ensure_is_idempotent(tmp_db):
    table = vec_table_name("lib-20240101")
    ensure_vec_table(tmp_db, table, 4)
    ensure_vec_table(tmp_db, table, 4)


def test_ensure_rejects_unsafe_names(tmp_db):
    with pytest.raises(ValueError):
        ensure_vec_table(tmp_db, "vectors; DROP TABLE indexes", 4)


def test_ensure_rejects_zero_dimensions(tmp_db):
    with pytest.raises(ValueError):
        ensure_vec_table(tmp_db, vec_table_name("x"), 0)


def test_drop_removes_table(tmp_db):
    table = ensure_vec_table(tmp_db, vec_table_name("gone"), 2)
    drop_vec_table(tmp_db, table)
    row = tmp_db.execute(
        "SELECT name FROM sqlite_master WHERE name = ?", (table,)
    ).fetchone()
    assert row is None
