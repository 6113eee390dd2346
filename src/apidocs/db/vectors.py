"""Per-index sqlite-vec virtual table management."""

from __future__ import annotations

import hashlib
import re
import sqlite3

_TABLE_RE = re.compile(r"vec_[a-z0-9_]+")


def vec_table_name(index_name: str) -> str:
    """Return a safe, collision-free vec0 table name for *index_name*.

    Examples:
        "stripe-20240115" -> "vec_stripe_20240115_<8 hex chars>"
    """
    slug = re.sub(r"[^a-z0-9]", "_", index_name.lower())[:40]
    digest = hashlib.sha1(index_name.encode("utf-8")).hexdigest()[:8]
    return f"vec_{slug}_{digest}"


def ensure_vec_table(conn: sqlite3.Connection, table: str, dimensions: int) -> str:
    """Create the cosine-distance vec0 table *table* if it doesn't exist.

    Does not commit; callers run this inside their own transaction.
    """
    if not _TABLE_RE.fullmatch(table):
        raise ValueError(f"Invalid vec table name '{table}'; use vec_table_name().")
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    conn.execute(
        f"CREATE VIRTUAL TABLE IF NOT EXISTS {table} "
        f"USING vec0(embedding float[{dimensions}] distance_metric=cosine)"
    )
    return table


def drop_vec_table(conn: sqlite3.Connection, table: str) -> None:
    if not _TABLE_RE.fullmatch(table):
        raise ValueError(f"Invalid vec table name '{table}'.")
    conn.execute(f"DROP TABLE IF EXISTS {table}")
