"""apidocs vector database layer."""

from apidocs.db.connection import Database
from apidocs.db.migrations import MIGRATIONS, run_migrations
from apidocs.db.repository import Repository, VectorIndexError
from apidocs.db.vectors import ensure_vec_table, vec_table_name

__all__ = [
    "Database",
    "MIGRATIONS",
    "Repository",
    "VectorIndexError",
    "ensure_vec_table",
    "run_migrations",
    "vec_table_name",
]
