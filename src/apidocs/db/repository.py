"""Vector index client backed by sqlite-vec.

Each named index owns one cosine-distance vec0 table plus rows in the
``vectors`` table carrying the key and the JSON metadata. The two share a
rowid, so a query never needs a second lookup beyond a join.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable, Sequence

from apidocs.db.vectors import drop_vec_table, ensure_vec_table, vec_table_name
from apidocs.models import IndexInfo, SearchResult, VectorData, VectorMetadata

# SQLite's default host-parameter limit is 999 on older builds.
_DELETE_BATCH = 500


class VectorIndexError(RuntimeError):
    """Raised for unknown indexes and storage failures."""


class DimensionMismatchError(VectorIndexError, ValueError):
    """Raised when a vector's length differs from its index's dimensions."""


class Repository:
    """Data access layer for named vector indexes.

    Wraps an open sqlite3.Connection (sqlite-vec loaded, migrations applied).
    The connection is owned by the caller and must be closed after use.
    Writes are serialised with a lock and each runs in one transaction.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def create_index(self, name: str, dimensions: int) -> IndexInfo:
        """Create index *name* if missing. Idempotent for matching dimensions.

        Raises:
            DimensionMismatchError: If *name* exists with different dimensions.
        """
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        existing = self.get_index(name)
        if existing is not None:
            if existing.dimensions != dimensions:
                raise DimensionMismatchError(
                    f"Index '{name}' has {existing.dimensions} dimensions, "
                    f"cannot reuse it for {dimensions}-dimensional vectors."
                )
            return existing

        table = vec_table_name(name)
        try:
            with self._lock, self._conn:
                ensure_vec_table(self._conn, table, dimensions)
                self._conn.execute(
                    "INSERT INTO indexes (name, dimensions, vec_table) VALUES (?, ?, ?)",
                    (name, dimensions, table),
                )
        except sqlite3.Error as exc:
            raise VectorIndexError(f"Could not create index '{name}': {exc}") from exc
        info = self.get_index(name)
        if info is None:
            raise VectorIndexError(f"Index '{name}' was not found after creation.")
        return info

    def delete_index(self, name: str) -> bool:
        """Drop index *name* and all its vectors. Returns False if it did not exist."""
        row = self._index_row(name)
        if row is None:
            return False
        try:
            with self._lock, self._conn:
                drop_vec_table(self._conn, row["vec_table"])
                self._conn.execute("DELETE FROM vectors WHERE index_name = ?", (name,))
                self._conn.execute("DELETE FROM indexes WHERE name = ?", (name,))
        except sqlite3.Error as exc:
            raise VectorIndexError(f"Could not delete index '{name}': {exc}") from exc
        return True

    def get_index(self, name: str) -> IndexInfo | None:
        row = self._index_row(name)
        if row is None:
            return None
        count = self._conn.execute(
            "SELECT COUNT(*) FROM vectors WHERE index_name = ?", (name,)
        ).fetchone()[0]
        return IndexInfo(
            name=row["name"],
            dimensions=row["dimensions"],
            vector_count=count,
            created_at=row["created_at"],
        )

    def list_indexes(self) -> list[IndexInfo]:
        names = [
            r["name"]
            for r in self._conn.execute("SELECT name FROM indexes ORDER BY name").fetchall()
        ]
        return [info for info in (self.get_index(n) for n in names) if info is not None]

    def index_exists(self, name: str) -> bool:
        return self._index_row(name) is not None

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    def upsert(self, index_name: str, vectors: Sequence[VectorData]) -> int:
        """Insert or replace *vectors* by key, all in one transaction.

        Returns:
            Number of vectors written.

        Raises:
            VectorIndexError: If the index does not exist or the write fails.
            DimensionMismatchError: If any vector's length differs from the index dimensions.
        """
        row = self._require_index(index_name)
        dimensions = row["dimensions"]
        table = row["vec_table"]
        for vector in vectors:
            if len(vector.data) != dimensions:
                raise DimensionMismatchError(
                    f"Vector '{vector.key}' has {len(vector.data)} dimensions, "
                    f"index '{index_name}' expects {dimensions}."
                )
        if not vectors:
            return 0

        try:
            with self._lock, self._conn:
                for vector in vectors:
                    metadata = json.dumps(vector.metadata.to_dict())
                    existing = self._conn.execute(
                        "SELECT rowid FROM vectors WHERE index_name = ? AND key = ?",
                        (index_name, vector.key),
                    ).fetchone()
                    if existing is not None:
                        rowid = existing["rowid"]
                        self._conn.execute(
                            "UPDATE vectors SET metadata = ?, updated_at = datetime('now') "
                            "WHERE rowid = ?",
                            (metadata, rowid),
                        )
                        self._conn.execute(f"DELETE FROM {table} WHERE rowid = ?", (rowid,))
                    else:
                        cur = self._conn.execute(
                            "INSERT INTO vectors (index_name, key, metadata) VALUES (?, ?, ?)",
                            (index_name, vector.key, metadata),
                        )
                        rowid = cur.lastrowid
                    self._conn.execute(
                        f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
                        (rowid, json.dumps(vector.data)),
                    )
        except sqlite3.Error as exc:
            raise VectorIndexError(f"Upsert into '{index_name}' failed: {exc}") from exc
        return len(vectors)

    def query(self, index_name: str, vector: Sequence[float], top_k: int) -> list[SearchResult]:
        """Nearest neighbours of *vector*, highest cosine similarity first.

        Score is ``1 - cosine distance``. An empty index returns ``[]``.
        """
        row = self._require_index(index_name)
        if len(vector) != row["dimensions"]:
            raise DimensionMismatchError(
                f"Query vector has {len(vector)} dimensions, "
                f"index '{index_name}' expects {row['dimensions']}."
            )
        if top_k < 1:
            return []

        try:
            rows = self._conn.execute(
                f"""
                WITH knn AS (
                    SELECT rowid, distance FROM {row['vec_table']}
                    WHERE embedding MATCH ? AND k = ?
                )
                SELECT v.key, v.metadata, knn.distance
                FROM knn JOIN vectors v ON v.rowid = knn.rowid
                ORDER BY knn.distance
                """,
                (json.dumps(list(vector)), top_k),
            ).fetchall()
        except sqlite3.Error as exc:
            raise VectorIndexError(f"Query against '{index_name}' failed: {exc}") from exc

        return [
            SearchResult(
                key=r["key"],
                score=1.0 - float(r["distance"]),
                metadata=VectorMetadata.from_dict(json.loads(r["metadata"])),
            )
            for r in rows
        ]

    def list_keys(self, index_name: str) -> list[str]:
        self._require_index(index_name)
        rows = self._conn.execute(
            "SELECT key FROM vectors WHERE index_name = ? ORDER BY rowid", (index_name,)
        ).fetchall()
        return [r["key"] for r in rows]

    def delete_vectors(self, index_name: str, keys: Iterable[str]) -> int:
        """Delete vectors by key. Unknown keys are ignored. Returns rows deleted."""
        row = self._require_index(index_name)
        table = row["vec_table"]
        keys = list(keys)
        deleted = 0
        try:
            with self._lock, self._conn:
                for start in range(0, len(keys), _DELETE_BATCH):
                    batch = keys[start : start + _DELETE_BATCH]
                    placeholders = ",".join("?" * len(batch))
                    rowids = [
                        r["rowid"]
                        for r in self._conn.execute(
                            f"SELECT rowid FROM vectors WHERE index_name = ? AND key IN ({placeholders})",
                            (index_name, *batch),
                        ).fetchall()
                    ]
                    if not rowids:
                        continue
                    marks = ",".join("?" * len(rowids))
                    self._conn.execute(f"DELETE FROM {table} WHERE rowid IN ({marks})", rowids)
                    cur = self._conn.execute(f"DELETE FROM vectors WHERE rowid IN ({marks})", rowids)
                    deleted += cur.rowcount
        except sqlite3.Error as exc:
            raise VectorIndexError(f"Delete from '{index_name}' failed: {exc}") from exc
        return deleted

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _index_row(self, name: str) -> sqlite3.Row | None:
        try:
            return self._conn.execute(
                "SELECT name, dimensions, vec_table, created_at FROM indexes WHERE name = ?",
                (name,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise VectorIndexError(f"Could not read index '{name}': {exc}") from exc

    def _require_index(self, name: str) -> sqlite3.Row:
        row = self._index_row(name)
        if row is None:
            raise VectorIndexError(f"Index '{name}' does not exist.")
        return row
