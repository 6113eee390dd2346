"""Tests for the sqlite-vec vector index client."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from apidocs.db.repository import DimensionMismatchError, VectorIndexError
from apidocs.models import VectorData, VectorMetadata


def _vector(key: str, data: list[float], content: str | None = None, file_path: str = "/a"):
    return VectorData(
        key=key,
        data=data,
        metadata=VectorMetadata(
            library_id="lib",
            version="2024-01-01",
            file_path=file_path,
            chunk_index=0,
            title=key.title(),
            type="text",
            content=content or f"content of {key}",
        ),
    )


# ------------------------------------------------------------------
# Indexes
# ------------------------------------------------------------------


def test_create_index(repo):
    info = repo.create_index("lib-20240101", 3)
    assert info.name == "lib-20240101"
    assert info.dimensions == 3
    assert info.vector_count == 0
    assert info.created_at


def test_create_index_is_idempotent(repo):
    repo.create_index("idx", 3)
    repo.upsert("idx", [_vector("a", [1.0, 0.0, 0.0])])
    info = repo.create_index("idx", 3)
    assert info.vector_count == 1


def test_create_index_dimension_mismatch(repo):
    repo.create_index("idx", 3)
    with pytest.raises(DimensionMismatchError, match="3 dimensions"):
        repo.create_index("idx", 4)


def test_create_index_rejects_zero_dimensions(repo):
    with pytest.raises(ValueError):
        repo.create_index("idx", 0)


def test_create_index_raises_when_row_cannot_be_read_back(repo):
    with patch.object(repo, "get_index", return_value=None):
        with pytest.raises(VectorIndexError, match="not found after creation"):
            repo.create_index("idx", 3)


def test_list_and_exists(repo):
    repo.create_index("b", 2)
    repo.create_index("a", 2)
    assert [i.name for i in repo.list_indexes()] == ["a", "b"]
    assert repo.index_exists("a")
    assert not repo.index_exists("c")
    assert repo.get_index("c") is None


def test_delete_index(repo):
    repo.create_index("idx", 3)
    repo.upsert("idx", [_vector("a", [1.0, 0.0, 0.0])])
    assert repo.delete_index("idx") is True
    assert not repo.index_exists("idx")
    assert repo.delete_index("idx") is False


def test_delete_index_leaves_other_indexes(repo):
    repo.create_index("one", 3)
    repo.create_index("two", 3)
    repo.upsert("one", [_vector("k", [1.0, 0.0, 0.0])])
    repo.upsert("two", [_vector("k", [1.0, 0.0, 0.0])])
    repo.delete_index("one")
    assert repo.list_keys("two") == ["k"]
    assert len(repo.query("two", [1.0, 0.0, 0.0], 5)) == 1


# ------------------------------------------------------------------
# Upsert / query
# ------------------------------------------------------------------


def test_query_orders_by_similarity(repo):
    repo.create_index("idx", 3)
    repo.upsert(
        "idx",
        [
            _vector("x", [1.0, 0.0, 0.0]),
            _vector("y", [0.0, 1.0, 0.0]),
            _vector("xy", [1.0, 1.0, 0.0]),
        ],
    )
    results = repo.query("idx", [1.0, 0.1, 0.0], 3)

    assert [r.key for r in results] == ["x", "xy", "y"]
    assert results[0].score > results[1].score > results[2].score
    assert results[0].score == pytest.approx(0.995, abs=0.01)
    assert results[0].metadata.content == "content of x"
    assert results[0].metadata.library_id == "lib"


def test_query_equal_scores_in_unspecified_order(repo):
    """Identical vectors tie on score; their relative order is unspecified."""
    repo.create_index("idx", 3)
    repo.upsert(
        "idx",
        [
            _vector("first", [0.0, 1.0, 0.0]),
            _vector("second", [0.0, 1.0, 0.0]),
            _vector("other", [1.0, 0.0, 0.0]),
        ],
    )
    results = repo.query("idx", [0.0, 1.0, 0.0], 3)

    tied = results[:2]
    assert {r.key for r in tied} == {"first", "second"}
    assert tied[0].score == pytest.approx(tied[1].score)
    assert results[2].key == "other"


def test_query_respects_top_k(repo):
    repo.create_index("idx", 2)
    repo.upsert("idx", [_vector(f"k{i}", [1.0, float(i)]) for i in range(5)])
    assert len(repo.query("idx", [1.0, 0.0], 2)) == 2
    assert repo.query("idx", [1.0, 0.0], 0) == []


def test_query_empty_index(repo):
    repo.create_index("idx", 3)
    assert repo.query("idx", [1.0, 0.0, 0.0], 5) == []


def test_query_missing_index(repo):
    with pytest.raises(VectorIndexError, match="does not exist"):
        repo.query("nope", [1.0], 5)


def test_query_wrong_dimensions(repo):
    repo.create_index("idx", 3)
    with pytest.raises(DimensionMismatchError) as excinfo:
        repo.query("idx", [1.0, 0.0], 5)
    assert isinstance(excinfo.value, VectorIndexError)
    assert isinstance(excinfo.value, ValueError)


def test_upsert_replaces_by_key(repo):
    repo.create_index("idx", 3)
    repo.upsert("idx", [_vector("a", [1.0, 0.0, 0.0], content="old")])
    repo.upsert("idx", [_vector("a", [0.0, 1.0, 0.0], content="new")])

    assert repo.list_keys("idx") == ["a"]
    result = repo.query("idx", [0.0, 1.0, 0.0], 1)[0]
    assert result.metadata.content == "new"
    assert result.score == pytest.approx(1.0, abs=1e-5)


def test_upsert_rejects_wrong_dimensions_without_writing(repo):
    repo.create_index("idx", 3)
    with pytest.raises(DimensionMismatchError):
        repo.upsert("idx", [_vector("ok", [1.0, 0.0, 0.0]), _vector("bad", [1.0])])
    assert repo.list_keys("idx") == []


def test_upsert_missing_index(repo):
    with pytest.raises(VectorIndexError):
        repo.upsert("nope", [_vector("a", [1.0])])


def test_upsert_empty_is_noop(repo):
    repo.create_index("idx", 3)
    assert repo.upsert("idx", []) == 0


# ------------------------------------------------------------------
# Keys
# ------------------------------------------------------------------


def test_list_keys_in_insertion_order(repo):
    repo.create_index("idx", 2)
    repo.upsert("idx", [_vector("b", [1.0, 0.0]), _vector("a", [0.0, 1.0])])
    assert repo.list_keys("idx") == ["b", "a"]


def test_delete_vectors(repo):
    repo.create_index("idx", 2)
    repo.upsert("idx", [_vector(k, [1.0, float(i)]) for i, k in enumerate("abc")])

    assert repo.delete_vectors("idx", ["a", "c", "missing"]) == 2
    assert repo.list_keys("idx") == ["b"]
    assert [r.key for r in repo.query("idx", [1.0, 0.0], 5)] == ["b"]
    assert repo.get_index("idx").vector_count == 1


def test_delete_vectors_in_large_batches(repo):
    repo.create_index("idx", 2)
    repo.upsert("idx", [_vector(f"k{i}", [1.0, float(i)]) for i in range(1200)])
    assert repo.delete_vectors("idx", [f"k{i}" for i in range(1100)]) == 1100
    assert len(repo.list_keys("idx")) == 100
