"""Tests for JSON-file library metadata and cache persistence."""

from __future__ import annotations

import json

import pytest

from apidocs.library.store import LibraryNotFoundError, LibraryStore
from apidocs.models import Chunk, CrawledPage, LibraryMetadata


def _metadata(library_id="stripe.com", name="Stripe", domain="docs.stripe.com", **kwargs):
    return LibraryMetadata(
        id=library_id,
        name=name,
        website_url=f"https://{domain}",
        domain=domain,
        indexed_at="2024-01-01T00:00:00+00:00",
        chunk_count=10,
        page_count=3,
        index_name=f"{library_id}-20240101",
        **kwargs,
    )


@pytest.fixture
def store(tmp_path):
    return LibraryStore(tmp_path / "libraries")


def test_save_and_get(store):
    original = _metadata(docs_url="https://docs.stripe.com/api", crawled_urls=["https://a"])
    path = store.save(original)

    assert path.name == "metadata.json"
    assert store.get("stripe.com") == original


def test_metadata_file_is_plain_json(store):
    path = store.save(_metadata())
    data = json.loads(path.read_text())
    assert data["website_url"] == "https://docs.stripe.com"
    assert data["index_name"] == "stripe.com-20240101"


def test_get_missing_returns_none(store):
    assert store.get("nope") is None


def test_get_unreadable_returns_none(store):
    target = store.library_dir("broken")
    target.mkdir(parents=True)
    (target / "metadata.json").write_text("{not json")
    assert store.get("broken") is None


def test_list_sorted_and_skips_unreadable(store):
    store.save(_metadata("zeta", "Zeta", "zeta.dev"))
    store.save(_metadata("alpha", "Alpha", "alpha.dev"))
    store.library_dir("empty").mkdir(parents=True)
    assert [m.id for m in store.list()] == ["alpha", "zeta"]


def test_list_without_root(tmp_path):
    assert LibraryStore(tmp_path / "missing").list() == []


def test_find_exact_then_partial(store):
    store.save(_metadata("stripe.com", "Stripe", "docs.stripe.com"))
    store.save(_metadata("stripe.com-api", "Stripe API", "docs.stripe.com"))

    assert store.find("STRIPE").id == "stripe.com"
    assert store.find("stripe.com-api").id == "stripe.com-api"
    assert store.find("api").id == "stripe.com-api"
    assert store.find("docs.stripe").id in ("stripe.com", "stripe.com-api")
    assert store.find("react") is None


def test_require_raises(store):
    with pytest.raises(LibraryNotFoundError, match="nope"):
        store.require("nope")


def test_delete(store):
    store.save(_metadata())
    store.save_chunks("stripe.com", [])
    assert store.delete("stripe.com") is True
    assert not store.library_dir("stripe.com").exists()
    assert store.delete("stripe.com") is False


def _page(i: int) -> CrawledPage:
    return CrawledPage(
        url=f"https://x.dev/p{i}",
        path=f"/p{i}",
        title=f"P{i}",
        content=f"content {i}",
        html="<p>x</p>",
        crawled_at="2024-01-01T00:00:00+00:00",
    )


def test_pages_cache_batches_of_fifty(store):
    pages = [_page(i) for i in range(120)]
    store.save_pages("lib", pages)

    cache = store.library_dir("lib") / "cache"
    assert sorted(p.name for p in cache.glob("pages-*.json")) == [
        "pages-0.json",
        "pages-1.json",
        "pages-2.json",
    ]
    assert store.load_pages("lib") == pages


def test_saving_fewer_pages_clears_old_batches(store):
    store.save_pages("lib", [_page(i) for i in range(120)])
    store.save_pages("lib", [_page(0)])
    cache = store.library_dir("lib") / "cache"
    assert [p.name for p in cache.glob("pages-*.json")] == ["pages-0.json"]
    assert len(store.load_pages("lib")) == 1


def test_chunks_cache_round_trip(store):
    chunks = [
        Chunk(
            id=f"c{i}",
            content=f"body {i}",
            title="T",
            type="code" if i % 2 else "text",
            file_path="/a",
            heading_hierarchy=["A", "B"],
            code_language="python" if i % 2 else None,
        )
        for i in range(250)
    ]
    store.save_chunks("lib", chunks)

    assert len(list((store.library_dir("lib") / "cache").glob("chunks-*.json"))) == 3
    assert store.load_chunks("lib") == chunks
    assert store.load_pages("lib") == []


def test_load_without_cache(store):
    assert store.load_chunks("nothing") == []
