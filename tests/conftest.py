"""Shared pytest fixtures."""

from __future__ import annotations

import re
import zlib
from contextlib import contextmanager
from unittest.mock import patch

import pytest

from apidocs.config import EmbeddingCfg
from apidocs.db.connection import Database
from apidocs.db.migrations import run_migrations
from apidocs.db.repository import Repository
from apidocs.ingest.crawler import FetchedPage, FetchError
from apidocs.ingest.embeddings import EmbeddingClient, EmbeddingError

DIMS = 8


@pytest.fixture
def tmp_db(tmp_path):
    """File-based vector DB in tmp_path with migrations applied, closed after test."""
    conn = Database(tmp_path / "vectors.db").connect()
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


class FakeEmbedder(EmbeddingClient):
    """Deterministic bag-of-words embedder; no network, no API key.

    Texts containing any string in *fail_on* raise EmbeddingError.
    """

    def __init__(self, dims: int = DIMS, fail_on: tuple[str, ...] = ()) -> None:
        super().__init__(
            EmbeddingCfg(model="fake/bag-of-words", dimensions=dims, concurrency=2, batch_delay=0),
            validate_key=False,
        )
        self.fail_on = fail_on
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingError("simulated provider failure")
        vector = [0.01] * self.config.dimensions
        for word in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(word.encode()) % self.config.dimensions] += 1.0
        return vector


@pytest.fixture
def embedder():
    return FakeEmbedder()


class FakeFetcher:
    """Serve canned HTML per URL; unknown URLs fail like a 404.

    *redirects* maps a requested URL to the URL the response finally came from.
    """

    def __init__(self, pages: dict[str, str], redirects: dict[str, str] | None = None) -> None:
        self.pages = pages
        self.redirects = redirects or {}
        self.fetched: list[str] = []

    def fetch(self, url: str) -> FetchedPage:
        self.fetched.append(url)
        final_url = self.redirects.get(url, url)
        if final_url not in self.pages:
            raise FetchError("HTTP 404: Not Found")
        return FetchedPage(html=self.pages[final_url], final_url=final_url, content_type="text/html")


def doc_page(title: str, body: str = "", links: tuple[str, ...] = ()) -> str:
    """A documentation-looking HTML page with enough text to pass the crawler's filters."""
    anchors = "".join(f'<li><a href="{href}">{href}</a></li>' for href in links)
    filler = (
        f"This guide explains how the {title} API works, including request parameters, "
        "response fields and a usage example you can copy."
    )
    return (
        f"<html><head><title>{title}</title></head><body>"
        f"<nav><ul>{anchors}</ul></nav>"
        f"<main><h1>{title}</h1><p>{filler}</p><p>{body}</p>"
        f'<pre><code class="language-bash">curl https://api.example.com/{title.lower()}</code></pre>'
        "</main></body></html>"
    )


def doc_site(seed: str, *titles: str) -> dict[str, str]:
    """A seed page linking to one documentation page per title."""
    base = seed.rstrip("/")
    pages = {seed: doc_page("Home", links=tuple(f"/{t.lower()}" for t in titles))}
    pages.update({f"{base}/{t.lower()}": doc_page(t) for t in titles})
    return pages


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Isolated cwd and data dir for CLI runs. Returns the data dir."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("APIDOCS_DATA_DIR", str(data_dir))
    monkeypatch.delenv("APIDOCS_EMBEDDING_MODEL", raising=False)
    monkeypatch.chdir(tmp_path)
    (tmp_path / "apidocs.yaml").write_text(
        "crawl:\n  delay: 0\n  workers: 1\n"
        f"embedding:\n  dimensions: {DIMS}\n  batch_delay: 0\n"
    )
    return data_dir


@contextmanager
def fake_services(pages: dict[str, str], embedder: FakeEmbedder | None = None):
    """Swap the CLI's fetcher and embedding client for fakes."""
    fetcher = FakeFetcher(pages)
    with (
        patch("apidocs.cli.context.EmbeddingClient", return_value=embedder or FakeEmbedder()),
        patch("apidocs.cli.context.PageFetcher", return_value=fetcher),
    ):
        yield fetcher
