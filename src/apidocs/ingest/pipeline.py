"""Ingest pipeline: crawl → chunk → embed → upsert → library metadata.

Collaborators are passed in, never looked up globally, so the CLI builds
them once and tests swap in fakes.

Resumability: chunk ids hash the chunk's file path, heading path and content,
so a key already present in the index holds an identical chunk. Each run
embeds only the missing keys and upserts every embedding group as soon as it
completes. A cancelled or crashed run leaves valid vectors behind and writes no
metadata; running it again picks up where it stopped. A completed run prunes
keys that are no longer produced, which replaces the library's chunks
wholesale.
"""

from __future__ import annotations

import logging
import threading
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from apidocs.config import ApidocsConfig
from apidocs.db.repository import Repository
from apidocs.ingest.chunker import MarkdownChunker
from apidocs.ingest.crawler import Crawler
from apidocs.ingest.embeddings import EmbeddingBatch, EmbeddingClient
from apidocs.library.paths import (
    create_index_name,
    create_library_id,
    default_library_name,
    parse_website_url,
)
from apidocs.library.store import LibraryStore
from apidocs.models import Chunk, DocFile, LibraryMetadata, VectorData, VectorMetadata

logger = logging.getLogger(__name__)

_DEFAULT_SYNC_PAGES = 500


class LibraryExistsError(RuntimeError):
    """Raised by ``add`` when the library is already indexed and force is off."""


@dataclass
class IngestReport:
    """What one add/sync run did."""

    library_id: str
    index_name: str
    library: LibraryMetadata | None = None
    pages: int = 0
    chunks: int = 0
    embedded: int = 0
    reused: int = 0
    failed: int = 0
    pruned: int = 0
    crawl_errors: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def complete(self) -> bool:
        return self.library is not None and not self.cancelled


class IngestPipeline:
    """Turn a documentation website into a queryable library.

    Args:
        crawler: Crawler used for page discovery and extraction.
        chunker: Markdown chunker.
        embedder: Embedding client (``embed_many`` and ``dimensions``).
        repo: Vector index client.
        store: Library metadata store.
        config: Loaded configuration (crawl defaults).
        on_progress: Called as ``(stage, done, total)`` while embedding.
    """

    def __init__(
        self,
        *,
        crawler: Crawler,
        chunker: MarkdownChunker,
        embedder: EmbeddingClient,
        repo: Repository,
        store: LibraryStore,
        config: ApidocsConfig | None = None,
        on_progress: Callable[[str, int, int], None] | None = None,
    ) -> None:
        self._crawler = crawler
        self._chunker = chunker
        self._embedder = embedder
        self._repo = repo
        self._store = store
        self._config = config or ApidocsConfig()
        self._on_progress = on_progress
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop between crawl pages / embedding groups. No metadata is written."""
        self._cancel.set()
        self._crawler.cancel()

    def add(
        self,
        seed_url: str,
        name: str | None = None,
        max_pages: int | None = None,
        force: bool = False,
    ) -> IngestReport:
        """Ingest the site at *seed_url* as a new library.

        Raises:
            InvalidUrlError: If *seed_url* is not an http(s) URL.
            LibraryExistsError: If the library exists and *force* is False.
            VectorIndexError: If the index cannot be created or written.
        """
        parse_website_url(seed_url)
        library_id = create_library_id(seed_url, name)
        previous = self._store.get(library_id)
        if previous is not None and not force:
            raise LibraryExistsError(
                f"Library '{previous.name}' is already indexed. "
                "Use 'apidocs sync' to update it or --force to re-ingest."
            )

        return self._run(
            library_id=library_id,
            name=name or default_library_name(seed_url),
            seed_url=seed_url,
            index_name=create_index_name(library_id),
            max_pages=max_pages or self._config.crawl.max_pages,
            previous=previous,
        )

    def sync(self, library: LibraryMetadata | str, max_pages: int | None = None) -> IngestReport:
        """Re-crawl a library from its stored URL and replace its chunks.

        Raises:
            LibraryNotFoundError: If *library* is a name that matches nothing.
        """
        metadata = library if isinstance(library, LibraryMetadata) else self._store.require(library)
        pages = max_pages or metadata.page_count * 2 or _DEFAULT_SYNC_PAGES
        return self._run(
            library_id=metadata.id,
            name=metadata.name,
            seed_url=metadata.docs_url or metadata.website_url,
            index_name=metadata.index_name,
            max_pages=pages,
            previous=metadata,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _run(
        self,
        *,
        library_id: str,
        name: str,
        seed_url: str,
        index_name: str,
        max_pages: int,
        previous: LibraryMetadata | None,
    ) -> IngestReport:
        self._cancel.clear()
        report = IngestReport(library_id=library_id, index_name=index_name)

        logger.info("Crawling %s (max %d pages)", seed_url, max_pages)
        crawl = self._crawler.crawl(seed_url, max_pages)
        report.pages = crawl.total_pages
        report.crawl_errors = list(crawl.errors)
        if self._cancel.is_set() or self._crawler.cancelled:
            report.cancelled = True
            return report
        if not crawl.pages:
            logger.warning("No documentation pages found at %s", seed_url)
            return report

        self._store.save_pages(library_id, crawl.pages)
        docs = [
            DocFile(path=page.path or urllib.parse.urlsplit(page.url).path, content=page.content)
            for page in crawl.pages
        ]
        chunks = self._chunker.chunk(docs)
        report.chunks = len(chunks)
        if not chunks:
            logger.warning("No chunks produced from %d pages", len(crawl.pages))
            return report

        self._repo.create_index(index_name, self._embedder.dimensions)
        existing = set(self._repo.list_keys(index_name))
        pending = [i for i, chunk in enumerate(chunks) if chunk.id not in existing]
        report.reused = len(chunks) - len(pending)

        batch = self._embed_and_upsert(library_id, index_name, chunks, pending)
        report.embedded = len(batch.vectors)
        report.failed = len(batch.failures)
        if batch.cancelled:
            report.cancelled = True
            return report

        current = {chunk.id for chunk in chunks}
        stale = existing - current
        if stale:
            report.pruned = self._repo.delete_vectors(index_name, stale)

        metadata = LibraryMetadata(
            id=library_id,
            name=name,
            website_url=previous.website_url if previous else seed_url,
            domain=parse_website_url(seed_url).domain,
            indexed_at=datetime.now(timezone.utc).isoformat(),
            chunk_count=len(chunks) - report.failed,
            page_count=len(crawl.pages),
            index_name=index_name,
            docs_url=previous.docs_url if previous else None,
            crawled_urls=[page.url for page in crawl.pages],
        )
        self._store.save(metadata)
        self._store.save_chunks(library_id, chunks)
        if previous is not None and previous.index_name != index_name:
            self._repo.delete_index(previous.index_name)

        report.library = metadata
        logger.info(
            "Indexed %s: %d pages, %d chunks (%d embedded, %d reused, %d failed, %d pruned)",
            library_id,
            report.pages,
            report.chunks,
            report.embedded,
            report.reused,
            report.failed,
            report.pruned,
        )
        return report

    def _embed_and_upsert(
        self,
        library_id: str,
        index_name: str,
        chunks: list[Chunk],
        pending: list[int],
    ) -> EmbeddingBatch:
        version = date.today().isoformat()

        def upsert_group(batch: EmbeddingBatch, indices: range) -> None:
            group = [
                _vector_for(chunks[pending[i]], pending[i], batch.vectors[i], library_id, version)
                for i in indices
                if i in batch.vectors
            ]
            self._repo.upsert(index_name, group)
            if self._on_progress is not None:
                self._on_progress("embedding", indices.stop, len(pending))

        if self._on_progress is not None:
            self._on_progress("embedding", 0, len(pending))
        return self._embedder.embed_many(
            [chunks[i].content for i in pending],
            on_progress=upsert_group,
            cancel=self._cancel,
        )


def _vector_for(
    chunk: Chunk, chunk_index: int, data: list[float], library_id: str, version: str
) -> VectorData:
    return VectorData(
        key=chunk.id,
        data=data,
        metadata=VectorMetadata(
            library_id=library_id,
            version=version,
            file_path=chunk.file_path,
            chunk_index=chunk_index,
            title=chunk.title,
            type=chunk.type,
            content=chunk.content,
        ),
    )
