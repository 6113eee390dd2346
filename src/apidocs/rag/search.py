"""Semantic search: embed, retrieve, dedup, group, and assemble within a budget.

Pipeline (``semantic_search``):
  1. Embed the question with the same EmbeddingClient used at ingest.
  2. Over-fetch ``top_k * 2`` neighbours from the vector index.
  3. Deduplicate on the first 100 characters of stored content; the first
     result in index order wins.
  4. Group by source file (first-appearance order), sort each group by
     descending score.
  5. Append formatted chunks while the whole answer, ``Sources:`` footer
     included, stays within ``max_tokens * CHARS_PER_TOKEN`` characters. Stop
     at the first chunk that does not fit; if it is the very first chunk,
     truncate it instead so a non-empty candidate set never yields "".
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from apidocs.db.repository import Repository, VectorIndexError
from apidocs.library.store import LibraryNotFoundError, LibraryStore
from apidocs.models import CHARS_PER_TOKEN, LibraryMetadata, QueryResult, SearchResult

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 10
DEFAULT_MAX_TOKENS = 8_000

_DEDUP_PREFIX = 100
_TRUNCATION_RESERVE = 50
_TRUNCATION_MARKER = "\n\n...(truncated)"


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]: ...


def semantic_search(
    index_name: str,
    query: str,
    *,
    embedder: Embedder,
    repo: Repository,
    top_k: int = DEFAULT_TOP_K,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> QueryResult:
    """Answer *query* from *index_name* as budgeted Markdown with sources.

    Raises:
        EmbeddingError: If the question cannot be embedded.
        VectorIndexError: If the index is missing or unreadable.
        DimensionMismatchError: If the query vector does not fit the index.
    """
    vector = embedder.embed(query)
    candidates = repo.query(index_name, vector, top_k * 2)
    unique = deduplicate(candidates)
    logger.debug(
        "Query against %s: %d candidates, %d after dedup", index_name, len(candidates), len(unique)
    )
    if not unique:
        return QueryResult()
    return assemble(unique, max_tokens * CHARS_PER_TOKEN)


def search_as_json(
    index_name: str,
    query: str,
    *,
    embedder: Embedder,
    repo: Repository,
    top_k: int = DEFAULT_TOP_K,
) -> dict[str, Any]:
    """Structured variant: the top *top_k* deduplicated results by score."""
    vector = embedder.embed(query)
    unique = deduplicate(repo.query(index_name, vector, top_k * 2))
    ranked = sorted(unique, key=lambda r: r.score, reverse=True)[:top_k]
    return {
        "query": query,
        "results": [
            {
                "title": r.metadata.title,
                "content": r.metadata.content,
                "file_path": r.metadata.file_path,
                "type": r.metadata.type,
                "score": r.score,
            }
            for r in ranked
        ],
        "total_results": len(ranked),
    }


def query_library(
    store: LibraryStore,
    library: str,
    question: str,
    *,
    embedder: Embedder,
    repo: Repository,
    tokens: int | None = None,
    top_k: int | None = None,
    as_json: bool = False,
) -> QueryResult | dict[str, Any]:
    """Resolve *library* by name or id and search its index.

    Raises:
        LibraryNotFoundError: If no library matches *library*.
        VectorIndexError: If the library's index no longer exists.
    """
    metadata: LibraryMetadata | None = store.find(library)
    if metadata is None:
        raise LibraryNotFoundError(f"Library not found: {library}")
    if not repo.index_exists(metadata.index_name):
        raise VectorIndexError(
            f"Index '{metadata.index_name}' for library '{metadata.name}' does not exist."
        )

    k = top_k or DEFAULT_TOP_K
    if as_json:
        return search_as_json(metadata.index_name, question, embedder=embedder, repo=repo, top_k=k)
    return semantic_search(
        metadata.index_name,
        question,
        embedder=embedder,
        repo=repo,
        top_k=k,
        max_tokens=tokens or DEFAULT_MAX_TOKENS,
    )


# ------------------------------------------------------------------
# Assembly
# ------------------------------------------------------------------


def deduplicate(results: Sequence[SearchResult]) -> list[SearchResult]:
    """Drop results whose first 100 content characters were already seen."""
    seen: set[str] = set()
    unique: list[SearchResult] = []
    for result in results:
        prefix = result.metadata.content[:_DEDUP_PREFIX]
        if prefix in seen:
            continue
        seen.add(prefix)
        unique.append(result)
    return unique


def assemble(results: Sequence[SearchResult], max_chars: int) -> QueryResult:
    groups: dict[str, list[SearchResult]] = {}
    for result in results:
        groups.setdefault(result.metadata.file_path, []).append(result)

    parts: list[str] = []
    sources: list[str] = []
    included: list[SearchResult] = []
    body_len = 0
    full = False

    for file_path, group in groups.items():
        for result in sorted(group, key=lambda r: r.score, reverse=True):
            block = format_chunk(result)
            next_sources = sources if file_path in sources else [*sources, file_path]
            next_body = body_len + (2 if parts else 0) + len(block)
            if next_body + _footer_cost(next_sources) > max_chars:
                if not included:
                    room = max_chars - _footer_cost(next_sources) - _TRUNCATION_RESERVE
                    parts.append(block[: max(room, 0)] + _TRUNCATION_MARKER)
                    sources = next_sources
                    included.append(result)
                full = True
                break
            parts.append(block)
            body_len = next_body
            sources = next_sources
            included.append(result)
        if full:
            break

    content = "\n\n".join(parts)
    if sources:
        content = f"{content}\n\n{_footer(sources)}"
    return QueryResult(content=content.strip(), sources=sources, chunks=included)


def format_chunk(result: SearchResult) -> str:
    metadata = result.metadata
    if not metadata.title:
        return metadata.content
    heading = "###" if metadata.type == "code" else "##"
    return f"{heading} {metadata.title}\n\n{metadata.content}"


def _footer(sources: Sequence[str]) -> str:
    return "---\nSources:\n" + "\n".join(f"- {s}" for s in sources)


def _footer_cost(sources: Sequence[str]) -> int:
    return 2 + len(_footer(sources)) if sources else 0
