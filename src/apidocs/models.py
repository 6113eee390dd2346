"""Domain models shared by the ingestion and query paths."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

# Token estimates use a fixed 4-characters-per-token ratio everywhere
# (chunk sizing, retrieval budget). No tokenizer dependency.
CHARS_PER_TOKEN = 4

ChunkType = Literal["code", "text"]


def estimate_tokens(text: str) -> int:
    """Approximate token count: ceil(len / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass(frozen=True)
class CrawledPage:
    url: str
    path: str
    title: str
    content: str  # markdown
    html: str
    crawled_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CrawledPage:
        return cls(
            url=data["url"],
            path=data["path"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            html=data.get("html", ""),
            crawled_at=data.get("crawled_at", ""),
        )


@dataclass(frozen=True)
class DocFile:
    path: str
    content: str


@dataclass
class Chunk:
    """A bounded, independently embeddable unit of documentation text.

    ``token_count`` is derived from ``content`` on every access, so it can
    never disagree with the text it describes.
    """

    id: str
    content: str
    title: str
    type: ChunkType
    file_path: str
    heading_hierarchy: list[str] = field(default_factory=list)
    code_language: str | None = None

    @property
    def token_count(self) -> int:
        return estimate_tokens(self.content)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["token_count"] = self.token_count
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Chunk:
        return cls(
            id=data["id"],
            content=data["content"],
            title=data.get("title", ""),
            type=data.get("type", "text"),
            file_path=data.get("file_path", ""),
            heading_hierarchy=list(data.get("heading_hierarchy", [])),
            code_language=data.get("code_language"),
        )


@dataclass
class VectorMetadata:
    """Denormalised chunk identity stored next to each vector."""

    library_id: str
    version: str
    file_path: str
    chunk_index: int
    title: str
    type: ChunkType
    content: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VectorMetadata:
        return cls(
            library_id=data.get("library_id", ""),
            version=data.get("version", ""),
            file_path=data.get("file_path", ""),
            chunk_index=int(data.get("chunk_index", 0)),
            title=data.get("title", ""),
            type=data.get("type", "text"),
            content=data.get("content", ""),
        )


@dataclass
class VectorData:
    key: str
    data: list[float]
    metadata: VectorMetadata


@dataclass
class SearchResult:
    key: str
    score: float  # cosine similarity, higher = more relevant
    metadata: VectorMetadata


@dataclass
class IndexInfo:
    name: str
    dimensions: int
    vector_count: int
    created_at: str | None = None


@dataclass
class LibraryMetadata:
    """Durable record of what was ingested from which website."""

    id: str
    name: str
    website_url: str
    domain: str
    indexed_at: str
    chunk_count: int
    page_count: int
    index_name: str
    docs_url: str | None = None
    crawled_urls: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LibraryMetadata:
        return cls(
            id=data["id"],
            name=data["name"],
            website_url=data["website_url"],
            domain=data.get("domain", ""),
            indexed_at=data.get("indexed_at", ""),
            chunk_count=int(data.get("chunk_count", 0)),
            page_count=int(data.get("page_count", 0)),
            index_name=data["index_name"],
            docs_url=data.get("docs_url"),
            crawled_urls=data.get("crawled_urls"),
        )


@dataclass
class QueryResult:
    content: str = ""
    sources: list[str] = field(default_factory=list)
    chunks: list[SearchResult] = field(default_factory=list)


CrawlEventType = Literal["navigating", "extracted", "skipped", "error", "complete"]


@dataclass(frozen=True)
class CrawlEvent:
    type: CrawlEventType
    url: str | None = None
    title: str | None = None
    page_count: int | None = None
    total_pages: int | None = None
    error: str | None = None
    reason: str | None = None


@dataclass
class CrawlResult:
    pages: list[CrawledPage] = field(default_factory=list)
    total_pages: int = 0
    duration: float = 0.0  # seconds
    errors: list[str] = field(default_factory=list)
