"""apidocs ingest path: crawler, extractor, chunker, embedding client."""

from apidocs.ingest.chunker import MarkdownChunker
from apidocs.ingest.crawler import Crawler, FetchError, InvalidUrlError, PageFetcher, SsrfError
from apidocs.ingest.embeddings import EmbeddingClient, EmbeddingError, MissingCredentialsError

__all__ = [
    "Crawler",
    "EmbeddingClient",
    "EmbeddingError",
    "FetchError",
    "InvalidUrlError",
    "MarkdownChunker",
    "MissingCredentialsError",
    "PageFetcher",
    "SsrfError",
]
