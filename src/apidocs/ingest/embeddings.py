"""LiteLLM embedding client with key validation and rate-limited batching.

All embedding calls on the ingest and query paths route through
``EmbeddingClient``. A client is constructed once at the top level and passed
to the pipeline and the retrieval assembler, so tests can substitute a fake.

LiteLLM's built-in retry handles transient errors (``num_retries``). A failure
that survives the retries is raised as ``EmbeddingError``; it is never
replaced by a zero or placeholder vector.
"""

from __future__ import annotations

import logging
import math
import os
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import litellm

from apidocs.config import EmbeddingCfg

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True

# Provider → env var holding its API key. None = no key required (local).
_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,
}


class MissingCredentialsError(EnvironmentError):
    """Raised when the embedding provider's API key is not set."""


class EmbeddingError(RuntimeError):
    """Raised when a text could not be embedded into a usable vector."""


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        MissingCredentialsError: If the required key is missing.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)
    if env_var is None:
        return
    if not os.getenv(env_var):
        raise MissingCredentialsError(
            f"API key not found for embedding provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


@dataclass
class EmbeddingBatch:
    """Outcome of ``embed_many``: vectors and failures keyed by input index."""

    vectors: dict[int, list[float]] = field(default_factory=dict)
    failures: dict[int, str] = field(default_factory=dict)
    cancelled: bool = False


class EmbeddingClient:
    """Turn text into fixed-length vectors through ``litellm.embedding()``.

    Args:
        config: Embedding section of the loaded configuration.
        validate_key: Check the provider key at construction (default True).
    """

    def __init__(self, config: EmbeddingCfg | None = None, *, validate_key: bool = True) -> None:
        self.config = config or EmbeddingCfg()
        if validate_key:
            validate_api_key(self.config.model)

    @property
    def dimensions(self) -> int:
        return self.config.dimensions

    def embed(self, text: str) -> list[float]:
        """Embed one text.

        Raises:
            EmbeddingError: On API failure after retries, or when the vector is
                empty, has the wrong length or contains non-finite values.
        """
        try:
            response = litellm.embedding(
                model=self.config.model,
                input=[text],
                num_retries=self.config.num_retries,
            )
            vector = [float(x) for x in response.data[0]["embedding"]]
        except Exception as exc:  # litellm raises provider-specific subclasses
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        if not vector:
            raise EmbeddingError("Embedding API returned an empty vector.")
        if len(vector) != self.config.dimensions:
            raise EmbeddingError(
                f"Embedding has {len(vector)} dimensions, expected {self.config.dimensions}. "
                "Check embedding.dimensions in apidocs.yaml."
            )
        if not all(math.isfinite(x) for x in vector):
            raise EmbeddingError("Embedding contains non-finite values.")
        return vector

    def embed_many(
        self,
        texts: Sequence[str],
        on_progress: Callable[[EmbeddingBatch, range], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> EmbeddingBatch:
        """Embed *texts* in groups of ``concurrency`` concurrent requests.

        Groups are separated by ``batch_delay`` seconds. *on_progress* is
        called after each group with the cumulative batch and the range of
        input indices in that group. Setting *cancel* stops before the next group.
        """
        batch = EmbeddingBatch()
        size = max(1, self.config.concurrency)

        with ThreadPoolExecutor(max_workers=size, thread_name_prefix="embed") as pool:
            for start in range(0, len(texts), size):
                if cancel is not None and cancel.is_set():
                    batch.cancelled = True
                    break
                if start > 0 and self.config.batch_delay > 0:
                    time.sleep(self.config.batch_delay)

                indices = range(start, min(start + size, len(texts)))
                futures = {i: pool.submit(self.embed, texts[i]) for i in indices}
                for i, future in futures.items():
                    try:
                        batch.vectors[i] = future.result()
                    except EmbeddingError as exc:
                        logger.warning("Chunk %d not embedded: %s", i, exc)
                        batch.failures[i] = str(exc)

                logger.debug(
                    "Embedded group starting at %d (%d/%d done)",
                    start,
                    len(batch.vectors) + len(batch.failures),
                    len(texts),
                )
                if on_progress is not None:
                    on_progress(batch, indices)

        return batch
