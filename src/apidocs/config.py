"""apidocs configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (APIDOCS_EMBEDDING_MODEL, APIDOCS_DATA_DIR)
  3. Per-project apidocs.yaml  (current working directory)
  4. Global ~/.apidocs/config.yaml  (defaults only, no API keys)
  5. Hardcoded defaults

API keys are never read from config files; the embedding provider key comes
from the environment (e.g. OPENAI_API_KEY).
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_DEFAULT_DATA_DIR: Path = Path.home() / ".apidocs"
_GLOBAL_CONFIG_PATH: Path = _DEFAULT_DATA_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "apidocs.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Leaves max_tokens, top_k alone.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "crawl", "chunker", "retrieval", "storage"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (apidocs.yaml: embedding:).

    Attributes:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Vector length produced by *model*.
        concurrency: Concurrent requests per embedding group.
        batch_delay: Seconds to sleep between embedding groups.
        num_retries: LiteLLM retries per request on transient errors.
    """

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    concurrency: int = 5
    batch_delay: float = 1.0
    num_retries: int = 3


@dataclass
class CrawlCfg:
    """Crawler configuration (apidocs.yaml: crawl:)."""

    max_pages: int = 500
    workers: int = 4
    delay: float = 0.1
    timeout: int = 30
    block_private: bool = True


@dataclass
class ChunkerCfg:
    """Markdown chunker configuration (apidocs.yaml: chunker:)."""

    max_tokens: int = 500


@dataclass
class RetrievalCfg:
    """Retrieval assembler configuration (apidocs.yaml: retrieval:)."""

    top_k: int = 10
    max_tokens: int = 8_000


@dataclass
class StorageCfg:
    """Where library metadata and the vector database live."""

    data_dir: Path = field(default_factory=lambda: _DEFAULT_DATA_DIR)

    @property
    def libraries_dir(self) -> Path:
        return self.data_dir / "libraries"

    @property
    def vectors_db(self) -> Path:
        return self.data_dir / "vectors.db"


@dataclass
class ApidocsConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    crawl: CrawlCfg = field(default_factory=CrawlCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}', ignored.",
                UserWarning,
                stacklevel=4,
            )


def _positive(value: Any, name: str) -> int:
    number = int(value)
    if number < 1:
        raise ConfigError(f"{name} must be >= 1, got {number}")
    return number


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> ApidocsConfig:
    """Build an *ApidocsConfig* from a merged raw YAML dict."""
    cfg = ApidocsConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=_positive(e.get("dimensions", cfg.embedding.dimensions), "embedding.dimensions"),
            concurrency=_positive(e.get("concurrency", cfg.embedding.concurrency), "embedding.concurrency"),
            batch_delay=float(e.get("batch_delay", cfg.embedding.batch_delay)),
            num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
        )

    if "crawl" in data:
        c = data["crawl"] or {}
        cfg.crawl = CrawlCfg(
            max_pages=_positive(c.get("max_pages", cfg.crawl.max_pages), "crawl.max_pages"),
            workers=_positive(c.get("workers", cfg.crawl.workers), "crawl.workers"),
            delay=float(c.get("delay", cfg.crawl.delay)),
            timeout=_positive(c.get("timeout", cfg.crawl.timeout), "crawl.timeout"),
            block_private=bool(c.get("block_private", cfg.crawl.block_private)),
        )

    if "chunker" in data:
        ch = data["chunker"] or {}
        cfg.chunker = ChunkerCfg(
            max_tokens=_positive(ch.get("max_tokens", cfg.chunker.max_tokens), "chunker.max_tokens"),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            top_k=_positive(r.get("top_k", cfg.retrieval.top_k), "retrieval.top_k"),
            max_tokens=_positive(r.get("max_tokens", cfg.retrieval.max_tokens), "retrieval.max_tokens"),
        )

    if "storage" in data:
        s = data["storage"] or {}
        if s.get("data_dir"):
            cfg.storage = StorageCfg(data_dir=Path(str(s["data_dir"])).expanduser())

    return cfg


def _apply_env_overrides(cfg: ApidocsConfig) -> ApidocsConfig:
    """Apply APIDOCS_* environment variable overrides."""
    if model := os.environ.get("APIDOCS_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if data_dir := os.environ.get("APIDOCS_DATA_DIR"):
        cfg.storage.data_dir = Path(data_dir).expanduser()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> ApidocsConfig:
    """Load and return a merged *ApidocsConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *apidocs.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If any config layer contains API-key-like fields or an
            out-of-range value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    for path in (global_path, search_dir / _PROJECT_CONFIG_NAME):
        if not path.exists():
            continue
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Config '{path}' must be a YAML mapping.")
        _check_no_api_keys(raw, path)
        _warn_unknown_keys(raw, path)
        merged = _deep_merge(merged, raw)

    cfg = _cfg_from_dict(merged)
    return _apply_env_overrides(cfg)
