"""JSON-file persistence for library metadata and crawl/chunk caches.

Layout under ``<data_dir>/libraries/<library_id>/``::

    metadata.json          LibraryMetadata
    cache/pages-<n>.json   CrawledPage batches of 50
    cache/chunks-<n>.json  Chunk batches of 100
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
from pathlib import Path
from typing import Any

from apidocs.library.paths import sanitize_id
from apidocs.models import Chunk, CrawledPage, LibraryMetadata

logger = logging.getLogger(__name__)

_PAGE_BATCH = 50
_CHUNK_BATCH = 100
_BATCH_FILE_RE = re.compile(r"^(pages|chunks)-(\d+)\.json$")


class LibraryNotFoundError(LookupError):
    """Raised when no indexed library matches a name or id."""


class LibraryStore:
    """Read and write per-library JSON files under *libraries_dir*."""

    def __init__(self, libraries_dir: Path | str) -> None:
        self.root = Path(libraries_dir)

    def library_dir(self, library_id: str) -> Path:
        return self.root / sanitize_id(library_id)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def save(self, metadata: LibraryMetadata) -> Path:
        path = self.library_dir(metadata.id) / "metadata.json"
        _write_json(path, metadata.to_dict())
        return path

    def get(self, library_id: str) -> LibraryMetadata | None:
        path = self.library_dir(library_id) / "metadata.json"
        if not path.exists():
            return None
        try:
            return LibraryMetadata.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring unreadable metadata %s: %s", path, exc)
            return None

    def list(self) -> list[LibraryMetadata]:
        """All libraries with readable metadata, sorted by id."""
        if not self.root.is_dir():
            return []
        libraries = []
        for child in sorted(self.root.iterdir()):
            if child.is_dir():
                metadata = self.get(child.name)
                if metadata is not None:
                    libraries.append(metadata)
        return libraries

    def find(self, name: str) -> LibraryMetadata | None:
        """Exact id/name match first (case-insensitive), then partial on name, domain, id."""
        libraries = self.list()
        needle = name.lower()
        for lib in libraries:
            if needle in (lib.id.lower(), lib.name.lower()):
                return lib
        for lib in libraries:
            if needle in lib.name.lower() or needle in lib.domain.lower() or needle in lib.id.lower():
                return lib
        return None

    def require(self, name: str) -> LibraryMetadata:
        metadata = self.find(name)
        if metadata is None:
            raise LibraryNotFoundError(f"Library not found: {name}")
        return metadata

    def delete(self, library_id: str) -> bool:
        target = self.library_dir(library_id)
        if not target.exists():
            return False
        shutil.rmtree(target)
        return True

    # ------------------------------------------------------------------
    # Caches
    # ------------------------------------------------------------------

    def save_pages(self, library_id: str, pages: list[CrawledPage]) -> None:
        self._save_batches(library_id, "pages", [p.to_dict() for p in pages], _PAGE_BATCH)

    def load_pages(self, library_id: str) -> list[CrawledPage]:
        return [CrawledPage.from_dict(d) for d in self._load_batches(library_id, "pages")]

    def save_chunks(self, library_id: str, chunks: list[Chunk]) -> None:
        self._save_batches(library_id, "chunks", [c.to_dict() for c in chunks], _CHUNK_BATCH)

    def load_chunks(self, library_id: str) -> list[Chunk]:
        return [Chunk.from_dict(d) for d in self._load_batches(library_id, "chunks")]

    def _save_batches(
        self, library_id: str, kind: str, items: list[dict[str, Any]], size: int
    ) -> None:
        cache = self.library_dir(library_id) / "cache"
        cache.mkdir(parents=True, exist_ok=True)
        for old in self._batch_files(cache, kind):
            old.unlink()
        for n, start in enumerate(range(0, len(items), size)):
            _write_json(cache / f"{kind}-{n}.json", items[start : start + size])

    def _load_batches(self, library_id: str, kind: str) -> list[dict[str, Any]]:
        cache = self.library_dir(library_id) / "cache"
        if not cache.is_dir():
            return []
        items: list[dict[str, Any]] = []
        for path in self._batch_files(cache, kind):
            items.extend(json.loads(path.read_text(encoding="utf-8")))
        return items

    @staticmethod
    def _batch_files(cache: Path, kind: str) -> list[Path]:
        found = []
        for path in cache.iterdir():
            match = _BATCH_FILE_RE.match(path.name)
            if match and match.group(1) == kind:
                found.append((int(match.group(2)), path))
        return [path for _, path in sorted(found)]


def _write_json(path: Path, data: Any) -> None:
    """Write *data* as indented JSON via a temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp, path)
