"""Library identity and on-disk metadata."""

from apidocs.library.paths import create_index_name, create_library_id
from apidocs.library.store import LibraryNotFoundError, LibraryStore

__all__ = ["LibraryNotFoundError", "LibraryStore", "create_index_name", "create_library_id"]
