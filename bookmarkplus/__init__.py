"""bookmarkplus: personal bookmark organizer core.

Bookmarks live in folders, carry tags, get a favicon and an OpenGraph preview
when created, and the whole dataset can be exported to and imported from a
single JSON document.
"""

from pathlib import Path


def _read_version() -> str:
    p = Path(__file__).resolve().parents[1] / "VERSION"
    try:
        return p.read_text(encoding="utf-8").strip()
    except Exception:
        # Installed without the source tree next to it.
        return "1.0.0"


__version__ = _read_version()

# Public API; imported after __version__ because transfer.py reads it.
from .errors import (  # noqa: E402
    BookmarkPlusError,
    DuplicateURLError,
    ImportDataError,
    UnknownFolderError,
    ValidationError,
    VersionMismatchError,
)
from .manager import BookmarkManager  # noqa: E402
from .model import Bookmark, Folder, ImportOptions, ImportResult, OpenGraph  # noqa: E402
from .storage import MemoryStore, SqliteStore  # noqa: E402

__all__ = [
    "__version__",
    "Bookmark",
    "BookmarkManager",
    "BookmarkPlusError",
    "DuplicateURLError",
    "Folder",
    "ImportDataError",
    "ImportOptions",
    "ImportResult",
    "MemoryStore",
    "OpenGraph",
    "SqliteStore",
    "UnknownFolderError",
    "ValidationError",
    "VersionMismatchError",
]
