"""Export document construction and import validation.

The export document is the same camelCase JSON the store holds, wrapped
with ``exportDate``, the schema ``version`` and the ``appVersion`` that wrote
it. On import the document's major version is compared against
``SCHEMA_VERSION`` and the structure is checked before anything is applied.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from . import __version__
from .errors import ImportDataError, VersionMismatchError
from .model import Bookmark, ExportData, Folder, utc_now_iso

SCHEMA_VERSION = "1.0.0"


class Version(NamedTuple):
    major: int
    minor: int
    patch: int


@dataclass
class ImportDocument:
    """A validated import document. ``None`` means the key was absent."""

    bookmarks: Optional[List[Bookmark]] = None
    folders: Optional[List[Folder]] = None
    tags: Optional[List[str]] = None
    version: Optional[str] = None
    raw_counts: Dict[str, int] = field(default_factory=dict)


def parse_version(version: str) -> Version:
    parts = []
    for raw in str(version).split(".")[:3]:
        try:
            parts.append(int(raw))
        except ValueError:
            parts.append(0)
    while len(parts) < 3:
        parts.append(0)
    return Version(*parts)


def build_export(
    bookmarks: Sequence[Bookmark],
    folders: Sequence[Folder],
    tags: Sequence[str],
    *,
    now: Optional[datetime] = None,
) -> ExportData:
    return ExportData(
        bookmarks=list(bookmarks),
        folders=list(folders),
        tags=list(tags),
        export_date=utc_now_iso(now),
        version=SCHEMA_VERSION,
        app_version=__version__,
    )


def dump_export(data: ExportData, *, indent: int = 2) -> str:
    return json.dumps(data.to_dict(), ensure_ascii=False, indent=indent)


def export_filename(now: Optional[datetime] = None) -> str:
    return f"bookmark+-export-{utc_now_iso(now)[:10]}.json"


def load_import_document(text: str, *, validate_version: bool = True) -> ImportDocument:
    """Parse and validate ``text``. Raises ImportDataError (or VersionMismatchError)."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ImportDataError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ImportDataError("Invalid import data format: expected a JSON object")

    version = data.get("version")
    if validate_version and version:
        check_version(str(version))

    validate_import_data(data)

    try:
        return _build_document(data, version)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ImportDataError(f"Invalid import data: {e}") from e


def _build_document(data: Dict[str, Any], version: Any) -> ImportDocument:
    doc = ImportDocument(version=str(version) if version else None)
    if data.get("bookmarks") is not None:
        doc.bookmarks = [Bookmark.from_dict(b) for b in data["bookmarks"]]
        doc.raw_counts["bookmarks"] = len(doc.bookmarks)
    if data.get("folders") is not None:
        doc.folders = [Folder.from_dict(f) for f in data["folders"]]
        doc.raw_counts["folders"] = len(doc.folders)
    if data.get("tags") is not None:
        doc.tags = [str(t) for t in data["tags"]]
        doc.raw_counts["tags"] = len(doc.tags)
    return doc


def check_version(document_version: str, current_version: str = SCHEMA_VERSION) -> None:
    if parse_version(document_version).major > parse_version(current_version).major:
        raise VersionMismatchError(document_version, current_version)


def validate_import_data(data: Any) -> None:
    if not isinstance(data, dict):
        raise ImportDataError("Invalid import data format: expected a JSON object")

    bookmarks = data.get("bookmarks")
    if bookmarks is not None:
        if not isinstance(bookmarks, list):
            raise ImportDataError("Invalid import data format: 'bookmarks' must be a list")
        seen_ids = set()
        seen_urls = set()
        for i, b in enumerate(bookmarks):
            if not isinstance(b, dict):
                raise ImportDataError(f"Invalid bookmark at index {i}: expected an object")
            for key in ("id", "title", "url"):
                if not b.get(key):
                    raise ImportDataError(f"Invalid bookmark at index {i}: missing '{key}'")
            if b.get("tags") is not None and not isinstance(b["tags"], list):
                raise ImportDataError(f"Invalid bookmark at index {i}: 'tags' must be a list")
            if b.get("openGraph") is not None and not isinstance(b["openGraph"], dict):
                raise ImportDataError(f"Invalid bookmark at index {i}: 'openGraph' must be an object")
            if str(b["id"]) in seen_ids:
                raise ImportDataError(f"Duplicate bookmark id in import data: {b['id']}")
            if str(b["url"]) in seen_urls:
                raise ImportDataError(f"Duplicate bookmark URL in import data: {b['url']}")
            seen_ids.add(str(b["id"]))
            seen_urls.add(str(b["url"]))

    folders = data.get("folders")
    if folders is not None:
        if not isinstance(folders, list):
            raise ImportDataError("Invalid import data format: 'folders' must be a list")
        seen_ids = set()
        for i, f in enumerate(folders):
            if not isinstance(f, dict):
                raise ImportDataError(f"Invalid folder at index {i}: expected an object")
            for key in ("id", "name"):
                if not f.get(key):
                    raise ImportDataError(f"Invalid folder at index {i}: missing '{key}'")
            if f.get("children") is not None and not isinstance(f["children"], list):
                raise ImportDataError(f"Invalid folder at index {i}: 'children' must be a list")
            if str(f["id"]) in seen_ids:
                raise ImportDataError(f"Duplicate folder id in import data: {f['id']}")
            seen_ids.add(str(f["id"]))

    tags = data.get("tags")
    if tags is not None and not isinstance(tags, list):
        raise ImportDataError("Invalid import data format: 'tags' must be a list")
    if tags and not all(isinstance(t, str) for t in tags):
        raise ImportDataError("Invalid import data format: every tag must be a string")
