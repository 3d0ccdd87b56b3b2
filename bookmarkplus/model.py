from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

ROOT_FOLDER_ID = "root"
ROOT_FOLDER_NAME = "/"


@dataclass
class OpenGraph:
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    site_name: Optional[str] = None
    type: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in (
            ("title", self.title),
            ("description", self.description),
            ("image", self.image),
            ("siteName", self.site_name),
            ("type", self.type),
            ("url", self.url),
        ):
            if value:
                out[key] = value
        return out

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "OpenGraph":
        return OpenGraph(
            title=_opt_str(data.get("title")),
            description=_opt_str(data.get("description")),
            image=_opt_str(data.get("image")),
            site_name=_opt_str(data.get("siteName", data.get("site_name"))),
            type=_opt_str(data.get("type")),
            url=_opt_str(data.get("url")),
        )


@dataclass
class Bookmark:
    id: str
    title: str
    url: str
    folder_id: str = ROOT_FOLDER_ID
    tags: List[str] = field(default_factory=list)
    favicon: str = ""
    open_graph: Optional[OpenGraph] = None
    date_added: str = ""
    date_updated: str = ""
    visit_count: int = 0
    kind: Literal["bookmark"] = "bookmark"

    @property
    def has_rich_preview(self) -> bool:
        og = self.open_graph
        return og is not None and bool(og.image or og.description)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "folderId": self.folder_id,
            "tags": list(self.tags),
            "favicon": self.favicon,
            "dateAdded": self.date_added,
            "dateUpdated": self.date_updated,
            "visitCount": self.visit_count,
            "hasRichPreview": self.has_rich_preview,
            "type": self.kind,
        }
        if self.open_graph is not None:
            out["openGraph"] = self.open_graph.to_dict()
        return out

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Bookmark":
        og_raw = data.get("openGraph")
        tags_raw = data.get("tags") if isinstance(data.get("tags"), list) else []
        try:
            visits = max(0, int(data.get("visitCount") or 0))
        except (TypeError, ValueError):
            visits = 0
        return Bookmark(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            url=str(data["url"]),
            folder_id=str(data.get("folderId") or ROOT_FOLDER_ID),
            tags=unique_tags(str(t) for t in tags_raw if t is not None),
            favicon=str(data.get("favicon") or ""),
            open_graph=OpenGraph.from_dict(og_raw) if isinstance(og_raw, dict) else None,
            date_added=str(data.get("dateAdded") or ""),
            date_updated=str(data.get("dateUpdated") or data.get("dateAdded") or ""),
            visit_count=visits,
        )


@dataclass
class Folder:
    id: str
    name: str
    parent_id: Optional[str] = ROOT_FOLDER_ID
    children: List[str] = field(default_factory=list)
    kind: Literal["folder"] = "folder"

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_FOLDER_ID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "parentId": self.parent_id,
            "children": list(self.children),
            "type": self.kind,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Folder":
        fid = str(data["id"])
        parent = data.get("parentId")
        if fid == ROOT_FOLDER_ID:
            parent = None
        elif not parent:
            # Only the root may be parentless.
            parent = ROOT_FOLDER_ID
        return Folder(
            id=fid,
            name=str(data["name"]),
            parent_id=str(parent) if parent else None,
            children=[str(c) for c in (data.get("children") or [])],
        )


BookmarkItem = Union[Bookmark, Folder]


def item_from_dict(data: Dict[str, Any]) -> BookmarkItem:
    kind = data.get("type", data.get("kind"))
    if kind == "bookmark":
        return Bookmark.from_dict(data)
    if kind == "folder":
        return Folder.from_dict(data)
    raise ValueError(f"unknown item kind: {kind!r}")


def make_root_folder() -> Folder:
    return Folder(id=ROOT_FOLDER_ID, name=ROOT_FOLDER_NAME, parent_id=None)


class MatchType(str, Enum):
    TITLE = "title"
    TAG = "tag"
    DESCRIPTION = "description"
    URL = "url"

    @property
    def priority(self) -> int:
        return _MATCH_PRIORITY[self]


_MATCH_PRIORITY = {
    MatchType.TITLE: 0,
    MatchType.TAG: 1,
    MatchType.DESCRIPTION: 2,
    MatchType.URL: 3,
}


@dataclass
class SearchResult:
    bookmark: Bookmark
    match_type: MatchType
    matched_text: str


@dataclass
class FolderTree:
    folder: Folder
    bookmarks: List[Bookmark] = field(default_factory=list)
    child_folders: List["FolderTree"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out = self.folder.to_dict()
        out["bookmarks"] = [b.to_dict() for b in self.bookmarks]
        out["childFolders"] = [c.to_dict() for c in self.child_folders]
        return out


@dataclass
class ImportOptions:
    merge: bool = False
    validate_version: bool = True


@dataclass
class ImportCounts:
    bookmarks: int = 0
    folders: int = 0
    tags: int = 0


@dataclass
class ImportResult:
    success: bool
    imported: Optional[ImportCounts] = None
    version: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ExportData:
    bookmarks: List[Bookmark]
    folders: List[Folder]
    tags: List[str]
    export_date: str
    version: str
    app_version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bookmarks": [b.to_dict() for b in self.bookmarks],
            "folders": [f.to_dict() for f in self.folders],
            "tags": list(self.tags),
            "exportDate": self.export_date,
            "version": self.version,
            "appVersion": self.app_version,
        }


def unique_tags(tags) -> List[str]:
    """Strip, drop blanks and duplicates; first occurrence wins."""
    out: List[str] = []
    seen = set()
    for raw in tags or []:
        tag = (raw or "").strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        out.append(tag)
    return out


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """UTC timestamp in the browser's toISOString() shape: 2024-05-01T12:00:00.000Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
