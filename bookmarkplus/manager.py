"""The bookmark core: owns bookmarks, folders and the tag registry.

One ``BookmarkManager`` is built per process and handed to whoever needs it.
Callers only ever receive copies of the canonical entities; every change goes
through a method here, which mutates memory and then persists the affected
keys.

Persistence is not atomic across keys. Creating a bookmark, for
example, writes ``bookmarks`` and then ``tags`` as two separate ``set`` calls;
if the second write fails the registry is stale until the next
``cleanup_orphan_tags()`` or ``init()``. Store write errors propagate to the
caller. Concurrent calls are not serialized: the last write of a key wins.
"""

from __future__ import annotations

import asyncio
import copy
import secrets
import string
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import Settings
from .errors import DuplicateURLError, ImportDataError, UnknownFolderError, ValidationError
from .favicon import FaviconResolver, placeholder_icon
from .fetch import HttpFetcher
from .log import get_logger
from .model import (
    ROOT_FOLDER_ID,
    Bookmark,
    ExportData,
    Folder,
    FolderTree,
    ImportCounts,
    ImportOptions,
    ImportResult,
    OpenGraph,
    SearchResult,
    make_root_folder,
    parse_iso,
    unique_tags,
    utc_now_iso,
)
from .opengraph import OpenGraphExtractor
from .search import global_search, search_by_tags, search_by_title
from .storage import KEY_BOOKMARKS, KEY_FOLDERS, KEY_TAGS, KeyValueStore
from .tabs import NullTabs, TabProvider
from .transfer import ImportDocument, build_export, dump_export, export_filename, load_import_document
from .tree import folder_hierarchy, folder_path, format_folder_path, orphaned_folders

log = get_logger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


class BookmarkManager:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        favicons: Optional[FaviconResolver] = None,
        opengraph: Optional[OpenGraphExtractor] = None,
        tabs: Optional[TabProvider] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.favicons = favicons
        self.opengraph = opengraph
        self.tabs = tabs or NullTabs()
        self.settings = settings or Settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._fetcher: Optional[HttpFetcher] = None

        self._bookmarks: List[Bookmark] = []
        self._folders: List[Folder] = [make_root_folder()]
        self._tags: Dict[str, None] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: KeyValueStore,
        *,
        tabs: Optional[TabProvider] = None,
    ) -> "BookmarkManager":
        """Wire a manager with live HTTP enrichment. Call ``aclose()`` when done."""
        tabs = tabs or NullTabs()
        fetcher = HttpFetcher(user_agent=settings.fetch_user_agent, max_bytes=settings.fetch_max_bytes)
        mgr = cls(
            store,
            favicons=FaviconResolver(
                fetcher,
                tabs=tabs,
                probe_timeout_s=settings.probe_timeout_s,
                use_services=settings.favicon_use_services,
            ),
            opengraph=OpenGraphExtractor(fetcher, timeout_s=settings.og_timeout_s),
            tabs=tabs,
            settings=settings,
        )
        mgr._fetcher = fetcher
        return mgr

    async def aclose(self) -> None:
        if self._fetcher is not None:
            await self._fetcher.aclose()
            self._fetcher = None

    # ------------------------------------------------------------------ load

    async def init(self) -> None:
        """Load state from the store. Read failures fall back to an empty, valid state."""
        bookmarks: List[Bookmark] = []
        folders: List[Folder] = []
        try:
            result = await self.store.get([KEY_BOOKMARKS, KEY_FOLDERS])
            bookmarks = _parse_entries(result.get(KEY_BOOKMARKS), Bookmark.from_dict, "bookmark")
            folders = _parse_entries(result.get(KEY_FOLDERS), Folder.from_dict, "folder")
        except Exception as e:
            log.warning("Error loading bookmarks and folders, starting empty: %s", e)

        stored_tags: List[str] = []
        try:
            result = await self.store.get([KEY_TAGS])
            raw = result.get(KEY_TAGS)
            if isinstance(raw, list):
                stored_tags = [str(t) for t in raw if t is not None]
        except Exception as e:
            log.warning("Error loading tags, rebuilding from bookmarks: %s", e)

        self._bookmarks = bookmarks
        self._folders = folders
        self._ensure_root()
        self._tags = {}
        for b in self._bookmarks:
            self._tags.update(dict.fromkeys(b.tags))
        self._tags.update(dict.fromkeys(unique_tags(stored_tags)))
        log.debug(
            "Loaded %d bookmarks, %d folders, %d tags.",
            len(self._bookmarks),
            len(self._folders),
            len(self._tags),
        )

    # ------------------------------------------------------------- bookmarks

    async def create_bookmark(
        self,
        title: str,
        url: str,
        folder_id: str = ROOT_FOLDER_ID,
        tags: Optional[Iterable[str]] = None,
    ) -> Bookmark:
        url = (url or "").strip()
        if not url:
            raise ValidationError("URL is required")
        title = (title or "").strip() or url
        tag_list = unique_tags(tags)
        self._ensure_unique_url(url)
        self._require_folder(folder_id)

        favicon, og = await asyncio.gather(self._resolve_favicon(url), self._extract_open_graph(url))

        # Another call may have added this URL or removed the folder while we were enriching.
        self._ensure_unique_url(url)
        self._require_folder(folder_id)

        now = self._now_iso()
        bookmark = Bookmark(
            id=self._new_id(),
            title=title,
            url=url,
            folder_id=folder_id,
            tags=tag_list,
            favicon=favicon,
            open_graph=og,
            date_added=now,
            date_updated=now,
            visit_count=0,
        )
        self._bookmarks.append(bookmark)
        self._tags.update(dict.fromkeys(tag_list))
        await self._save_bookmarks()
        await self._save_tags()
        log.info("Added bookmark %s (%s)", bookmark.id, url)
        return copy.deepcopy(bookmark)

    async def delete_bookmark(self, bookmark_id: str) -> bool:
        before = len(self._bookmarks)
        self._bookmarks = [b for b in self._bookmarks if b.id != bookmark_id]
        if len(self._bookmarks) == before:
            return False
        await self._save_bookmarks()
        await self._cleanup_tags()
        return True

    async def update_bookmark(
        self,
        bookmark_id: str,
        *,
        title: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        folder_id: Optional[str] = None,
    ) -> Optional[Bookmark]:
        b = self._find_bookmark(bookmark_id)
        if b is None:
            return None
        if title is not None and not title.strip():
            raise ValidationError("Title is required")
        if folder_id is not None:
            self._require_folder(folder_id)

        if title is not None:
            b.title = title.strip()
        if folder_id is not None:
            b.folder_id = folder_id
        if tags is not None:
            b.tags = unique_tags(tags)
        b.date_updated = self._now_iso()
        await self._save_bookmarks()
        if tags is not None:
            # Replacing the list can both add tags and orphan old ones.
            self._recompute_tags()
            await self._save_tags()
        return copy.deepcopy(b)

    async def move_bookmark(self, bookmark_id: str, new_folder_id: str) -> bool:
        b = self._find_bookmark(bookmark_id)
        if b is None or self._find_folder(new_folder_id) is None:
            return False
        b.folder_id = new_folder_id
        b.date_updated = self._now_iso()
        await self._save_bookmarks()
        return True

    async def update_bookmark_on_visit(self, bookmark_id: str) -> Optional[Bookmark]:
        b = self._find_bookmark(bookmark_id)
        if b is None:
            return None
        now = self._clock()
        last = parse_iso(b.date_updated or b.date_added)
        b.visit_count = max(0, b.visit_count) + 1
        if last is None or now - last > timedelta(days=self.settings.favicon_refresh_days):
            b.favicon = await self._resolve_favicon(b.url)
        b.date_updated = utc_now_iso(now)
        await self._save_bookmarks()
        return copy.deepcopy(b)

    async def open_bookmark(self, bookmark_id: str) -> bool:
        b = self._find_bookmark(bookmark_id)
        if b is None:
            return False
        try:
            opened = await self.tabs.open_tab(b.url)
        except Exception as e:
            log.warning("Could not open %s: %s", b.url, e)
            return False
        if opened:
            await self.update_bookmark_on_visit(bookmark_id)
        return bool(opened)

    async def refresh_favicon(self, bookmark_id: str) -> bool:
        b = self._find_bookmark(bookmark_id)
        if b is None:
            return False
        b.favicon = await self._resolve_favicon(b.url)
        b.date_updated = self._now_iso()
        await self._save_bookmarks()
        return True

    async def refresh_open_graph(self, bookmark_id: str) -> bool:
        b = self._find_bookmark(bookmark_id)
        if b is None:
            return False
        og = await self._extract_open_graph(b.url)
        if og is None:
            return False
        b.open_graph = og
        b.date_updated = self._now_iso()
        await self._save_bookmarks()
        return True

    async def reorder_bookmarks(self, folder_id: str, from_index: int, to_index: int) -> bool:
        in_folder = [b for b in self._bookmarks if b.folder_id == folder_id]
        n = len(in_folder)
        if from_index < 0 or to_index < 0 or from_index >= n or to_index >= n or from_index == to_index:
            return False
        moved = in_folder.pop(from_index)
        in_folder.insert(to_index, moved)
        others = [b for b in self._bookmarks if b.folder_id != folder_id]
        self._bookmarks = others + in_folder
        await self._save_bookmarks()
        return True

    # ------------------------------------------------------------------ tags

    async def add_tag_to_bookmark(self, bookmark_id: str, tag: str) -> bool:
        tag = (tag or "").strip()
        if not tag:
            raise ValidationError("Tag must not be empty")
        b = self._find_bookmark(bookmark_id)
        if b is None:
            return False
        if tag in b.tags:
            return True
        b.tags.append(tag)
        self._tags[tag] = None
        await self._save_bookmarks()
        await self._save_tags()
        return True

    async def remove_tag_from_bookmark(self, bookmark_id: str, tag: str) -> bool:
        b = self._find_bookmark(bookmark_id)
        if b is None:
            return False
        b.tags = [t for t in b.tags if t != tag]
        await self._save_bookmarks()
        await self._cleanup_tags()
        return True

    async def register_tag(self, tag: str) -> bool:
        """Add ``tag`` to the registry without attaching it. It is dropped again by the next cleanup."""
        tag = (tag or "").strip()
        if not tag:
            raise ValidationError("Tag must not be empty")
        if tag in self._tags:
            return False
        self._tags[tag] = None
        await self._save_tags()
        return True

    async def cleanup_orphan_tags(self) -> List[str]:
        before = list(self._tags)
        await self._cleanup_tags()
        return [t for t in before if t not in self._tags]

    def get_all_tags(self) -> List[str]:
        return list(self._tags)

    # --------------------------------------------------------------- folders

    async def create_folder(self, name: str, parent_id: str = ROOT_FOLDER_ID) -> Folder:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Folder name is required")
        parent = self._require_folder(parent_id)
        folder = Folder(id=self._new_id(), name=name, parent_id=parent_id, children=[])
        self._folders.append(folder)
        parent.children.append(folder.id)
        await self._save_folders()
        return copy.deepcopy(folder)

    async def update_folder(self, folder_id: str, new_name: str) -> bool:
        if folder_id == ROOT_FOLDER_ID:
            return False
        folder = self._find_folder(folder_id)
        if folder is None:
            return False
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValidationError("Folder name is required")
        folder.name = new_name
        await self._save_folders()
        return True

    async def delete_folder(self, folder_id: str) -> bool:
        """Delete a folder and, irreversibly, every bookmark directly inside it.

        Subfolders are not deleted; they are left pointing at a parent that no
        longer exists. Delete them first (deepest first) if that is not wanted.
        """
        if folder_id == ROOT_FOLDER_ID:
            return False
        folder = self._find_folder(folder_id)
        if folder is None:
            return False

        before = len(self._bookmarks)
        self._bookmarks = [b for b in self._bookmarks if b.folder_id != folder_id]
        removed = before - len(self._bookmarks)
        parent = self._find_folder(folder.parent_id) if folder.parent_id else None
        if parent is not None:
            parent.children = [c for c in parent.children if c != folder_id]
        self._folders = [f for f in self._folders if f.id != folder_id]

        orphans = [f.id for f in self._folders if f.parent_id == folder_id]
        if orphans:
            log.warning("Folder %s deleted with %d subfolder(s) left orphaned.", folder_id, len(orphans))
        log.info("Deleted folder %s and %d bookmark(s).", folder_id, removed)

        await self._save_bookmarks()
        await self._save_folders()
        await self._cleanup_tags()
        return True

    # ---------------------------------------------------------------- reads

    def get_bookmarks(self) -> List[Bookmark]:
        return copy.deepcopy(self._bookmarks)

    def get_folders(self) -> List[Folder]:
        return copy.deepcopy(self._folders)

    def get_bookmark(self, bookmark_id: str) -> Optional[Bookmark]:
        return copy.deepcopy(self._find_bookmark(bookmark_id))

    def get_folder(self, folder_id: str) -> Optional[Folder]:
        return copy.deepcopy(self._find_folder(folder_id))

    def get_bookmarks_by_folder(self, folder_id: str) -> List[Bookmark]:
        return copy.deepcopy([b for b in self._bookmarks if b.folder_id == folder_id])

    def get_folder_hierarchy(self, folder_id: str = ROOT_FOLDER_ID) -> Optional[FolderTree]:
        return folder_hierarchy(self.get_folders(), self.get_bookmarks(), folder_id)

    def get_folder_path(self, folder_id: str) -> List[Folder]:
        return folder_path(self.get_folders(), folder_id)

    def format_folder_path(self, folder_id: str) -> str:
        return format_folder_path(self._folders, folder_id)

    def get_orphaned_folders(self) -> List[Folder]:
        return orphaned_folders(self.get_folders())

    def global_search(self, query: str) -> List[SearchResult]:
        return copy.deepcopy(global_search(self._bookmarks, query))

    def search_by_tags(self, tags: Sequence[str]) -> List[Bookmark]:
        return copy.deepcopy(search_by_tags(self._bookmarks, tags))

    def search_by_title(self, query: str) -> List[Bookmark]:
        return copy.deepcopy(search_by_title(self._bookmarks, query))

    # -------------------------------------------------------- import/export

    def export_data(self) -> ExportData:
        return build_export(self.get_bookmarks(), self.get_folders(), self.get_all_tags(), now=self._clock())

    def export_json(self, *, indent: int = 2) -> str:
        return dump_export(self.export_data(), indent=indent)

    def export_filename(self) -> str:
        return export_filename(self._clock())

    async def import_json(self, text: str, options: Optional[ImportOptions] = None) -> ImportResult:
        """Apply an export document. Invalid documents leave state untouched."""
        options = options or ImportOptions()
        try:
            doc = load_import_document(text, validate_version=options.validate_version)
        except ImportDataError as e:
            log.warning("Import rejected: %s", e)
            return ImportResult(success=False, error=str(e))

        if options.merge:
            counts = self._merge(doc)
        else:
            counts = self._replace(doc)
        await self._save_all()
        log.info(
            "Imported %d bookmark(s), %d folder(s), %d tag(s) (%s).",
            counts.bookmarks,
            counts.folders,
            counts.tags,
            "merge" if options.merge else "replace",
        )
        return ImportResult(success=True, imported=counts, version=doc.version or "unknown")

    def _replace(self, doc: ImportDocument) -> ImportCounts:
        if doc.bookmarks is not None:
            self._bookmarks = doc.bookmarks
        if doc.folders is not None:
            self._folders = doc.folders
        if doc.tags is not None:
            self._tags = dict.fromkeys(unique_tags(doc.tags))
        for b in self._bookmarks:
            self._tags.update(dict.fromkeys(b.tags))
        self._ensure_root()
        return ImportCounts(
            bookmarks=doc.raw_counts.get("bookmarks", 0),
            folders=doc.raw_counts.get("folders", 0),
            tags=doc.raw_counts.get("tags", 0),
        )

    def _merge(self, doc: ImportDocument) -> ImportCounts:
        counts = ImportCounts()
        ids = {b.id for b in self._bookmarks}
        urls = {b.url for b in self._bookmarks}
        for b in doc.bookmarks or []:
            if b.id in ids:
                continue
            if b.url in urls:
                log.info("Skipping imported bookmark %s: URL already bookmarked (%s).", b.id, b.url)
                continue
            self._bookmarks.append(b)
            ids.add(b.id)
            urls.add(b.url)
            counts.bookmarks += 1

        folder_ids = {f.id for f in self._folders}
        added: List[Folder] = []
        for f in doc.folders or []:
            if f.id in folder_ids:
                continue
            self._folders.append(f)
            folder_ids.add(f.id)
            added.append(f)
        for f in added:
            parent = self._find_folder(f.parent_id) if f.parent_id else None
            if parent is not None and f.id not in parent.children:
                parent.children.append(f.id)
        counts.folders = len(added)

        before = len(self._tags)
        self._tags.update(dict.fromkeys(unique_tags(doc.tags or [])))
        for b in self._bookmarks:
            self._tags.update(dict.fromkeys(b.tags))
        counts.tags = len(self._tags) - before
        self._ensure_root()
        return counts

    # -------------------------------------------------------------- helpers

    async def _resolve_favicon(self, url: str) -> str:
        if self.favicons is None:
            return placeholder_icon(url)
        try:
            return await self.favicons.resolve(url)
        except Exception as e:
            log.debug("Favicon resolution failed for %s: %s", url, e)
            return placeholder_icon(url)

    async def _extract_open_graph(self, url: str) -> Optional[OpenGraph]:
        if self.opengraph is None:
            return None
        try:
            return await self.opengraph.extract(url)
        except Exception as e:
            log.debug("OpenGraph extraction failed for %s: %s", url, e)
            return None

    def _ensure_unique_url(self, url: str) -> None:
        for b in self._bookmarks:
            if b.url == url:
                raise DuplicateURLError(url, b.title)

    def _require_folder(self, folder_id: str) -> Folder:
        folder = self._find_folder(folder_id)
        if folder is None:
            raise UnknownFolderError(folder_id)
        return folder

    def _find_bookmark(self, bookmark_id: str) -> Optional[Bookmark]:
        for b in self._bookmarks:
            if b.id == bookmark_id:
                return b
        return None

    def _find_folder(self, folder_id: Optional[str]) -> Optional[Folder]:
        for f in self._folders:
            if f.id == folder_id:
                return f
        return None

    def _ensure_root(self) -> None:
        if self._find_folder(ROOT_FOLDER_ID) is None:
            self._folders.insert(0, make_root_folder())

    def _recompute_tags(self) -> bool:
        """Rebuild the registry from bookmark references. True when it changed."""
        referenced: Dict[str, None] = {}
        for b in self._bookmarks:
            referenced.update(dict.fromkeys(b.tags))
        changed = set(referenced) != set(self._tags)
        self._tags = referenced
        return changed

    async def _cleanup_tags(self) -> None:
        if self._recompute_tags():
            await self._save_tags()

    def _new_id(self) -> str:
        existing = {b.id for b in self._bookmarks} | {f.id for f in self._folders}
        while True:
            suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
            candidate = f"bm_{int(time.time() * 1000)}_{suffix}"
            if candidate not in existing:
                return candidate

    def _now_iso(self) -> str:
        return utc_now_iso(self._clock())

    async def _save_bookmarks(self) -> None:
        await self.store.set({KEY_BOOKMARKS: [b.to_dict() for b in self._bookmarks]})

    async def _save_folders(self) -> None:
        await self.store.set({KEY_FOLDERS: [f.to_dict() for f in self._folders]})

    async def _save_tags(self) -> None:
        await self.store.set({KEY_TAGS: list(self._tags)})

    async def _save_all(self) -> None:
        await self._save_bookmarks()
        await self._save_folders()
        await self._save_tags()


def _parse_entries(raw, parse: Callable, label: str) -> list:
    if not isinstance(raw, list):
        return []
    out = []
    for i, item in enumerate(raw):
        try:
            out.append(parse(item))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            log.warning("Skipping malformed stored %s at index %d: %s", label, i, e)
    return out
