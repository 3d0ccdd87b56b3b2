"""Folder tree helpers.

Folder deletion is not recursive, so a subfolder can outlive its parent and
point at an id that no longer exists. Everything here treats a missing
ancestor as the end of the path instead of failing, and guards against
parent-pointer cycles that a hand-edited import could introduce.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set

from .model import Bookmark, Folder, FolderTree, ROOT_FOLDER_ID

PATH_SEPARATOR = " › "


def folder_path(folders: Sequence[Folder], folder_id: str) -> List[Folder]:
    """Breadcrumb from the outermost reachable ancestor down to ``folder_id``."""
    by_id = {f.id: f for f in folders}
    path: List[Folder] = []
    seen: Set[str] = set()
    current: Optional[str] = folder_id
    while current and current not in seen:
        folder = by_id.get(current)
        if folder is None:
            break
        seen.add(current)
        path.append(folder)
        current = folder.parent_id
    path.reverse()
    return path


def format_folder_path(folders: Sequence[Folder], folder_id: str) -> str:
    path = folder_path(folders, folder_id)
    if not path:
        return ""
    return PATH_SEPARATOR.join(f.name for f in path)


def folder_hierarchy(
    folders: Sequence[Folder],
    bookmarks: Sequence[Bookmark],
    folder_id: str = ROOT_FOLDER_ID,
) -> Optional[FolderTree]:
    by_id = {f.id: f for f in folders}
    if folder_id not in by_id:
        return None

    children_of: Dict[str, List[Folder]] = {}
    for f in folders:
        if f.parent_id:
            children_of.setdefault(f.parent_id, []).append(f)
    bookmarks_of: Dict[str, List[Bookmark]] = {}
    for b in bookmarks:
        bookmarks_of.setdefault(b.folder_id, []).append(b)

    visited: Set[str] = set()

    def _build(folder: Folder) -> FolderTree:
        visited.add(folder.id)
        node = FolderTree(folder=folder, bookmarks=list(bookmarks_of.get(folder.id, [])))
        for child in children_of.get(folder.id, []):
            if child.id in visited:
                continue
            node.child_folders.append(_build(child))
        return node

    return _build(by_id[folder_id])


def orphaned_folders(folders: Sequence[Folder]) -> List[Folder]:
    ids = {f.id for f in folders}
    return [f for f in folders if f.parent_id is not None and f.parent_id not in ids]


def descendants_bottom_up(folders: Sequence[Folder], folder_id: str) -> List[str]:
    """Ids of every folder below ``folder_id``, deepest first, so they can be deleted in order."""
    children_of: Dict[str, List[str]] = {}
    for f in folders:
        if f.parent_id:
            children_of.setdefault(f.parent_id, []).append(f.id)

    out: List[str] = []
    seen: Set[str] = {folder_id}

    def _visit(fid: str) -> None:
        for child in children_of.get(fid, []):
            if child in seen:
                continue
            seen.add(child)
            _visit(child)
            out.append(child)

    _visit(folder_id)
    return out
