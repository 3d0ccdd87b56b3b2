from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from .model import Bookmark, MatchType, SearchResult


def global_search(bookmarks: Sequence[Bookmark], query: str) -> List[SearchResult]:
    """Case-insensitive substring search over title, tags, OpenGraph description and URL.

    Each bookmark yields at most one result, for the highest-priority field
    that matches. Results are ordered title < tag < description < url; within
    one match type the storage order is kept.
    """
    q = (query or "").strip().lower()
    if not q:
        return []

    results: List[SearchResult] = []
    for b in bookmarks:
        hit = _first_match(b, q)
        if hit is not None:
            match_type, text = hit
            results.append(SearchResult(bookmark=b, match_type=match_type, matched_text=text))
    # sorted() is stable, so storage order survives inside each match type.
    return sorted(results, key=lambda r: r.match_type.priority)


def search_by_tags(bookmarks: Sequence[Bookmark], tags: Iterable[str]) -> List[Bookmark]:
    wanted = {t for t in (tags or []) if t}
    if not wanted:
        return list(bookmarks)
    return [b for b in bookmarks if wanted.intersection(b.tags)]


def search_by_title(bookmarks: Sequence[Bookmark], query: str) -> List[Bookmark]:
    if not query:
        return list(bookmarks)
    q = query.lower()
    return [b for b in bookmarks if q in b.title.lower()]


def _first_match(b: Bookmark, q: str) -> Optional[Tuple[MatchType, str]]:
    if q in (b.title or "").lower():
        return MatchType.TITLE, b.title
    for tag in b.tags:
        if q in tag.lower():
            return MatchType.TAG, tag
    description = b.open_graph.description if b.open_graph else None
    if description and q in description.lower():
        return MatchType.DESCRIPTION, description
    if q in (b.url or "").lower():
        return MatchType.URL, b.url
    return None
