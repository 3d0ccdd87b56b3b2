from __future__ import annotations

import re
from typing import Dict, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup  # type: ignore

from .log import get_logger
from .model import OpenGraph

log = get_logger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".avif", ".bmp", ".ico")
# Whole host labels or path segments only, so "blog" or "catalog" do not count.
_IMAGE_HINT_RE = re.compile(
    r"(?:^|[/.\-_])(?:images?|imgs?|photos?|pics?|thumbs?|thumbnails?|media|cdn|static|assets|uploads?|avatars?|banners?)(?:[/.\-_]|$)",
    re.IGNORECASE,
)
_IMAGE_HOSTS = (
    "imgur.com",
    "cloudinary.com",
    "googleusercontent.com",
    "twimg.com",
    "fbcdn.net",
    "ytimg.com",
    "githubusercontent.com",
    "wp.com",
    "unsplash.com",
)
_FORMAT_QUERY_RE = re.compile(r"(format|fm|ext)=(jpe?g|png|gif|webp|avif)", re.IGNORECASE)

_OG_FIELDS = {
    "og:title": "title",
    "og:description": "description",
    "og:image": "image",
    "og:image:url": "image_url",
    "og:image:secure_url": "image_secure_url",
    "og:site_name": "site_name",
    "og:type": "type",
    "og:url": "url",
}


class OpenGraphExtractor:
    def __init__(self, fetcher, *, timeout_s: float = 10.0):
        self.fetcher = fetcher
        self.timeout_s = timeout_s

    async def extract(self, url: str) -> Optional[OpenGraph]:
        """Fetch ``url`` and return its OpenGraph bundle, or None when there is nothing useful."""
        try:
            res = await self.fetcher.fetch(url, timeout_s=self.timeout_s)
            if not res.ok or not res.content:
                log.debug("OpenGraph fetch for %s gave nothing (%s)", url, res.error or res.status)
                return None
            return parse_open_graph(res.content, base_url=res.final_url or url)
        except Exception as e:
            log.debug("OpenGraph extraction failed for %s: %s", url, e)
            return None


def parse_open_graph(content: bytes | str, *, base_url: str) -> Optional[OpenGraph]:
    if not content:
        return None
    try:
        soup = BeautifulSoup(content, "lxml")
    except Exception:
        return None

    found: Dict[str, str] = {}
    for meta in soup.find_all("meta"):
        key = (meta.get("property") or meta.get("name") or "").strip().lower()
        field = _OG_FIELDS.get(key)
        value = (meta.get("content") or "").strip()
        if not field or not value or field in found:
            continue
        found[field] = value

    image = None
    for key in ("image", "image_url", "image_secure_url"):
        raw = found.get(key)
        if not raw:
            continue
        candidate = urljoin(base_url, raw)
        if is_valid_image_url(candidate):
            image = candidate
            break
        log.debug("Dropping implausible og:image %s", candidate)

    og = OpenGraph(
        title=found.get("title"),
        description=found.get("description"),
        image=image,
        site_name=found.get("site_name"),
        type=found.get("type"),
        url=found.get("url"),
    )
    if not og.title and not og.image:
        return None
    return og


def is_valid_image_url(url: str) -> bool:
    """Heuristic: http(s) URL that looks like it points at an image."""
    try:
        p = urlparse(url)
    except Exception:
        return False
    if p.scheme not in ("http", "https") or not p.netloc:
        return False
    path = (p.path or "").lower()
    if path.endswith(IMAGE_EXTENSIONS):
        return True
    host = (p.hostname or "").lower()
    if any(host == h or host.endswith("." + h) for h in _IMAGE_HOSTS):
        return True
    if _FORMAT_QUERY_RE.search(p.query or ""):
        return True
    return bool(_IMAGE_HINT_RE.search(host) or _IMAGE_HINT_RE.search(path))
