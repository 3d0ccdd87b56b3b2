from __future__ import annotations

import asyncio
import io
import json
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup  # type: ignore
from PIL import Image

from .log import get_logger

log = get_logger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/*;q=0.8,*/*;q=0.5",
}

# Images are tiny; anything bigger than this is not a favicon worth keeping.
MAX_IMAGE_BYTES = 2_000_000


@dataclass
class FetchResult:
    ok: bool
    status: Optional[int]
    final_url: Optional[str]
    content_type: Optional[str]
    content: bytes
    fetch_ms: int
    error: Optional[str] = None

    @property
    def text(self) -> str:
        return _decode_html(self.content)


class HttpFetcher:
    """Network capability used by favicon and OpenGraph enrichment.

    Every public method is best-effort: failures come back as ``ok=False``,
    ``None`` or ``False`` and are logged at debug level, never raised.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        max_bytes: int = 350_000,
        client: httpx.AsyncClient | None = None,
    ):
        self.max_bytes = max_bytes
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={**DEFAULT_HEADERS, "User-Agent": user_agent},
        )

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, url: str, *, timeout_s: float, max_bytes: int | None = None) -> FetchResult:
        t0 = time.time()
        limit = self.max_bytes if max_bytes is None else max_bytes
        try:
            return await asyncio.wait_for(self._fetch(url, timeout_s=timeout_s, max_bytes=limit, t0=t0), timeout_s)
        except Exception as e:
            ms = int((time.time() - t0) * 1000)
            err = str(e) or type(e).__name__
            log.debug("Fetch failed for %s: %s", url, err)
            return FetchResult(
                ok=False,
                status=None,
                final_url=None,
                content_type=None,
                content=b"",
                fetch_ms=ms,
                error=err,
            )

    async def fetch_json(self, url: str, *, timeout_s: float) -> Any:
        res = await self.fetch(url, timeout_s=timeout_s)
        if not res.ok:
            return None
        try:
            return json.loads(res.content)
        except Exception as e:
            log.debug("Invalid JSON from %s: %s", url, e)
            return None

    async def probe_image(self, url: str, *, timeout_s: float) -> bool:
        """True when ``url`` serves an image that decodes with non-zero dimensions."""
        res = await self.fetch(url, timeout_s=timeout_s, max_bytes=MAX_IMAGE_BYTES)
        if not res.ok or not res.content:
            return False
        return image_has_dimensions(res.content, content_type=res.content_type)

    async def _fetch(self, url: str, *, timeout_s: float, max_bytes: int, t0: float) -> FetchResult:
        timeout = httpx.Timeout(timeout_s, connect=timeout_s)
        async with self._client.stream("GET", url, timeout=timeout) as r:
            chunks = []
            size = 0
            async for chunk in r.aiter_bytes():
                chunks.append(chunk)
                size += len(chunk)
                if size >= max_bytes:
                    break
            content = b"".join(chunks)[:max_bytes]
            ms = int((time.time() - t0) * 1000)
            ok = 200 <= r.status_code < 300
            return FetchResult(
                ok=ok,
                status=r.status_code,
                final_url=str(r.url),
                content_type=(r.headers.get("content-type") or "").split(";")[0].strip().lower() or None,
                content=content,
                fetch_ms=ms,
                error=None if ok else f"http_status_{r.status_code}",
            )


def image_has_dimensions(content: bytes, *, content_type: Optional[str] = None) -> bool:
    if _looks_like_svg(content, content_type):
        return _svg_parses(content)
    try:
        with Image.open(io.BytesIO(content)) as img:
            width, height = img.size
    except Exception:
        return False
    return width > 0 and height > 0


def _looks_like_svg(content: bytes, content_type: Optional[str]) -> bool:
    if content_type == "image/svg+xml":
        return True
    head = content[:512].lstrip().lower()
    return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in content[:2048].lower())


def _svg_parses(content: bytes) -> bool:
    try:
        soup = BeautifulSoup(content, "xml")
    except Exception:
        return False
    return soup.find("svg") is not None


def _decode_html(content: bytes) -> str:
    if not content:
        return ""
    return content.decode("utf-8", errors="replace")
