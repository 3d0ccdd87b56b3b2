"""Favicon resolution.

The chain is tried in order and stops at the first hit:

1. the active browser tab, when it shows exactly this URL and has an icon;
2. conventional icon paths on the bookmark's own origin;
3. third-party favicon services keyed by hostname;
4. a generated placeholder (colour from a hash of the hostname, glyph from
   the domain's first letter).

Every network probe is bounded by a timeout and every failure just moves on
to the next step, so ``resolve`` always returns something usable.
"""

from __future__ import annotations

from typing import Any, List, Optional
from urllib.parse import quote, urlparse

import tldextract  # type: ignore

from .log import get_logger
from .tabs import NullTabs, TabProvider

log = get_logger(__name__)

SAME_ORIGIN_PATHS = (
    "/favicon.ico",
    "/favicon.png",
    "/favicon.svg",
    "/apple-touch-icon.png",
    "/apple-touch-icon-precomposed.png",
    "/assets/favicon.ico",
    "/assets/favicon.png",
    "/static/favicon.ico",
    "/static/favicon.png",
)

FAVICON_GRABBER = "favicongrabber"

GENERIC_ICON = (
    'data:image/svg+xml,<svg xmlns="http://www.w3.org/2000/svg" width="32" height="32" viewBox="0 0 32 32">'
    '<rect width="32" height="32" fill="%236b7280" rx="4"/>'
    '<path d="M10 14a4 4 0 0 1 8 0v1a4 4 0 0 1-8 0v-1zm4-6a6 6 0 0 0-6 6v1a6 6 0 0 0 12 0v-1a6 6 0 0 0-6-6z" '
    'fill="white"/></svg>'
)

# Offline: use the suffix list bundled with tldextract, never fetch it.
_extract = tldextract.TLDExtract(suffix_list_urls=())


def service_urls(hostname: str) -> List[tuple[str, str]]:
    host = quote(hostname, safe=".-")
    return [
        ("google", f"https://www.google.com/s2/favicons?domain={host}&sz=16"),
        ("duckduckgo", f"https://icons.duckduckgo.com/ip3/{host}.ico"),
        (FAVICON_GRABBER, f"https://favicongrabber.com/api/grab/{host}?pretty=true"),
        ("iconhorse", f"https://icon.horse/icon/{host}"),
    ]


class FaviconResolver:
    def __init__(
        self,
        fetcher,
        *,
        tabs: Optional[TabProvider] = None,
        probe_timeout_s: float = 3.0,
        use_services: bool = True,
    ):
        self.fetcher = fetcher
        self.tabs = tabs or NullTabs()
        self.probe_timeout_s = probe_timeout_s
        self.use_services = use_services

    async def resolve(self, url: str) -> str:
        icon = await self._from_active_tab(url)
        if icon:
            return icon

        p = _parse_http_url(url)
        if p is None:
            return GENERIC_ICON
        origin = f"{p.scheme}://{p.netloc}"
        hostname = p.hostname or ""

        for path in SAME_ORIGIN_PATHS:
            candidate = origin + path
            if await self._is_image(candidate):
                log.debug("Favicon for %s found on origin: %s", url, candidate)
                return candidate

        if self.use_services:
            icon = await self._from_services(hostname)
            if icon:
                log.debug("Favicon for %s found via service: %s", url, icon)
                return icon

        log.debug("No favicon found for %s; using placeholder.", url)
        return placeholder_icon(url)

    async def _from_active_tab(self, url: str) -> Optional[str]:
        try:
            tab = await self.tabs.active_tab()
        except Exception as e:
            log.debug("Active tab lookup failed: %s", e)
            return None
        if tab is not None and tab.url == url and tab.fav_icon_url:
            return tab.fav_icon_url
        return None

    async def _from_services(self, hostname: str) -> Optional[str]:
        for name, service_url in service_urls(hostname):
            if name == FAVICON_GRABBER:
                data = await self.fetcher.fetch_json(service_url, timeout_s=self.probe_timeout_s)
                src = pick_grabber_icon(data)
                if src and await self._is_image(src):
                    return src
                continue
            if await self._is_image(service_url):
                return service_url
        return None

    async def _is_image(self, url: str) -> bool:
        try:
            return bool(await self.fetcher.probe_image(url, timeout_s=self.probe_timeout_s))
        except Exception as e:
            log.debug("Image probe failed for %s: %s", url, e)
            return False


def pick_grabber_icon(data: Any) -> Optional[str]:
    """Pick the icon closest to 16x16/32x32 from a favicongrabber response, else the first one."""
    if not isinstance(data, dict):
        return None
    icons = [i for i in (data.get("icons") or []) if isinstance(i, dict) and i.get("src")]
    if not icons:
        return None
    for icon in icons:
        sizes = str(icon.get("sizes") or "")
        if "16x16" in sizes or "32x32" in sizes:
            return str(icon["src"])
    return str(icons[0]["src"])


def placeholder_icon(url: str) -> str:
    p = _parse_http_url(url)
    if p is None or not p.hostname:
        return GENERIC_ICON
    hostname = p.hostname
    letter = _glyph_for_host(hostname)
    color = string_to_color(hostname)
    return (
        'data:image/svg+xml,<svg xmlns="http://www.w3.org/2000/svg" width="32" height="32" viewBox="0 0 32 32">'
        f'<rect width="32" height="32" fill="%23{color}" rx="4"/>'
        '<text x="16" y="20" text-anchor="middle" fill="white" font-family="Arial" font-size="14" '
        f'font-weight="bold">{letter}</text></svg>'
    )


def string_to_color(value: str) -> str:
    """Deterministic 24-bit colour (hex, no '#') for a string."""
    h = 0
    for ch in value:
        h = ord(ch) + ((h << 5) - h)
        h = ((h + 2**31) % 2**32) - 2**31
    return f"{h & 0x00FFFFFF:06x}"


def _glyph_for_host(hostname: str) -> str:
    ext = _extract(hostname)
    base = ext.domain or hostname
    for ch in base:
        if ch.isalnum():
            return ch.upper()
    return "?"


def _parse_http_url(url: str):
    try:
        p = urlparse(url)
    except Exception:
        return None
    if p.scheme not in ("http", "https") or not p.netloc:
        return None
    return p
