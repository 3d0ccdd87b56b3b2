from __future__ import annotations

import asyncio
import webbrowser
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class TabInfo:
    url: str
    fav_icon_url: Optional[str] = None


class TabProvider(Protocol):
    async def active_tab(self) -> Optional[TabInfo]:
        ...

    async def open_tab(self, url: str) -> bool:
        ...


class NullTabs:
    """No browser attached: there is never an active tab and nothing can be opened."""

    async def active_tab(self) -> Optional[TabInfo]:
        return None

    async def open_tab(self, url: str) -> bool:
        return False


class BrowserTabs:
    """Opens URLs in the user's default browser. Active-tab lookup is not available."""

    def __init__(self, active: Optional[TabInfo] = None):
        self._active = active

    async def active_tab(self) -> Optional[TabInfo]:
        return self._active

    async def open_tab(self, url: str) -> bool:
        return await asyncio.to_thread(webbrowser.open_new_tab, url)
