"""Persistent key-value store adapters.

The core only ever reads and writes whole values under a handful of string
keys (``bookmarks``, ``folders``, ``tags``). There are no partial updates and
no transactions spanning keys: each ``set`` call replaces the listed values
and nothing else.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Protocol

from .log import get_logger

log = get_logger(__name__)

KEY_BOOKMARKS = "bookmarks"
KEY_FOLDERS = "folders"
KEY_TAGS = "tags"


class KeyValueStore(Protocol):
    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the stored values for ``keys``; absent keys are omitted."""
        ...

    async def set(self, items: Mapping[str, Any]) -> None:
        """Overwrite each key in ``items`` with its value."""
        ...


class MemoryStore:
    """In-process store. Values are JSON round-tripped so callers never share references."""

    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._data: Dict[str, str] = {}
        for k, v in (initial or {}).items():
            self._data[k] = json.dumps(v, ensure_ascii=False)
        self.writes: list[str] = []

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {k: json.loads(self._data[k]) for k in keys if k in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        for k, v in items.items():
            self._data[k] = json.dumps(v, ensure_ascii=False)
            self.writes.append(k)

    def raw(self, key: str) -> Any:
        return json.loads(self._data[key]) if key in self._data else None


class SqliteStore:
    """One ``kv_store`` table, JSON-encoded values, one short-lived connection per call."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._get_sync, list(keys))

    async def set(self, items: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._set_sync, dict(items))

    def init(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def _get_sync(self, keys: list[str]) -> Dict[str, Any]:
        keys = [k for k in keys if k]
        if not keys or not self.db_path.exists():
            return {}
        placeholders = ",".join(["?"] * len(keys))
        out: Dict[str, Any] = {}
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT key, value_json FROM kv_store WHERE key IN ({placeholders})",
                keys,
            ).fetchall()
        for key, value_json in rows:
            out[key] = json.loads(value_json)
        return out

    def _set_sync(self, items: Dict[str, Any]) -> None:
        if not items:
            return
        self.init()
        now = datetime.now(timezone.utc).isoformat()
        rows = [(k, json.dumps(v, ensure_ascii=False), now) for k, v in items.items()]
        with sqlite3.connect(self.db_path) as conn:
            conn.executemany(
                """
                INSERT INTO kv_store (key, value_json, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_json=excluded.value_json,
                    updated_at=excluded.updated_at
                """,
                rows,
            )
        log.debug("Stored %s in %s", ", ".join(sorted(items)), self.db_path)
