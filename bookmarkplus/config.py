from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from . import __version__


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None else v


def _default_store_path() -> str:
    base = os.getenv("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return str(Path(base) / "bookmarkplus" / "store.sqlite")


@dataclass
class Settings:
    # Storage
    store_path: str = ""

    # Enrichment
    probe_timeout_s: float = 3.0
    og_timeout_s: float = 10.0
    fetch_user_agent: str = f"bookmarkplus/{__version__} (+https://example.invalid)"
    fetch_max_bytes: int = 350_000
    favicon_use_services: bool = True
    favicon_refresh_days: int = 7

    # Logging / UX
    log_level: str = "INFO"
    no_color: bool = False

    def __post_init__(self) -> None:
        if not self.store_path:
            self.store_path = _default_store_path()

    @staticmethod
    def from_env() -> "Settings":
        s = Settings()
        s.store_path = _env_str("BMP_STORE_PATH", s.store_path)

        s.probe_timeout_s = _env_float("BMP_PROBE_TIMEOUT_S", s.probe_timeout_s)
        s.og_timeout_s = _env_float("BMP_OG_TIMEOUT_S", s.og_timeout_s)
        s.fetch_user_agent = _env_str("BMP_FETCH_UA", s.fetch_user_agent)
        s.fetch_max_bytes = _env_int("BMP_FETCH_MAX_BYTES", s.fetch_max_bytes)
        s.favicon_use_services = _env_bool("BMP_FAVICON_USE_SERVICES", s.favicon_use_services)
        s.favicon_refresh_days = _env_int("BMP_FAVICON_REFRESH_DAYS", s.favicon_refresh_days)

        s.log_level = _env_str("BMP_LOG_LEVEL", s.log_level)
        s.no_color = _env_bool("BMP_NO_COLOR", s.no_color)
        return s

    @staticmethod
    def from_file(path: Path) -> "Settings":
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        s = Settings.from_env()
        for k, v in data.items():
            if hasattr(s, k):
                setattr(s, k, v)
        return s


def load_settings(config_path: Optional[str]) -> Settings:
    if config_path:
        return Settings.from_file(Path(config_path))
    return Settings.from_env()
