from pathlib import Path

from bookmarkplus.config import Settings, load_settings


def _clear_env(monkeypatch):
    for name in (
        "BMP_STORE_PATH",
        "BMP_PROBE_TIMEOUT_S",
        "BMP_OG_TIMEOUT_S",
        "BMP_FETCH_UA",
        "BMP_FETCH_MAX_BYTES",
        "BMP_FAVICON_USE_SERVICES",
        "BMP_FAVICON_REFRESH_DAYS",
        "BMP_LOG_LEVEL",
        "BMP_NO_COLOR",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch, tmp_path: Path):
    _clear_env(monkeypatch)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
    s = Settings.from_env()
    assert s.store_path == str(tmp_path / "bookmarkplus" / "store.sqlite")
    assert s.probe_timeout_s == 3.0
    assert s.og_timeout_s == 10.0
    assert s.favicon_refresh_days == 7
    assert s.favicon_use_services is True
    assert s.log_level == "INFO"


def test_env_overrides(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("BMP_STORE_PATH", "/tmp/x.sqlite")
    monkeypatch.setenv("BMP_PROBE_TIMEOUT_S", "1.5")
    monkeypatch.setenv("BMP_FAVICON_USE_SERVICES", "0")
    monkeypatch.setenv("BMP_FAVICON_REFRESH_DAYS", "30")
    monkeypatch.setenv("BMP_NO_COLOR", "yes")
    s = Settings.from_env()
    assert s.store_path == "/tmp/x.sqlite"
    assert s.probe_timeout_s == 1.5
    assert s.favicon_use_services is False
    assert s.favicon_refresh_days == 30
    assert s.no_color is True


def test_unparseable_numbers_keep_defaults(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("BMP_OG_TIMEOUT_S", "soon")
    monkeypatch.setenv("BMP_FETCH_MAX_BYTES", "lots")
    s = Settings.from_env()
    assert s.og_timeout_s == 10.0
    assert s.fetch_max_bytes == 350_000


def test_yaml_file_sets_known_keys_only(monkeypatch, tmp_path: Path):
    _clear_env(monkeypatch)
    cfg = tmp_path / "bookmarkplus.yaml"
    cfg.write_text("og_timeout_s: 2.5\nlog_level: DEBUG\nnot_a_setting: 1\n", encoding="utf-8")
    s = load_settings(str(cfg))
    assert s.og_timeout_s == 2.5
    assert s.log_level == "DEBUG"
    assert not hasattr(s, "not_a_setting")


def test_empty_yaml_file_is_env_only(monkeypatch, tmp_path: Path):
    _clear_env(monkeypatch)
    monkeypatch.setenv("BMP_LOG_LEVEL", "WARNING")
    cfg = tmp_path / "empty.yaml"
    cfg.write_text("", encoding="utf-8")
    assert load_settings(str(cfg)).log_level == "WARNING"
