from __future__ import annotations

from pathlib import Path

import pytest

from backend.app.core import config
from backend.app.core.config import DEFAULT_SEED_LIBRARY, get_settings


@pytest.fixture(autouse=True)
def reset_settings_cache() -> None:
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


def test_settings_read_version_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VERSION", "9.9.9")
    monkeypatch.setenv("UNSPLASH_ACCESS_KEY", "  access  ")
    monkeypatch.setenv("ADMIN_TOKEN", "   ")
    monkeypatch.chdir(tmp_path)

    settings = get_settings()

    assert settings.version == "9.9.9"
    assert settings.unsplash_access_key == "access"
    assert settings.admin_api_token is None
    assert settings.log_file.parent.exists()


def test_settings_fallback_to_version_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    version_file = tmp_path / "VERSION"
    version_file.write_text("1.2.3", encoding="utf-8")
    monkeypatch.delenv("VERSION", raising=False)
    monkeypatch.chdir(tmp_path)

    settings = get_settings()

    assert settings.version == "1.2.3"
    assert settings.log_file.parent.exists()


def test_image_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "IMG_CACHE_DIR",
        "COVER_CACHE_TTL_SEC",
        "HERO_CACHE_TTL_SEC",
        "UNSPLASH_RATE_LIMIT",
        "UNSPLASH_MAX_BURST",
        "SEED_LIBRARY_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    settings = get_settings()

    assert settings.image_cache_dir == Path("img-cache")
    assert settings.cover_cache_ttl_sec == 3600
    assert settings.hero_cache_ttl_sec == 6 * 3600
    assert settings.unsplash_rate_limit == 50
    assert settings.unsplash_max_burst == 5
    assert settings.seed_library_path == DEFAULT_SEED_LIBRARY
    assert DEFAULT_SEED_LIBRARY.exists()


def test_limits_are_clamped(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("COVER_CACHE_TTL_SEC", "5")
    monkeypatch.setenv("UNSPLASH_RATE_LIMIT", "0")
    monkeypatch.setenv("UNSPLASH_MAX_BURST", "-3")
    monkeypatch.setenv("MEMORY_CACHE_SIZE", "0")
    monkeypatch.chdir(tmp_path)

    settings = get_settings()

    assert settings.cover_cache_ttl_sec == 60
    assert settings.unsplash_rate_limit == 1
    assert settings.unsplash_max_burst == 1
    assert settings.memory_cache_size == 1


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("postgres://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
        ("postgresql://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
        ("sqlite:///./data/x.db", "sqlite+aiosqlite:///./data/x.db"),
    ],
)
def test_database_url_normalised(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, raw: str, expected: str
) -> None:
    monkeypatch.setenv("DATABASE_URL", raw)
    monkeypatch.chdir(tmp_path)

    assert get_settings().database_url == expected
