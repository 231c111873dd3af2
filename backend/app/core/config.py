from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SEED_LIBRARY = Path(__file__).resolve().parents[1] / "images" / "cover_seeds.json"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/moodpeek.db",
        alias="DATABASE_URL",
    )
    log_file: Path = Field(default=Path("logs/moodpeek.log"))
    request_timeout_seconds: float = Field(default=10.0)
    retry_attempts: int = Field(default=3)
    admin_api_token: str | None = Field(default=None, alias="ADMIN_TOKEN")

    # Photo provider
    unsplash_access_key: str | None = Field(default=None, alias="UNSPLASH_ACCESS_KEY")
    unsplash_api_url: str = Field(default="https://api.unsplash.com", alias="UNSPLASH_API_URL")
    unsplash_rate_limit: int = Field(default=50, alias="UNSPLASH_RATE_LIMIT")
    unsplash_max_burst: int = Field(default=5, alias="UNSPLASH_MAX_BURST")

    # Image caches
    image_cache_dir: Path = Field(default=Path("img-cache"), alias="IMG_CACHE_DIR")
    cover_cache_ttl_sec: int = Field(default=3600, alias="COVER_CACHE_TTL_SEC")
    hero_cache_ttl_sec: int = Field(default=6 * 3600, alias="HERO_CACHE_TTL_SEC")
    memory_cache_size: int = Field(default=20, alias="MEMORY_CACHE_SIZE")
    memory_cache_ttl_sec: int = Field(default=900, alias="MEMORY_CACHE_TTL_SEC")
    image_cache_sweep_sec: int = Field(default=7 * 86400, alias="IMG_CACHE_SWEEP_SEC")
    seed_library_path: Path = Field(default=DEFAULT_SEED_LIBRARY, alias="SEED_LIBRARY_PATH")
    placeholder_url: str = Field(
        default="https://picsum.photos/seed/{key}/{width}/{height}",
        alias="PLACEHOLDER_URL",
    )

    # Weather enrichment for new entries
    weather_enabled: bool = Field(default=True, alias="WEATHER_ENABLED")
    weather_api_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        alias="WEATHER_API_URL",
    )

    version: str = Field(default_factory=lambda: Settings._load_version())

    @staticmethod
    def _load_version() -> str:
        version_env = os.getenv("VERSION")
        if version_env:
            return version_env
        version_file = Path("VERSION")
        if version_file.exists():
            return version_file.read_text(encoding="utf-8").strip()
        return "0.0.0"

    @field_validator("log_file", mode="before")
    @classmethod
    def _validate_log_file(cls, value: Path | str) -> Path:
        path = Path(value)
        if not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator(
        "cover_cache_ttl_sec",
        "hero_cache_ttl_sec",
        "memory_cache_ttl_sec",
        "image_cache_sweep_sec",
        mode="before",
    )
    @classmethod
    def _validate_ttl(cls, value: int | str | None) -> int:
        if value is None or value == "":
            return 3600
        return max(int(value), 60)

    @field_validator("unsplash_rate_limit", "unsplash_max_burst", "memory_cache_size", mode="before")
    @classmethod
    def _validate_positive(cls, value: int | str | None) -> int:
        if value is None or value == "":
            return 1
        return max(int(value), 1)

    @field_validator("unsplash_access_key", "admin_api_token", mode="before")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = str(value).strip()
        return stripped or None

    @field_validator("database_url", mode="before")
    @classmethod
    def _validate_database_url(cls, value: str | None) -> str:
        if not value:
            value = "sqlite:///./data/moodpeek.db"

        normalized = str(value)
        if normalized.startswith("postgres://"):
            normalized = normalized.replace("postgres://", "postgresql://", 1)
        if normalized.startswith("postgresql://") and "+asyncpg" not in normalized:
            normalized = normalized.replace("postgresql://", "postgresql+asyncpg://", 1)
        if normalized.startswith("sqlite://") and "+aiosqlite" not in normalized:
            normalized = normalized.replace("sqlite://", "sqlite+aiosqlite://", 1)

        if normalized.startswith("sqlite+aiosqlite:///"):
            db_path = normalized.split("///", maxsplit=1)[-1]
            if db_path and db_path != ":memory:":
                db_file = Path(db_path)
                db_file.parent.mkdir(parents=True, exist_ok=True)

        return normalized


@lru_cache
def get_settings() -> Settings:
    """Cached settings accessor."""

    return Settings()
