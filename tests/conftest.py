from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from pathlib import Path
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.app.core.config import get_settings

try:
    from backend.db import create_engine, create_session_factory, init_db
except ModuleNotFoundError:  # pragma: no cover - optional test dependency
    create_engine = create_session_factory = init_db = None

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64 + b"\xff\xd9"


def jpeg_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=JPEG_BYTES, headers={"Content-Type": "image/jpeg"})


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def test_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    if create_engine is None or init_db is None:
        pytest.skip("database test dependencies not installed")
    monkeypatch.delenv("UNSPLASH_ACCESS_KEY", raising=False)
    monkeypatch.setenv("VERSION", "0.1.0-test")
    monkeypatch.setenv("ADMIN_TOKEN", "test-admin")
    monkeypatch.setenv("WEATHER_ENABLED", "false")
    monkeypatch.setenv("IMG_CACHE_DIR", str(tmp_path / "img-cache"))
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "logs" / "moodpeek.log"))
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    get_settings.cache_clear()

    from backend.app.main import app

    try:
        with TestClient(app) as client:
            yield client
    finally:
        get_settings.cache_clear()


@pytest.fixture()
def offline_images(test_client: TestClient) -> Callable[..., None]:
    """Swap the app's image service for one whose upstream calls hit a mock transport."""

    from backend.app.images import ImageResolutionService

    def _install(handler: Callable[[httpx.Request], httpx.Response] = jpeg_response) -> None:
        settings = test_client.app.state.settings
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        service = ImageResolutionService.from_settings(settings, client)
        service.disk_cache.ensure_directory()
        test_client.app.state.image_service = service

    _install()
    return _install


@pytest.fixture()
def temp_session_factory(tmp_path: Path):
    if create_engine is None or init_db is None:
        pytest.skip("database test dependencies not installed")
    db_path = tmp_path / f"unit_{uuid4().hex}.db"
    database_url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_engine(database_url)
    session_factory = create_session_factory(engine)
    asyncio.run(init_db(engine, session_factory, "test", database_url))
    try:
        yield session_factory
    finally:
        asyncio.run(engine.dispose())
