"""Test configuration and fixtures."""

import io
import itertools
from typing import Callable

import pytest
from fastapi.testclient import TestClient
from PIL import Image as PILImage

import repository as repository_module
from app import create_app
from config import Settings
from database import build_engine, init_db
from gallery import GalleryService
from ingest import IngestionPipeline
from repository import OrigamiRepository
from store import ContentStore


def make_image(
    width: int = 1200, height: int = 800, fmt: str = "JPEG", color=(200, 120, 40)
) -> bytes:
    """Encode a solid-colour test image with a contrasting stripe."""
    im = PILImage.new("RGB", (width, height), color)
    for x in range(0, width, 7):
        im.putpixel((x, height // 2), (10, 200, 90))
    buf = io.BytesIO()
    im.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    return make_image


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated to an in-memory database and a temp store."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        storage_dir=tmp_path / "out",
        templates_dir=tmp_path / "templates",
        static_dir=tmp_path / "static",
        log_level="WARNING",
    )


@pytest.fixture
def engine(settings):
    eng = build_engine(settings)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def repository(engine) -> OrigamiRepository:
    return OrigamiRepository(engine)


@pytest.fixture
def store(settings) -> ContentStore:
    return ContentStore(settings.storage_dir)


@pytest.fixture
def gallery(repository) -> GalleryService:
    return GalleryService(repository, page_size=5)


@pytest.fixture
def pipeline(store, repository) -> IngestionPipeline:
    return IngestionPipeline(store, repository)


@pytest.fixture
def clock(monkeypatch):
    """Strictly increasing timestamps for the repository."""
    ticks = itertools.count(1_700_000_000_000)
    monkeypatch.setattr(repository_module, "now_millis", lambda: next(ticks))
    return ticks


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
