"""Fixtures for the Images API tests."""
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from database.memory_adapter import InMemoryImageStore
from images_api.config.settings import Settings, get_settings
from images_api.main import create_app

KB = 1024
MB = 1024 * 1024

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff\xe0"
GIF_SIGNATURE = b"GIF89a"


def image_bytes(size: int, signature: bytes = PNG_SIGNATURE) -> bytes:
    """Fake image payload of exactly `size` bytes."""
    return signature + b"\0" * (size - len(signature))


def image_part(filename: str, size: int = 10 * KB, content_type: str = "image/png", signature: bytes = PNG_SIGNATURE):
    """One entry of the multipart `images` field, as httpx expects it."""
    return ("images", (filename, image_bytes(size, signature), content_type))


def stored_files(upload_dir: Path) -> list:
    if not upload_dir.exists():
        return []
    return sorted(p.name for p in upload_dir.iterdir())


class TickingClock:
    """Returns a later UTC time on every call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc), step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current += self.step
        return now


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        store_backend="memory",
        upload_dir=str(tmp_path / "uploads"),
        sqlite_path=str(tmp_path / "images.db"),
        public_prefix="/uploads",
        max_file_size=2 * MB,
        max_files=10,
        cors_origins=["*"],
        static_dir=None,
        log_level="DEBUG",
    )


@pytest.fixture
def upload_dir(settings) -> Path:
    return Path(settings.upload_dir)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def image_store(clock) -> InMemoryImageStore:
    return InMemoryImageStore(clock=clock)


@pytest.fixture
def app(settings, image_store):
    return create_app(settings, image_store=image_store)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
