"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from tmpstore.config import StoreSettings
from tmpstore.main import create_app
from tmpstore.storage import BlobStore


class FakeClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    return tmp_path / "blobs"


@pytest.fixture
def store(store_dir: Path, clock: FakeClock) -> BlobStore:
    """A store with small limits and a controllable clock."""
    return BlobStore(
        store_dir,
        max_entry_size=1024,
        sweep_interval=timedelta(minutes=5),
        entry_lifetime=timedelta(hours=1),
        clock=clock,
    )


@pytest.fixture
async def client(store: BlobStore) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client bound to the test store."""
    app = create_app(StoreSettings(directory=store.directory), store=store)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
