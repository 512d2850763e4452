"""Pytest fixtures for API tests."""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from core.config import Settings, get_settings
from db.session import get_session
from main import app
from services.media_types import BookRecord, TrackRecord
from services.sources.base import MediaSource, SourceFetchError


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeSource(MediaSource):
    """In-memory source returning canned books and tracks."""

    def __init__(
        self,
        id: int = 1,
        name: str = "fake",
        books: list[BookRecord] | None = None,
        tracks: list[TrackRecord] | None = None,
        is_local: bool = False,
        fail: bool = False,
    ) -> None:
        super().__init__(id, name)
        self.books = books or []
        self.tracks = tracks or []
        self.is_local = is_local
        self.fail = fail

    async def fetch_books(self) -> list[BookRecord]:
        if self.fail:
            raise SourceFetchError(f"{self.name} is unreachable")
        return list(self.books)

    async def fetch_tracks(self) -> list[TrackRecord]:
        if self.fail:
            raise SourceFetchError(f"{self.name} is unreachable")
        return list(self.tracks)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings with overrides."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        debug=True,
        environment="development",
        data_dir="/tmp/test_library_data",
        refresh_rate_minutes=60,
    )


@pytest.fixture
async def test_engine(test_settings: Settings) -> AsyncGenerator[Any, None]:
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_session(test_engine: Any) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session_maker = sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
async def client(
    test_session: AsyncSession,
    test_settings: Settings,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with dependency overrides."""

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        yield test_session

    def override_get_settings() -> Settings:
        return test_settings

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_settings] = override_get_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_track() -> Callable[..., TrackRecord]:
    """Factory for track records with sensible defaults."""

    def _make(id: int, parent_key: int = 100, album: str = "Book1", **kwargs: Any) -> TrackRecord:
        fields: dict[str, Any] = {
            "source": 1,
            "title": f"Track {id}",
            "artist": "Author",
            "duration": 1000,
            "index": id,
        }
        fields.update(kwargs)
        return TrackRecord(id=id, parent_key=parent_key, album=album, **fields)

    return _make


@pytest.fixture
def fake_source() -> type[FakeSource]:
    """The in-memory source class, for tests that build their own."""
    return FakeSource
