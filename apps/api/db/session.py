"""Async engine and sessions for the library store."""

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from core.config import get_settings

settings = get_settings()


def engine_options(database_url: str) -> dict[str, Any]:
    """Backend specific engine arguments."""
    if make_url(database_url).get_backend_name() == "sqlite":
        # Sync jobs and requests write through separate connections to one file.
        return {"connect_args": {"timeout": 30}}
    return {"pool_pre_ping": True}


def sqlite_file(database_url: str) -> Path | None:
    """Path of the SQLite database file, or None for other backends and in-memory databases."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return None
    return Path(url.database)


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    **engine_options(settings.database_url),
)

async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables() -> None:
    """Create the database file's directory and every table."""
    db_file = sqlite_file(settings.database_url)
    if db_file is not None:
        db_file.parent.mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
