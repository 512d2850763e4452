"""Build media sources from the registered source rows."""

import logging
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.models import LibrarySource, SourceKind
from services.sources.base import MediaSource, SourceEnumerationError
from services.sources.local import LocalMediaSource
from services.sources.remote import RemoteCatalogSource
from services.track_probe import TrackProbe

logger = logging.getLogger(__name__)


class SourceManager:
    """Lists the enabled sources a sync pass should visit."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    async def get_sources(self) -> list[MediaSource]:
        """
        Return one MediaSource per enabled registration, ordered by id.

        Raises:
            SourceEnumerationError: If the registrations cannot be read.
        """
        try:
            result = await self.session.execute(
                select(LibrarySource).where(LibrarySource.enabled.is_(True)).order_by(LibrarySource.id)
            )
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise SourceEnumerationError(f"Failed to list sources: {e}") from e

        return [self.build_source(row) for row in rows]

    def build_source(self, row: LibrarySource) -> MediaSource:
        if row.kind == SourceKind.FILESYSTEM:
            return LocalMediaSource(
                id=row.id,
                name=row.name,
                root=Path(row.location),
                probe=TrackProbe(self.settings.ffprobe_path),
                concurrency=self.settings.probe_concurrency,
            )
        return RemoteCatalogSource(
            id=row.id,
            name=row.name,
            base_url=row.location,
            token=row.token,
            timeout=self.settings.remote_timeout_seconds,
        )
