"""Async repositories persisting synced books, tracks and refresh state."""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Audiobook, MediaTrack, SyncState, utc_now
from services.media_types import BookRecord, TrackRecord

logger = logging.getLogger(__name__)


def _assign(row: Any, values: dict[str, Any]) -> bool:
    """Copy values onto a row. Returns True if anything changed."""
    changed = False
    for name, value in values.items():
        if getattr(row, name) != value:
            setattr(row, name, value)
            changed = True
    return changed


async def _delete_missing(session: AsyncSession, existing: dict[int, Any], keep: set[int]) -> int:
    """Delete rows whose source key is not in ``keep`` and drop them from ``existing``."""
    stale = [key for key in existing if key not in keep]
    for key in stale:
        await session.delete(existing.pop(key))
    return len(stale)


def _book_values(book: BookRecord) -> dict[str, Any]:
    return {
        "title": book.title,
        "title_sort": book.title_sort,
        "author": book.author,
        "thumb": book.thumb,
        "genre": book.genre,
        "duration": book.duration,
        "progress": book.progress,
        "leaf_count": book.leaf_count,
        "parent_id": book.parent_id,
    }


def _track_values(track: TrackRecord) -> dict[str, Any]:
    return {
        "parent_key": track.parent_key,
        "title": track.title,
        "album": track.album,
        "artist": track.artist,
        "thumb": track.thumb,
        "genre": track.genre,
        "index": track.index,
        "disc_number": track.disc_number,
        "duration": track.duration,
        "progress": track.progress,
        "last_viewed_at": track.last_viewed_at,
        "media": track.media,
    }


def to_book_record(row: Audiobook) -> BookRecord:
    """Project a stored audiobook onto a record carrying its canonical id."""
    return BookRecord(
        id=row.id,
        source=row.source_id,
        title=row.title,
        title_sort=row.title_sort,
        author=row.author,
        thumb=row.thumb,
        genre=row.genre,
        duration=row.duration,
        progress=row.progress,
        leaf_count=row.leaf_count,
        is_cached=row.is_cached,
        parent_id=row.parent_id,
    )


class BookRepository:
    """Audiobook store keyed by (source id, source key)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, source_id: int, books: Sequence[BookRecord], is_local: bool) -> None:
        """
        Replace the stored books of a source with the given batch.

        Existing rows keep their canonical id. Rows of the source whose key is not in
        the batch are deleted. Books from a local source are always marked cached; for
        other sources the stored cache flag is left alone.

        Changes are flushed, not committed; the caller owns the transaction.
        """
        result = await self.session.execute(select(Audiobook).where(Audiobook.source_id == source_id))
        existing = {row.source_key: row for row in result.scalars().all()}
        removed = await _delete_missing(self.session, existing, {book.id for book in books})
        now = utc_now()
        inserted = updated = 0

        for book in books:
            values = _book_values(book)
            values["is_local"] = is_local
            row = existing.get(book.id)
            if row is None:
                row = Audiobook(source_id=source_id, source_key=book.id, is_cached=is_local, **values)
                self.session.add(row)
                existing[book.id] = row
                inserted += 1
                continue
            if is_local:
                values["is_cached"] = True
            if _assign(row, values):
                row.updated_at = now
                updated += 1

        await self.session.flush()
        logger.info(
            "Source %s: upserted books (%d new, %d updated, %d removed)", source_id, inserted, updated, removed
        )

    async def get_books_for_source(self, source_id: int, include_local: bool = False) -> list[BookRecord]:
        """
        Return the canonical books of a source.

        With ``include_local`` the books of every local source are returned as well.
        """
        condition = Audiobook.source_id == source_id
        if include_local:
            condition = or_(condition, Audiobook.is_local.is_(True))
        result = await self.session.execute(select(Audiobook).where(condition).order_by(Audiobook.id))
        return [to_book_record(row) for row in result.scalars().all()]

    async def get_book(self, book_id: int) -> Audiobook | None:
        result = await self.session.execute(select(Audiobook).where(Audiobook.id == book_id))
        return result.scalar_one_or_none()


class TrackRepository:
    """Track store keyed by (source id, source key)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, source_id: int, tracks: Sequence[TrackRecord]) -> None:
        """Replace the stored tracks of a source with the given batch. Flushes, never commits."""
        result = await self.session.execute(select(MediaTrack).where(MediaTrack.source_id == source_id))
        existing = {row.source_key: row for row in result.scalars().all()}
        removed = await _delete_missing(self.session, existing, {track.id for track in tracks})
        now = utc_now()
        inserted = updated = 0

        for track in tracks:
            values = _track_values(track)
            row = existing.get(track.id)
            if row is None:
                row = MediaTrack(source_id=source_id, source_key=track.id, **values)
                self.session.add(row)
                existing[track.id] = row
                inserted += 1
                continue
            if _assign(row, values):
                row.updated_at = now
                updated += 1

        await self.session.flush()
        logger.info(
            "Source %s: upserted tracks (%d new, %d updated, %d removed)", source_id, inserted, updated, removed
        )

    async def get_tracks_for_book(self, book_id: int) -> list[MediaTrack]:
        """Tracks whose parent key is the book's canonical id, in play order."""
        result = await self.session.execute(
            select(MediaTrack)
            .where(MediaTrack.parent_key == book_id)
            .order_by(MediaTrack.disc_number, MediaTrack.index, MediaTrack.id)
        )
        return list(result.scalars().all())


class SyncStateRepository:
    """Read/write access to the last-refresh timestamp."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _get_or_create(self) -> SyncState:
        result = await self.session.execute(select(SyncState).where(SyncState.id == 1))
        state = result.scalar_one_or_none()
        if not state:
            state = SyncState(id=1)
            self.session.add(state)
        return state

    async def get_last_refreshed_at(self) -> datetime | None:
        result = await self.session.execute(select(SyncState).where(SyncState.id == 1))
        state = result.scalar_one_or_none()
        return state.last_refreshed_at if state else None

    async def set_last_refreshed_at(self, value: datetime) -> None:
        state = await self._get_or_create()
        state.last_refreshed_at = value
        state.updated_at = utc_now()
        await self.session.commit()
