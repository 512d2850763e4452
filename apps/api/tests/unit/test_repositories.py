"""Unit tests for the book, track and sync-state repositories."""

from datetime import UTC, datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Audiobook, MediaTrack
from services.media_types import BookRecord
from services.repositories import BookRepository, SyncStateRepository, TrackRepository


def _book(id: int, title: str = "Book", source: int = 1, **kwargs) -> BookRecord:
    return BookRecord(id=id, source=source, title=title, title_sort=title, **kwargs)


class TestBookRepository:
    """Tests for BookRepository."""

    @pytest.mark.asyncio
    async def test_upsert_inserts_and_assigns_canonical_ids(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)

        await repo.upsert(1, [_book(500, "A"), _book(600, "B")], is_local=False)
        books = await repo.get_books_for_source(1)

        assert [b.title for b in books] == ["A", "B"]
        rows = (await test_session.execute(select(Audiobook))).scalars().all()
        assert {r.source_key for r in rows} == {500, 600}
        assert {r.id for r in rows} == {b.id for b in books}

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)
        batch = [_book(500, "A", duration=1000), _book(600, "B")]

        await repo.upsert(1, batch, is_local=False)
        first = await repo.get_books_for_source(1)
        await repo.upsert(1, batch, is_local=False)
        second = await repo.get_books_for_source(1)

        assert first == second
        count = (await test_session.execute(select(func.count()).select_from(Audiobook))).scalar()
        assert count == 2

    @pytest.mark.asyncio
    async def test_upsert_overwrites_fields_and_keeps_id(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)

        await repo.upsert(1, [_book(500, "Old", leaf_count=1)], is_local=False)
        [before] = await repo.get_books_for_source(1)
        await repo.upsert(1, [_book(500, "New", leaf_count=4)], is_local=False)
        [after] = await repo.get_books_for_source(1)

        assert after.id == before.id
        assert after.title == "New"
        assert after.leaf_count == 4

    @pytest.mark.asyncio
    async def test_same_key_in_different_sources_are_distinct(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)

        await repo.upsert(1, [_book(500, "One")], is_local=False)
        await repo.upsert(2, [_book(500, "Two", source=2)], is_local=False)

        assert [b.title for b in await repo.get_books_for_source(1)] == ["One"]
        assert [b.title for b in await repo.get_books_for_source(2)] == ["Two"]

    @pytest.mark.asyncio
    async def test_local_books_are_cached(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)

        await repo.upsert(1, [_book(500, is_cached=False)], is_local=True)
        [book] = await repo.get_books_for_source(1)

        assert book.is_cached is True

    @pytest.mark.asyncio
    async def test_remote_books_keep_stored_cache_flag(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)

        await repo.upsert(1, [_book(500)], is_local=False)
        [book] = await repo.get_books_for_source(1)
        assert book.is_cached is False

        row = await repo.get_book(book.id)
        row.is_cached = True
        await test_session.commit()

        await repo.upsert(1, [_book(500, title="Renamed")], is_local=False)
        [book] = await repo.get_books_for_source(1)
        assert book.is_cached is True
        assert book.title == "Renamed"

    @pytest.mark.asyncio
    async def test_include_local_adds_local_sources(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)

        await repo.upsert(1, [_book(1, "Remote")], is_local=False)
        await repo.upsert(2, [_book(2, "Local", source=2)], is_local=True)

        assert [b.title for b in await repo.get_books_for_source(1)] == ["Remote"]
        assert [b.title for b in await repo.get_books_for_source(1, include_local=True)] == ["Remote", "Local"]

    @pytest.mark.asyncio
    async def test_books_missing_from_batch_are_removed(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)

        await repo.upsert(1, [_book(500, "Kept"), _book(600, "Gone")], is_local=False)
        await repo.upsert(2, [_book(600, "Other source", source=2)], is_local=False)
        await repo.upsert(1, [_book(500, "Kept")], is_local=False)

        assert [b.title for b in await repo.get_books_for_source(1)] == ["Kept"]
        assert [b.title for b in await repo.get_books_for_source(2)] == ["Other source"]

    @pytest.mark.asyncio
    async def test_upsert_leaves_commit_to_caller(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)

        await repo.upsert(1, [_book(500, "A")], is_local=False)
        await test_session.rollback()

        assert await repo.get_books_for_source(1) == []

    @pytest.mark.asyncio
    async def test_timestamps_are_timezone_aware(self, test_session: AsyncSession) -> None:
        repo = BookRepository(test_session)

        await repo.upsert(1, [_book(500, "A")], is_local=False)
        await repo.upsert(1, [_book(500, "B")], is_local=False)

        row = (await test_session.execute(select(Audiobook))).scalar_one()
        assert row.created_at.tzinfo is not None
        assert row.updated_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_book_missing(self, test_session: AsyncSession) -> None:
        assert await BookRepository(test_session).get_book(12345) is None


class TestTrackRepository:
    """Tests for TrackRepository."""

    @pytest.mark.asyncio
    async def test_upsert_and_play_order(self, test_session: AsyncSession, make_track) -> None:
        repo = TrackRepository(test_session)
        tracks = [
            make_track(3, parent_key=42, index=1, disc_number=2),
            make_track(1, parent_key=42, index=2),
            make_track(2, parent_key=42, index=1),
            make_track(9, parent_key=7),
        ]

        await repo.upsert(1, tracks)
        ordered = await repo.get_tracks_for_book(42)

        assert [t.source_key for t in ordered] == [2, 1, 3]

    @pytest.mark.asyncio
    async def test_upsert_overwrites_without_duplicates(self, test_session: AsyncSession, make_track) -> None:
        repo = TrackRepository(test_session)

        await repo.upsert(1, [make_track(1, parent_key=5)])
        await repo.upsert(1, [make_track(1, parent_key=42, progress=700)])

        rows = (await test_session.execute(select(MediaTrack))).scalars().all()
        assert len(rows) == 1
        assert rows[0].parent_key == 42
        assert rows[0].progress == 700

    @pytest.mark.asyncio
    async def test_tracks_missing_from_batch_are_removed(self, test_session: AsyncSession, make_track) -> None:
        repo = TrackRepository(test_session)

        await repo.upsert(1, [make_track(1, parent_key=5), make_track(2, parent_key=5)])
        await repo.upsert(1, [make_track(2, parent_key=5)])

        rows = (await test_session.execute(select(MediaTrack))).scalars().all()
        assert [r.source_key for r in rows] == [2]


class TestSyncStateRepository:
    """Tests for SyncStateRepository."""

    @pytest.mark.asyncio
    async def test_never_refreshed(self, test_session: AsyncSession) -> None:
        assert await SyncStateRepository(test_session).get_last_refreshed_at() is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, test_session: AsyncSession) -> None:
        repo = SyncStateRepository(test_session)
        stamp = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)

        await repo.set_last_refreshed_at(stamp)
        await repo.set_last_refreshed_at(stamp.replace(hour=13))

        assert await repo.get_last_refreshed_at() == stamp.replace(hour=13)
