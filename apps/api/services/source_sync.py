"""Per-source sync: fetch, synthesize books if needed, aggregate, and persist."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from services.book_synthesizer import make_books_from_tracks
from services.media_types import BookRecord, TrackRecord
from services.progress import aggregate
from services.repositories import BookRepository, TrackRepository
from services.sources.base import MediaSource, SourceFetchError

logger = logging.getLogger(__name__)


class SourceSyncStatus(str, Enum):
    """Outcome of syncing one source."""

    SYNCED = "SYNCED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass
class SourceSyncResult:
    """What happened to one source during a sync pass."""

    source_id: int
    source_name: str
    status: SourceSyncStatus
    books: int = 0
    tracks: int = 0
    synthesized: bool = False
    remapped: int = 0
    unmatched: int = 0
    ambiguous_titles: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "source_name": self.source_name,
            "status": self.status.value,
            "books": self.books,
            "tracks": self.tracks,
            "synthesized": self.synthesized,
            "remapped": self.remapped,
            "unmatched": self.unmatched,
            "ambiguous_titles": list(self.ambiguous_titles),
            "error": self.error,
        }


@dataclass
class RemapResult:
    """Tracks with parent keys pointing at canonical book ids."""

    tracks: list[TrackRecord]
    remapped: int = 0
    unmatched: int = 0
    ambiguous_titles: list[str] = field(default_factory=list)


def attach_track_info(books: Sequence[BookRecord], tracks: Sequence[TrackRecord]) -> list[BookRecord]:
    """
    Recompute duration, progress and leaf count of each book from its tracks.

    A book's tracks are those whose parent key equals the book's id. Tracks pointing at
    no book in the batch count towards nothing.
    """
    by_parent: dict[int, list[TrackRecord]] = {}
    for track in tracks:
        by_parent.setdefault(track.parent_key, []).append(track)

    updated = []
    for book in books:
        totals = aggregate(by_parent.get(book.id, []))
        updated.append(
            replace(book, duration=totals.duration, progress=totals.progress, leaf_count=totals.leaf_count)
        )
    return updated


def remap_track_parents(tracks: Sequence[TrackRecord], canonical_books: Sequence[BookRecord]) -> RemapResult:
    """
    Point each track at the canonical book whose title equals the track's album.

    ``canonical_books`` are the books just stored for the batch. Tracks with no matching
    title keep their parent key. A title held by more than one canonical book is
    ambiguous and its tracks keep their parent key too.
    """
    by_title: dict[str, list[BookRecord]] = {}
    for book in canonical_books:
        by_title.setdefault(book.title, []).append(book)
    ambiguous = sorted(title for title, books in by_title.items() if len(books) > 1)
    for title in ambiguous:
        logger.warning(
            "Title %r is shared by books %s; leaving its tracks unresolved",
            title,
            [b.id for b in by_title[title]],
        )

    result = RemapResult(tracks=[], ambiguous_titles=ambiguous)
    for track in tracks:
        matches = by_title.get(track.album)
        if matches and len(matches) == 1:
            result.tracks.append(replace(track, parent_key=matches[0].id))
            result.remapped += 1
        else:
            if not matches:
                logger.debug("No book for track %s (album %r)", track.title, track.album)
            result.tracks.append(track)
            result.unmatched += 1
    return result


class SourceSyncRunner:
    """Runs the sync pipeline for a single source."""

    def __init__(self, book_repository: BookRepository, track_repository: TrackRepository) -> None:
        self.book_repository = book_repository
        self.track_repository = track_repository

    async def run(self, source: MediaSource) -> SourceSyncResult:
        """
        Sync one source into the store.

        Fetch failures and store errors are reported in the result, never raised.
        Nothing is written unless both fetches succeed, and books and tracks are
        committed together or not at all.
        """
        try:
            fetched_books = await source.fetch_books()
            tracks = await source.fetch_tracks()
        except SourceFetchError as e:
            logger.warning("Skipping source %s: %s", source.name, e)
            return SourceSyncResult(source.id, source.name, SourceSyncStatus.FAILED, error=str(e))

        if not tracks:
            logger.info("Source %s reported no tracks, nothing to sync", source.name)
            return SourceSyncResult(source.id, source.name, SourceSyncStatus.SKIPPED)

        synthesized = not fetched_books
        books = make_books_from_tracks(source.id, tracks) if synthesized else list(fetched_books)
        books = attach_track_info(books, tracks)
        logger.info("Source %s: generated books %s", source.name, [b.title for b in books])

        try:
            await self.book_repository.upsert(source.id, books, source.is_local)
            canonical = await self.book_repository.get_books_for_source(source.id, include_local=False)
            remap = remap_track_parents(tracks, canonical)
            await self.track_repository.upsert(source.id, remap.tracks)
            await self.book_repository.session.commit()
        except SQLAlchemyError as e:
            logger.exception("Store error while syncing source %s", source.name)
            await self.book_repository.session.rollback()
            return SourceSyncResult(source.id, source.name, SourceSyncStatus.FAILED, error=str(e))

        return SourceSyncResult(
            source_id=source.id,
            source_name=source.name,
            status=SourceSyncStatus.SYNCED,
            books=len(books),
            tracks=len(remap.tracks),
            synthesized=synthesized,
            remapped=remap.remapped,
            unmatched=remap.unmatched,
            ambiguous_titles=remap.ambiguous_titles,
        )
