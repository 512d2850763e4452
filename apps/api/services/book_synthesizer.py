"""Derive books from tracks for sources that do not report book records."""

import logging
from collections.abc import Sequence

from db.models import ID_NOT_YET_SET
from services.media_types import BookRecord, TrackRecord
from services.metadata_reconciler import most_common
from services.progress import aggregate

logger = logging.getLogger(__name__)


def group_by_parent(tracks: Sequence[TrackRecord]) -> dict[int, list[TrackRecord]]:
    """Partition tracks by parent key, in first-seen order. Unassigned tracks are left out."""
    groups: dict[int, list[TrackRecord]] = {}
    for track in tracks:
        if not track.has_parent:
            continue
        groups.setdefault(track.parent_key, []).append(track)
    return groups


def make_audiobook(tracks_in_book: Sequence[TrackRecord], source_id: int, book_id: int) -> BookRecord:
    """Build one synthetic book from its tracks, picking metadata by majority vote."""
    title = most_common(tracks_in_book, lambda t: t.album)
    totals = aggregate(tracks_in_book)
    return BookRecord(
        id=book_id,
        source=source_id,
        title=title,
        title_sort=title,
        author=most_common(tracks_in_book, lambda t: t.artist),
        thumb=most_common(tracks_in_book, lambda t: t.thumb),
        genre=most_common(tracks_in_book, lambda t: t.genre),
        duration=totals.duration,
        progress=totals.progress,
        leaf_count=totals.leaf_count,
        is_cached=True,
        parent_id=ID_NOT_YET_SET,
    )


def make_books_from_tracks(source_id: int, tracks: Sequence[TrackRecord]) -> list[BookRecord]:
    """
    Synthesize one book per distinct parent key.

    The book's provisional id is the parent key shared by its tracks. Tracks without a
    parent key produce no book.
    """
    groups = group_by_parent(tracks)
    unassigned = len(tracks) - sum(len(group) for group in groups.values())
    if unassigned:
        logger.info("Source %s: %d track(s) have no parent key and were not grouped", source_id, unassigned)
    return [make_audiobook(group, source_id, parent_key) for parent_key, group in groups.items()]
