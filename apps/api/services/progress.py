"""Aggregate duration, playback progress and track count for a book's tracks."""

from collections.abc import Sequence
from typing import NamedTuple

from services.media_types import TrackRecord


class BookAggregate(NamedTuple):
    """Aggregate fields of a book derived from its track set."""

    duration: int
    progress: int
    leaf_count: int


def _play_order(tracks: Sequence[TrackRecord]) -> list[TrackRecord]:
    # sorted() is stable, so tracks sharing a position keep their input order
    return sorted(tracks, key=lambda t: (t.disc_number, t.index))


def get_duration(tracks: Sequence[TrackRecord]) -> int:
    """Total duration in ms. Never negative."""
    return max(0, sum(t.duration for t in tracks))


def get_active_track(tracks: Sequence[TrackRecord]) -> TrackRecord | None:
    """
    Return the track the listener is currently on.

    That is the most recently viewed track; when nothing has been played yet it is the
    first track in play order. Returns None for an empty sequence.
    """
    if not tracks:
        return None
    ordered = _play_order(tracks)
    most_recent = max(ordered, key=lambda t: t.last_viewed_at)
    if most_recent.last_viewed_at <= 0:
        return ordered[0]
    return most_recent


def get_progress(tracks: Sequence[TrackRecord]) -> int:
    """
    Book-level playback position in ms.

    Sum of the durations of all tracks played before the active track, plus the
    position inside the active track.
    """
    active = get_active_track(tracks)
    if active is None:
        return 0
    ordered = _play_order(tracks)
    previous = ordered[: next(i for i, t in enumerate(ordered) if t is active)]
    return get_duration(previous) + max(0, active.progress)


def aggregate(tracks: Sequence[TrackRecord]) -> BookAggregate:
    """Compute duration, progress and leaf count for a book's tracks."""
    return BookAggregate(
        duration=get_duration(tracks),
        progress=get_progress(tracks),
        leaf_count=len(tracks),
    )
