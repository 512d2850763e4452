"""In-memory book and track records exchanged between sources, the sync pipeline and the store."""

from dataclasses import dataclass

from db.models import ID_NOT_YET_SET


@dataclass
class TrackRecord:
    """A single playable media unit as reported by a source."""

    id: int
    source: int
    parent_key: int = ID_NOT_YET_SET
    title: str = ""
    album: str = ""
    artist: str = ""
    thumb: str = ""
    genre: str = ""
    index: int = 0
    disc_number: int = 1
    duration: int = 0
    progress: int = 0
    last_viewed_at: int = 0
    media: str = ""

    @property
    def has_parent(self) -> bool:
        return self.parent_key != ID_NOT_YET_SET


@dataclass
class BookRecord:
    """
    An audiobook as reported by a source, synthesized from tracks, or read back from the store.

    Before upsert ``id`` is the source's own key (or the provisional key of a synthesized
    book); records returned by the store carry the canonical id instead.
    """

    id: int
    source: int
    title: str = ""
    title_sort: str = ""
    author: str = ""
    thumb: str = ""
    genre: str = ""
    duration: int = 0
    progress: int = 0
    leaf_count: int = 0
    is_cached: bool = False
    parent_id: int = ID_NOT_YET_SET
