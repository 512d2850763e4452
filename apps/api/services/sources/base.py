"""Contract for media sources and the errors they raise."""

from abc import ABC, abstractmethod

from services.media_types import BookRecord, TrackRecord


class SourceError(Exception):
    """Base exception for media source operations."""
    pass


class SourceFetchError(SourceError):
    """Fetching books or tracks from a source failed."""
    pass


class SourceEnumerationError(SourceError):
    """The registered sources could not be listed."""
    pass


class MediaSource(ABC):
    """
    An external provider of tracks and, optionally, books.

    Implementations raise SourceFetchError when a fetch fails; an empty list means the
    source has nothing to report.
    """

    is_local: bool = False

    def __init__(self, id: int, name: str) -> None:
        self.id = id
        self.name = name

    @abstractmethod
    async def fetch_books(self) -> list[BookRecord]:
        """Return the books reported by the source. Sources without books return []."""

    @abstractmethod
    async def fetch_tracks(self) -> list[TrackRecord]:
        """Return every track the source currently holds."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, name={self.name!r})"
