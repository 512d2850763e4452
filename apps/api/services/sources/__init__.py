"""Media sources."""

from .base import MediaSource, SourceEnumerationError, SourceError, SourceFetchError
from .local import LocalMediaSource
from .manager import SourceManager
from .remote import RemoteCatalogSource

__all__ = [
    "LocalMediaSource",
    "MediaSource",
    "RemoteCatalogSource",
    "SourceEnumerationError",
    "SourceError",
    "SourceFetchError",
    "SourceManager",
]
