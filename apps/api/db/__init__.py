"""Database module."""

from .models import (
    ID_NOT_YET_SET,
    Audiobook,
    AudiobookRead,
    Job,
    JobRead,
    JobStatus,
    JobType,
    LibrarySource,
    LibrarySourceCreate,
    LibrarySourceRead,
    MediaTrack,
    MediaTrackRead,
    SourceKind,
    SyncState,
)
from .session import create_db_and_tables, get_session

__all__ = [
    "ID_NOT_YET_SET",
    "Audiobook",
    "AudiobookRead",
    "Job",
    "JobRead",
    "JobStatus",
    "JobType",
    "LibrarySource",
    "LibrarySourceCreate",
    "LibrarySourceRead",
    "MediaTrack",
    "MediaTrackRead",
    "SourceKind",
    "SyncState",
    "create_db_and_tables",
    "get_session",
]
