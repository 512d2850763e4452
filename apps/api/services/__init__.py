"""Services module."""

from .book_synthesizer import make_audiobook, make_books_from_tracks
from .job_manager import JobManager
from .media_types import BookRecord, TrackRecord
from .repositories import BookRepository, SyncStateRepository, TrackRepository
from .source_sync import SourceSyncResult, SourceSyncRunner, SourceSyncStatus
from .sync_coordinator import SyncCoordinator, SyncOutcome, run_sync

__all__ = [
    # Records
    "BookRecord",
    "TrackRecord",
    # Synthesis
    "make_audiobook",
    "make_books_from_tracks",
    # Repositories
    "BookRepository",
    "TrackRepository",
    "SyncStateRepository",
    # Sync
    "SourceSyncRunner",
    "SourceSyncResult",
    "SourceSyncStatus",
    "SyncCoordinator",
    "SyncOutcome",
    "run_sync",
    # JobManager
    "JobManager",
]
