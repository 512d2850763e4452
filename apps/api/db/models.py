"""Database models using SQLModel."""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

import sqlalchemy as sa
from pydantic import field_validator
from sqlmodel import Field, SQLModel

# Parent reference used before a book or track has been linked to a canonical book.
ID_NOT_YET_SET = -1


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


class SourceKind(str, Enum):
    """Kind of media source."""

    FILESYSTEM = "FILESYSTEM"
    REMOTE = "REMOTE"


class JobType(str, Enum):
    """Job task type."""

    SYNC = "SYNC"


class JobStatus(str, Enum):
    """Job execution status."""

    PENDING = "PENDING"
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class LibrarySourceBase(SQLModel):
    """Base model for a registered media source."""

    name: str = Field(index=True, description="Display name")
    kind: SourceKind = Field(description="Filesystem scan or remote catalog server")
    location: str = Field(description="Root directory (FILESYSTEM) or base URL (REMOTE)")
    token: str | None = Field(default=None, description="Bearer token for remote catalog servers")
    enabled: bool = Field(default=True, description="Disabled sources are skipped by sync")


class LibrarySource(LibrarySourceBase, table=True):
    """Registered media source table model."""

    __tablename__ = "library_sources"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=sa.DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=sa.DateTime(timezone=True))


class LibrarySourceCreate(LibrarySourceBase):
    """Schema for registering a source."""

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("location must not be empty")
        return v.strip()


class LibrarySourceRead(SQLModel):
    """Schema for reading a source. The token is never returned."""

    id: int
    name: str
    kind: SourceKind
    location: str
    enabled: bool
    created_at: datetime
    updated_at: datetime


class AudiobookBase(SQLModel):
    """Base audiobook model with common fields."""

    source_id: int = Field(index=True, description="Source the book was synced from")
    title: str = Field(default="", index=True)
    title_sort: str = Field(default="")
    author: str = Field(default="")
    thumb: str = Field(default="", description="Cover art reference")
    genre: str = Field(default="")
    duration: int = Field(default=0, sa_type=sa.BigInteger, description="Total duration in ms")
    progress: int = Field(default=0, sa_type=sa.BigInteger, description="Playback position in ms")
    leaf_count: int = Field(default=0, sa_type=sa.BigInteger, description="Number of tracks")
    is_cached: bool = Field(default=False, description="Media available offline")
    parent_id: int = Field(default=ID_NOT_YET_SET, description="Parent reference for hierarchical sources")


class Audiobook(AudiobookBase, table=True):
    """Audiobook table model. ``id`` is the canonical identifier owned by the store."""

    __tablename__ = "audiobooks"
    __table_args__ = (sa.UniqueConstraint("source_id", "source_key", name="uq_audiobooks_source_key"),)

    id: int | None = Field(default=None, primary_key=True)
    source_key: int = Field(
        sa_type=sa.BigInteger,
        index=True,
        description="Book id reported by the source, or the provisional id of a synthesized book",
    )
    is_local: bool = Field(default=False, description="Synced from a local/offline source")
    created_at: datetime = Field(default_factory=utc_now, sa_type=sa.DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=sa.DateTime(timezone=True))


class AudiobookRead(AudiobookBase):
    """Schema for reading an audiobook."""

    id: int
    source_key: int
    is_local: bool
    created_at: datetime
    updated_at: datetime


class MediaTrackBase(SQLModel):
    """Base track model with common fields."""

    source_id: int = Field(index=True)
    parent_key: int = Field(
        default=ID_NOT_YET_SET,
        sa_type=sa.BigInteger,
        index=True,
        description="Canonical id of the owning audiobook once resolved",
    )
    title: str = Field(default="")
    album: str = Field(default="")
    artist: str = Field(default="")
    thumb: str = Field(default="")
    genre: str = Field(default="")
    index: int = Field(default=0, description="Track number within its book")
    disc_number: int = Field(default=1)
    duration: int = Field(default=0, sa_type=sa.BigInteger, description="Duration in ms")
    progress: int = Field(default=0, sa_type=sa.BigInteger, description="Playback position in ms")
    last_viewed_at: int = Field(default=0, sa_type=sa.BigInteger, description="Epoch ms, 0 if never played")
    media: str = Field(default="", description="File path or stream URL")


class MediaTrack(MediaTrackBase, table=True):
    """Track table model."""

    __tablename__ = "tracks"
    __table_args__ = (sa.UniqueConstraint("source_id", "source_key", name="uq_tracks_source_key"),)

    id: int | None = Field(default=None, primary_key=True)
    source_key: int = Field(sa_type=sa.BigInteger, index=True, description="Track id reported by the source")
    created_at: datetime = Field(default_factory=utc_now, sa_type=sa.DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=sa.DateTime(timezone=True))


class MediaTrackRead(MediaTrackBase):
    """Schema for reading a track."""

    id: int
    source_key: int
    created_at: datetime
    updated_at: datetime


class SyncState(SQLModel, table=True):
    """Sync bookkeeping singleton table."""

    __tablename__ = "sync_state"

    id: int = Field(default=1, primary_key=True)  # Singleton pattern
    last_refreshed_at: datetime | None = Field(
        default=None, sa_type=sa.DateTime(timezone=True), description="End of the last completed sync pass"
    )
    updated_at: datetime = Field(default_factory=utc_now, sa_type=sa.DateTime(timezone=True))


class JobBase(SQLModel):
    """Base job model."""

    task_type: JobType = Field(description="Type of job task")


class Job(JobBase, table=True):
    """Job database table model."""

    __tablename__ = "jobs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    status: JobStatus = Field(default=JobStatus.PENDING, index=True)
    progress_percent: int = Field(default=0, ge=0, le=100)
    status_message: str | None = Field(default=None, description="Latest human-readable status message")
    error_message: str | None = Field(default=None)
    result_json: str | None = Field(default=None, description="JSON result summary")
    payload_json: str | None = Field(default=None, description="JSON payload with job-specific config")
    started_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))
    completed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utc_now, sa_type=sa.DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=sa.DateTime(timezone=True))


class JobRead(JobBase):
    """Schema for reading a job."""

    id: UUID
    status: JobStatus
    progress_percent: int
    status_message: str | None
    error_message: str | None
    result_json: str | None
    payload_json: str | None
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime
