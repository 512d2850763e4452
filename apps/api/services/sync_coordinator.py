"""Top-level sync pass over every registered source."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.models import utc_now
from db.session import async_session_maker
from services.refresh_gate import should_run
from services.repositories import BookRepository, SyncStateRepository, TrackRepository
from services.source_sync import SourceSyncResult, SourceSyncRunner, SourceSyncStatus
from services.sources.base import SourceEnumerationError
from services.sources.manager import SourceManager

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    """Summary of one sync invocation."""

    success: bool
    ran: bool
    results: list[SourceSyncResult] = field(default_factory=list)
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def _count(self, status: SourceSyncStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def synced(self) -> int:
        return self._count(SourceSyncStatus.SYNCED)

    @property
    def skipped(self) -> int:
        return self._count(SourceSyncStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(SourceSyncStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "ran": self.ran,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "synced": self.synced,
            "skipped": self.skipped,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


class SyncCoordinator:
    """
    Runs a full sync pass: refresh gate, then every source in turn.

    One source failing never stops the others and never fails the pass. The pass only
    fails when the coordinator cannot read its refresh state or list the sources.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        source_manager: SourceManager | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.source_manager = source_manager or SourceManager(session, self.settings)
        self.state = SyncStateRepository(session)
        self.runner = SourceSyncRunner(BookRepository(session), TrackRepository(session))
        self._clock = clock

    async def run(
        self,
        force_sync: bool = False,
        progress_callback: Callable[[int, str], None] | None = None,
    ) -> SyncOutcome:
        """
        Execute one sync pass.

        Args:
            force_sync: Ignore the minimum refresh interval.
            progress_callback: Optional callback receiving (percent, message) per source.
        """
        started_at = self._clock()
        logger.info("Sync requested (force=%s)", force_sync)

        try:
            last_refreshed_at = await self.state.get_last_refreshed_at()
        except SQLAlchemyError as e:
            logger.exception("Could not read sync state")
            return SyncOutcome(success=False, ran=False, error=str(e), started_at=started_at, finished_at=self._clock())

        if not should_run(force_sync, last_refreshed_at, self.settings.refresh_rate_minutes, started_at):
            logger.info(
                "Library refreshed at %s, less than %d minute(s) ago; skipping sync",
                last_refreshed_at,
                self.settings.refresh_rate_minutes,
            )
            return SyncOutcome(success=True, ran=False, started_at=started_at, finished_at=self._clock())

        try:
            sources = await self.source_manager.get_sources()
        except SourceEnumerationError as e:
            logger.error("Sync aborted: %s", e)
            return SyncOutcome(success=False, ran=False, error=str(e), started_at=started_at, finished_at=self._clock())

        results: list[SourceSyncResult] = []
        total = len(sources)
        for idx, source in enumerate(sources):
            if progress_callback:
                progress_callback(int(idx / total * 100), f"Syncing source {source.name} ({idx + 1}/{total})")
            try:
                result = await self.runner.run(source)
            except Exception as e:
                logger.exception("Unexpected failure syncing source %s", source.name)
                await self.session.rollback()
                result = SourceSyncResult(source.id, source.name, SourceSyncStatus.FAILED, error=str(e))
            results.append(result)

        finished_at = self._clock()
        try:
            await self.state.set_last_refreshed_at(finished_at)
        except SQLAlchemyError:
            logger.exception("Could not record refresh time")
            await self.session.rollback()

        outcome = SyncOutcome(
            success=True,
            ran=True,
            results=results,
            started_at=started_at,
            finished_at=finished_at,
        )
        logger.info(
            "Sync complete: %d synced, %d skipped, %d failed",
            outcome.synced,
            outcome.skipped,
            outcome.failed,
        )
        return outcome


async def run_sync(force_sync: bool = False) -> SyncOutcome:
    """Open a database session and run one sync pass."""
    async with async_session_maker() as session:
        return await SyncCoordinator(session).run(force_sync)
