"""Unit tests for the sync coordinator."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from services.repositories import BookRepository, SyncStateRepository
from services.source_sync import SourceSyncStatus
from services.sources.base import SourceEnumerationError
from services.sync_coordinator import SyncCoordinator, SyncOutcome, run_sync

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


def _manager(sources) -> MagicMock:
    manager = MagicMock()
    manager.get_sources = AsyncMock(return_value=sources)
    return manager


def _coordinator(session: AsyncSession, settings: Settings, sources) -> SyncCoordinator:
    return SyncCoordinator(session, settings, source_manager=_manager(sources), clock=lambda: NOW)


class TestSyncCoordinator:
    """Tests for SyncCoordinator.run."""

    @pytest.mark.asyncio
    async def test_recent_refresh_skips_pass(self, test_session: AsyncSession, test_settings: Settings) -> None:
        await SyncStateRepository(test_session).set_last_refreshed_at(NOW - timedelta(minutes=5))
        coordinator = _coordinator(test_session, test_settings, [])

        outcome = await coordinator.run()

        assert outcome.success is True
        assert outcome.ran is False
        coordinator.source_manager.get_sources.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_force_bypasses_gate(
        self, test_session: AsyncSession, test_settings: Settings, make_track, fake_source
    ) -> None:
        await SyncStateRepository(test_session).set_last_refreshed_at(NOW - timedelta(minutes=5))
        coordinator = _coordinator(test_session, test_settings, [fake_source(tracks=[make_track(1)])])

        outcome = await coordinator.run(force_sync=True)

        assert outcome.ran is True
        assert outcome.synced == 1

    @pytest.mark.asyncio
    async def test_enumeration_failure_fails_pass(self, test_session: AsyncSession, test_settings: Settings) -> None:
        coordinator = _coordinator(test_session, test_settings, [])
        coordinator.source_manager.get_sources.side_effect = SourceEnumerationError("store offline")

        outcome = await coordinator.run()

        assert outcome.success is False
        assert "store offline" in outcome.error
        assert await SyncStateRepository(test_session).get_last_refreshed_at() is None

    @pytest.mark.asyncio
    async def test_state_read_failure_fails_pass(self, test_session: AsyncSession, test_settings: Settings) -> None:
        coordinator = _coordinator(test_session, test_settings, [])
        coordinator.state.get_last_refreshed_at = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("locked"))
        )

        outcome = await coordinator.run()

        assert outcome.success is False
        assert outcome.ran is False

    @pytest.mark.asyncio
    async def test_failing_source_does_not_stop_others(
        self, test_session: AsyncSession, test_settings: Settings, make_track, fake_source
    ) -> None:
        sources = [
            fake_source(id=1, name="broken", fail=True),
            fake_source(id=2, name="empty"),
            fake_source(id=3, name="good", tracks=[make_track(1, source=3, album="Kept")]),
        ]
        coordinator = _coordinator(test_session, test_settings, sources)

        outcome = await coordinator.run()

        assert outcome.success is True
        assert [r.status for r in outcome.results] == [
            SourceSyncStatus.FAILED,
            SourceSyncStatus.SKIPPED,
            SourceSyncStatus.SYNCED,
        ]
        assert (outcome.failed, outcome.skipped, outcome.synced) == (1, 1, 1)
        assert [b.title for b in await BookRepository(test_session).get_books_for_source(3)] == ["Kept"]

    @pytest.mark.asyncio
    async def test_unexpected_source_error_is_isolated(
        self, test_session: AsyncSession, test_settings: Settings, make_track, fake_source
    ) -> None:
        exploding = fake_source(id=1, name="exploding")
        exploding.fetch_tracks = AsyncMock(side_effect=RuntimeError("boom"))
        good = fake_source(id=2, name="good", tracks=[make_track(1, source=2)])
        coordinator = _coordinator(test_session, test_settings, [exploding, good])

        outcome = await coordinator.run()

        assert outcome.success is True
        assert outcome.results[0].status == SourceSyncStatus.FAILED
        assert outcome.results[0].error == "boom"
        assert outcome.results[1].status == SourceSyncStatus.SYNCED

    @pytest.mark.asyncio
    async def test_refresh_time_is_recorded(self, test_session: AsyncSession, test_settings: Settings) -> None:
        coordinator = _coordinator(test_session, test_settings, [])

        outcome = await coordinator.run()

        assert outcome.ran is True
        assert await SyncStateRepository(test_session).get_last_refreshed_at() == NOW

    @pytest.mark.asyncio
    async def test_progress_callback_per_source(
        self, test_session: AsyncSession, test_settings: Settings, fake_source
    ) -> None:
        calls: list[tuple[int, str]] = []
        coordinator = _coordinator(test_session, test_settings, [fake_source(id=1, name="a"), fake_source(id=2, name="b")])

        await coordinator.run(progress_callback=lambda pct, msg: calls.append((pct, msg)))

        assert [pct for pct, _ in calls] == [0, 50]
        assert "b (2/2)" in calls[1][1]

    @pytest.mark.asyncio
    async def test_default_clock_records_aware_times(
        self, test_session: AsyncSession, test_settings: Settings
    ) -> None:
        coordinator = SyncCoordinator(test_session, test_settings, source_manager=_manager([]))

        outcome = await coordinator.run()

        assert outcome.started_at.tzinfo is not None
        assert outcome.finished_at.utcoffset() == timedelta(0)
        assert (await SyncStateRepository(test_session).get_last_refreshed_at()).tzinfo is not None


class TestSyncOutcome:
    """Tests for SyncOutcome serialization."""

    def test_to_dict(self) -> None:
        outcome = SyncOutcome(success=True, ran=False, started_at=NOW, finished_at=NOW)

        data = outcome.to_dict()

        assert data["success"] is True
        assert data["ran"] is False
        assert data["started_at"] == NOW.isoformat()
        assert data["results"] == []
        assert (data["synced"], data["skipped"], data["failed"]) == (0, 0, 0)


@pytest.mark.asyncio
async def test_run_sync_uses_a_fresh_session() -> None:
    session = MagicMock()
    maker = MagicMock()
    maker.return_value.__aenter__ = AsyncMock(return_value=session)
    maker.return_value.__aexit__ = AsyncMock(return_value=False)
    expected = SyncOutcome(success=True, ran=False)

    with patch("services.sync_coordinator.async_session_maker", maker), patch(
        "services.sync_coordinator.SyncCoordinator"
    ) as mock_coordinator:
        mock_coordinator.return_value.run = AsyncMock(return_value=expected)
        outcome = await run_sync(force_sync=True)

    assert outcome is expected
    mock_coordinator.assert_called_once_with(session)
    mock_coordinator.return_value.run.assert_awaited_once_with(True)
