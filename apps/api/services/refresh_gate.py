"""Decide whether a sync pass is due."""

from datetime import UTC, datetime, timedelta


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def should_run(
    force_sync: bool,
    last_refreshed_at: datetime | None,
    min_interval_minutes: int,
    now: datetime,
) -> bool:
    """
    Return True when a sync pass should proceed.

    A forced sync always runs. Otherwise the pass is due once ``min_interval_minutes``
    have elapsed since ``last_refreshed_at``; a library that was never refreshed is
    always due. Naive datetimes are read as UTC.
    """
    if force_sync or last_refreshed_at is None:
        return True
    interval = timedelta(minutes=max(0, min_interval_minutes))
    return _as_utc(now) >= _as_utc(last_refreshed_at) + interval
