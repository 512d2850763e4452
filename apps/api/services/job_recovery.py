"""Startup cleanup of sync jobs lost with the previous process."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Job, JobStatus, utc_now
from db.session import async_session_maker

logger = logging.getLogger(__name__)

# Statuses owned by a JobManager task of a running process.
ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.QUEUED, JobStatus.RUNNING)

INTERRUPTED_MESSAGE = "Sync interrupted by API restart. Queue a new sync to retry."


def _interrupt(job: Job, now: datetime) -> None:
    job.status = JobStatus.FAILED
    job.progress_percent = min(job.progress_percent or 0, 99)
    job.error_message = INTERRUPTED_MESSAGE
    job.completed_at = now
    job.updated_at = now


async def mark_inflight_jobs_interrupted(session: AsyncSession | None = None) -> int:
    """
    Fail every sync job a previous process left active.

    The refresh timestamp is only written when a pass finishes, so an interrupted pass
    never holds back the next one.

    Returns:
        Number of jobs marked.
    """
    if session is None:
        async with async_session_maker() as own_session:
            return await mark_inflight_jobs_interrupted(own_session)

    result = await session.execute(select(Job).where(Job.status.in_(ACTIVE_STATUSES)))
    jobs = result.scalars().all()
    now = utc_now()
    for job in jobs:
        logger.info("Sync job %s was %s at shutdown, marking it failed", job.id, job.status.value)
        _interrupt(job, now)
    await session.commit()
    return len(jobs)
