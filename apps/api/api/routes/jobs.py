"""Job management endpoints."""

import json
import logging
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Job, JobRead, JobStatus, JobType, utc_now
from db.session import get_session
from services.job_manager import JobManager

logger = logging.getLogger(__name__)

router = APIRouter()

# Global manager (shut down from the app lifespan)
job_manager = JobManager()


class SyncJobRequest(BaseModel):
    """Request body for queueing a sync job."""

    force: bool = False


class JobCreateResponse(BaseModel):
    """Response for job creation."""

    job_id: UUID
    status: JobStatus
    message: str


class JobListResponse(BaseModel):
    """Response for job listing."""

    items: list[JobRead]
    total: int


class JobCancelResponse(BaseModel):
    """Response for job cancellation."""

    status: Literal["cancelled", "not_found", "already_completed"]
    message: str


@router.get("", response_model=JobListResponse)
async def list_jobs(
    session: AsyncSession = Depends(get_session),
    status: str | None = Query(
        default=None,
        description="Filter by status. Can be comma-separated list, e.g. 'RUNNING,PENDING,QUEUED'",
    ),
    task_type: JobType | None = Query(default=None, description="Filter by task type"),
    limit: int = Query(default=50, ge=1, le=200),
) -> JobListResponse:
    """List jobs with optional filtering."""
    query = select(Job).order_by(Job.created_at.desc())

    if status:
        status_list = [s.strip().upper() for s in status.split(",") if s.strip()]
        if status_list:
            query = query.where(Job.status.in_(status_list))

    if task_type:
        query = query.where(Job.task_type == task_type)

    result = await session.execute(query.limit(limit))
    jobs = result.scalars().all()

    return JobListResponse(
        items=[JobRead.model_validate(job) for job in jobs],
        total=len(jobs),
    )


@router.get("/{job_id}", response_model=JobRead)
async def get_job(
    job_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> JobRead:
    """Get a specific job by ID."""
    result = await session.execute(select(Job).where(Job.id == job_id))
    job = result.scalar_one_or_none()

    if not job:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")

    return JobRead.model_validate(job)


@router.post("/sync", response_model=JobCreateResponse, status_code=202)
async def create_sync_job(
    request: SyncJobRequest | None = None,
    session: AsyncSession = Depends(get_session),
) -> JobCreateResponse:
    """Queue a background library sync."""
    if job_manager.is_shutting_down:
        raise HTTPException(status_code=503, detail="Server is shutting down, sync not queued")

    force = request.force if request else False

    job = Job(
        task_type=JobType.SYNC,
        status=JobStatus.PENDING,
        payload_json=json.dumps({"force": force}),
    )
    session.add(job)
    await session.commit()
    await session.refresh(job)

    await job_manager.queue_sync(job.id, force_sync=force)

    return JobCreateResponse(
        job_id=job.id,
        status=JobStatus.QUEUED,
        message="Library sync queued" + (" (forced)" if force else ""),
    )


@router.delete("/{job_id}", response_model=JobCancelResponse)
async def cancel_job(
    job_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> JobCancelResponse:
    """Cancel a pending or running job."""
    result = await session.execute(select(Job).where(Job.id == job_id))
    job = result.scalar_one_or_none()

    if not job:
        return JobCancelResponse(
            status="not_found",
            message=f"Job {job_id} not found",
        )

    if job.status in [JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED]:
        return JobCancelResponse(
            status="already_completed",
            message=f"Job {job_id} is already {job.status.value}",
        )

    cancelled = await job_manager.cancel_job(job_id)

    if cancelled:
        job.status = JobStatus.CANCELLED
        job.completed_at = utc_now()
        job.updated_at = job.completed_at
        session.add(job)
        await session.commit()

        return JobCancelResponse(
            status="cancelled",
            message=f"Job {job_id} cancelled",
        )

    return JobCancelResponse(
        status="not_found",
        message=f"Job {job_id} could not be cancelled",
    )


async def handle_job_status_update(
    job_id: UUID,
    status: str,
    progress: int,
    message: str | None = None,
    error: str | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    """
    Handle status updates from JobManager.

    Runs outside a request, so it opens its own session.
    """
    async for session in get_session():
        try:
            result = await session.execute(select(Job).where(Job.id == job_id))
            job = result.scalar_one_or_none()

            if job:
                now = utc_now()
                job.status = JobStatus(status)
                job.progress_percent = progress
                if message:
                    job.status_message = message
                if error:
                    job.error_message = error
                if meta is not None:
                    job.result_json = json.dumps(meta)

                if status == "RUNNING" and not job.started_at:
                    job.started_at = now

                if status in ["COMPLETED", "FAILED", "CANCELLED"]:
                    job.completed_at = now

                job.updated_at = now
                session.add(job)
                await session.commit()
        except Exception as e:
            logger.warning("Error updating job %s status in DB: %s", job_id, e)

        break


job_manager.set_status_callback(handle_job_status_update)
