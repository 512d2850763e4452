"""Async job manager running library sync passes as background tasks."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol
from uuid import UUID

from db.models import utc_now
from db.session import get_session
from services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


class JobManagerShutdownError(RuntimeError):
    """Raised when a job is queued after shutdown started."""


class StatusUpdateCallback(Protocol):
    """Protocol for job status update callbacks."""

    async def __call__(
        self,
        job_id: UUID,
        status: str,
        progress: int,
        message: str | None = None,
        error: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """
        Called when job status changes.

        Args:
            job_id: The job identifier.
            status: New status string.
            progress: Progress percentage (0-100).
            message: Optional status message.
            error: Optional error message.
            meta: Optional structured result data.
        """
        ...


class JobManager:
    """
    Manages background sync jobs.

    Sync passes are serialized: a lock ensures at most one pass touches the store at a
    time, further jobs wait their turn.
    """

    def __init__(
        self,
        status_callback: StatusUpdateCallback | None = None,
    ) -> None:
        """
        Initialize job manager.

        Args:
            status_callback: Optional async callback for status updates.
        """
        self._sync_lock = asyncio.Lock()

        # Track running tasks
        self._tasks: dict[UUID, asyncio.Task[Any]] = {}
        self._cancelled: set[UUID] = set()

        # Progress callbacks per job
        self._progress_callbacks: dict[UUID, Callable[[int, str], None]] = {}

        # Status update callback (persists job rows)
        self._status_callback = status_callback

        # Set once shutdown starts; no new jobs are accepted after that
        self._shutting_down = False

    def set_status_callback(self, callback: StatusUpdateCallback | None) -> None:
        """
        Set the status update callback.

        Args:
            callback: Async callback for status updates, or None to disable.
        """
        self._status_callback = callback

    def set_progress_callback(
        self, job_id: UUID, callback: Callable[[int, str], None] | None
    ) -> None:
        """Register (or clear) a per-job progress/log callback."""
        if callback is None:
            self._progress_callbacks.pop(job_id, None)
        else:
            self._progress_callbacks[job_id] = callback

    def _format_log_line(self, level: str, line: str) -> str:
        ts = utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")
        safe = (line or "").rstrip("\n")
        return f"{ts} [{level}] {safe}"

    async def _notify_status(
        self,
        job_id: UUID,
        status: str,
        progress: int,
        message: str | None = None,
        error: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Notify status update via callback if set."""
        if self._status_callback:
            try:
                await self._status_callback(
                    job_id=job_id,
                    status=status,
                    progress=progress,
                    message=message,
                    error=error,
                    meta=meta,
                )
            except Exception as e:
                logger.warning(
                    "Status callback failed for job %s: %s",
                    job_id,
                    e,
                )

    async def queue_sync(
        self,
        job_id: UUID,
        force_sync: bool = False,
        progress_callback: Callable[[int, str], None] | None = None,
    ) -> None:
        """
        Queue a library sync job.

        Args:
            job_id: Unique job identifier.
            force_sync: Bypass the minimum refresh interval.
            progress_callback: Optional callback for progress updates.

        Raises:
            JobManagerShutdownError: If the manager is shutting down.
        """
        if self._shutting_down:
            raise JobManagerShutdownError(f"Not queuing sync job {job_id}: shutting down")

        logger.info("Queuing library sync job %s (force=%s)", job_id, force_sync)

        if progress_callback:
            self._progress_callbacks[job_id] = progress_callback

        task = asyncio.create_task(
            self._execute_sync(job_id, force_sync),
            name=f"sync-{job_id}",
        )
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(job_id, None))

        await self._notify_status(
            job_id,
            "QUEUED",
            0,
            "Queued for library sync",
        )

    def _create_progress_forwarder(
        self,
        job_id: UUID,
        callback: Callable[[int, str], None] | None,
        pending: list[asyncio.Task[None]],
    ) -> Callable[[int, str], None]:
        """Wrap the per-job callback so per-source progress also reaches the job row."""

        def progress_wrapper(percent: int, message: str) -> None:
            if callback:
                callback(percent, message)
            pending.append(
                asyncio.create_task(self._notify_status(job_id, "RUNNING", percent, message))
            )

        return progress_wrapper

    async def _execute_sync(self, job_id: UUID, force_sync: bool) -> dict[str, Any]:
        """Execute one sync pass with status updates."""
        try:
            async with self._sync_lock:
                if self.is_cancelled(job_id):
                    return {"success": False, "cancelled": True}
                return await self._run_sync_pass(job_id, force_sync)
        finally:
            self._progress_callbacks.pop(job_id, None)

    async def _run_sync_pass(self, job_id: UUID, force_sync: bool) -> dict[str, Any]:
        logger.info("Starting library sync execution for job %s", job_id)
        await self._notify_status(job_id, "RUNNING", 0, "Starting library sync...")

        callback = self._progress_callbacks.get(job_id)
        if callback:
            callback(-1, self._format_log_line("INFO", "Starting library sync"))

        pending: list[asyncio.Task[None]] = []
        forwarder = self._create_progress_forwarder(job_id, callback, pending)
        try:
            async for session in get_session():
                outcome = await SyncCoordinator(session).run(force_sync, progress_callback=forwarder)
                break
        except Exception as e:
            logger.exception("Exception during sync job %s", job_id)
            await asyncio.gather(*pending)
            await self._notify_status(job_id, "FAILED", 0, error=str(e))
            return {"success": False, "error": str(e)}

        # Progress updates must land before the final status.
        await asyncio.gather(*pending)

        result = outcome.to_dict()
        if not outcome.success:
            await self._notify_status(job_id, "FAILED", 0, error=outcome.error, meta=result)
            return result

        if outcome.ran:
            message = (
                f"Library sync complete: {outcome.synced} synced, "
                f"{outcome.skipped} skipped, {outcome.failed} failed"
            )
        else:
            message = "Library is up to date, sync skipped"
        await self._notify_status(job_id, "COMPLETED", 100, message, meta=result)
        if callback:
            callback(-1, self._format_log_line("INFO", message))
        return result

    async def cancel_job(self, job_id: UUID) -> bool:
        """
        Cancel a running job.

        Args:
            job_id: Job to cancel.

        Returns:
            True if job was cancelled, False if not found.
        """
        task = self._tasks.get(job_id)
        if task is None:
            logger.warning("Attempted to cancel non-existent job %s", job_id)
            return False

        logger.info("Cancelling job %s", job_id)
        self._cancelled.add(job_id)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._tasks.pop(job_id, None)
        self._cancelled.discard(job_id)
        self._progress_callbacks.pop(job_id, None)

        await self._notify_status(
            job_id,
            "CANCELLED",
            0,
            "Job cancelled by user",
        )

        logger.info("Job %s cancelled successfully", job_id)
        return True

    def is_cancelled(self, job_id: UUID) -> bool:
        """Check if a job has been cancelled."""
        return job_id in self._cancelled

    def get_running_count(self) -> int:
        """Number of sync jobs queued or running."""
        return sum(1 for t in self._tasks.values() if not t.done())

    async def shutdown(self, timeout: float = 30.0) -> None:
        """
        Gracefully shutdown all running jobs.

        Args:
            timeout: Maximum time to wait for jobs to complete (seconds).
        """
        if self._shutting_down:
            logger.warning("Shutdown already in progress")
            return

        self._shutting_down = True

        running_count = len(self._tasks)
        if running_count == 0:
            logger.info("No running jobs to shutdown")
            return

        logger.info("Shutting down %d running job(s)...", running_count)

        for job_id, task in list(self._tasks.items()):
            self._cancelled.add(job_id)
            if not task.done():
                logger.info("Cancelling job %s (%s)", job_id, task.get_name())
                task.cancel()

        tasks = list(self._tasks.values())
        try:
            await asyncio.wait_for(
                asyncio.gather(*tasks, return_exceptions=True),
                timeout=timeout,
            )
            logger.info("All jobs completed gracefully")
        except asyncio.TimeoutError:
            logger.warning(
                "Timeout waiting for jobs to complete. %d job(s) still running.",
                sum(1 for t in tasks if not t.done()),
            )

        self._tasks.clear()
        self._cancelled.clear()
        self._progress_callbacks.clear()

        logger.info("Job manager shutdown complete")

    @property
    def is_shutting_down(self) -> bool:
        """Check if shutdown is in progress."""
        return self._shutting_down
