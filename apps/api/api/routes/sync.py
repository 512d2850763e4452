"""Inline sync endpoint."""

from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.session import get_session
from services.sync_coordinator import SyncCoordinator

router = APIRouter()


@router.post("")
async def run_sync(
    force: bool = Query(default=False, description="Ignore the minimum refresh interval"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> Any:
    """
    Run one sync pass and wait for it.

    Returns the pass summary. A coordinator-level failure answers 503 with the same
    body; failed sources alone never do.
    """
    outcome = await SyncCoordinator(session, settings).run(force)
    if not outcome.success:
        return JSONResponse(status_code=503, content=outcome.to_dict())
    return outcome.to_dict()
