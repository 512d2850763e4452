"""Source registration endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import LibrarySource, LibrarySourceCreate, LibrarySourceRead, SourceKind, utc_now
from db.session import get_session

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=list[LibrarySourceRead])
async def list_sources(session: AsyncSession = Depends(get_session)) -> list[LibrarySourceRead]:
    """List registered sources in sync order."""
    result = await session.execute(select(LibrarySource).order_by(LibrarySource.id))
    return [LibrarySourceRead.model_validate(s) for s in result.scalars().all()]


@router.post("", response_model=LibrarySourceRead, status_code=201)
async def create_source(
    request: LibrarySourceCreate,
    session: AsyncSession = Depends(get_session),
) -> LibrarySourceRead:
    """Register a filesystem directory or a remote catalog server."""
    if request.kind == SourceKind.REMOTE and not request.location.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="Remote sources need an http(s) base URL")

    source = LibrarySource.model_validate(request)
    session.add(source)
    await session.commit()
    await session.refresh(source)

    logger.info("Registered %s source %s (%s)", source.kind.value, source.name, source.location)
    return LibrarySourceRead.model_validate(source)


@router.patch("/{source_id}", response_model=LibrarySourceRead)
async def set_source_enabled(
    source_id: int,
    enabled: bool,
    session: AsyncSession = Depends(get_session),
) -> LibrarySourceRead:
    """Enable or disable a source for future sync passes."""
    source = await session.get(LibrarySource, source_id)
    if not source:
        raise HTTPException(status_code=404, detail="Source not found")

    source.enabled = enabled
    source.updated_at = utc_now()
    session.add(source)
    await session.commit()
    await session.refresh(source)
    return LibrarySourceRead.model_validate(source)


@router.delete("/{source_id}", status_code=204)
async def delete_source(source_id: int, session: AsyncSession = Depends(get_session)) -> None:
    """
    Remove a source registration.

    Books and tracks already synced from it stay in the library.
    """
    source = await session.get(LibrarySource, source_id)
    if not source:
        raise HTTPException(status_code=404, detail="Source not found")

    await session.delete(source)
    await session.commit()
    logger.info("Removed source %s", source_id)
