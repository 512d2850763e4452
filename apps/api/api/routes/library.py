"""Read-only library endpoints over the synced audiobooks and tracks."""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import func, or_, select

from db.models import Audiobook, AudiobookRead, MediaTrackRead
from db.session import get_session
from services.repositories import BookRepository, TrackRepository

router = APIRouter(tags=["library"])
logger = logging.getLogger(__name__)


@router.get("")
async def get_books(
    session: AsyncSession = Depends(get_session),
    skip: int | None = Query(default=None, ge=0),
    limit: int | None = Query(default=None, ge=1, le=500),
    page: int | None = Query(default=None, ge=1),
    page_size: int | None = Query(default=None, ge=1, le=500),
    q: str | None = None,
    source_id: int | None = None,
    is_cached: bool | None = None,
    sort_by: Literal["title", "title_sort", "author", "duration", "progress", "updated_at"] = "title_sort",
    sort_dir: Literal["asc", "desc"] = "asc",
):
    """List audiobooks with filtering, search, and pagination."""
    # Pagination: support either (skip, limit) or (page, page_size)
    effective_limit = limit if limit is not None else 100
    effective_skip = skip if skip is not None else 0
    effective_page = 1
    effective_page_size = effective_limit
    if page is not None or page_size is not None:
        effective_page = page or 1
        effective_page_size = page_size or 100
        effective_limit = effective_page_size
        effective_skip = (effective_page - 1) * effective_page_size

    statement = select(Audiobook)

    if q:
        statement = statement.where(
            or_(
                Audiobook.title.ilike(f"%{q}%"),
                Audiobook.author.ilike(f"%{q}%"),
            )
        )
    if source_id is not None:
        statement = statement.where(Audiobook.source_id == source_id)
    if is_cached is not None:
        statement = statement.where(Audiobook.is_cached.is_(is_cached))

    count_statement = select(func.count()).select_from(statement.subquery())
    total = (await session.execute(count_statement)).scalar() or 0

    order_col = getattr(Audiobook, sort_by)
    statement = statement.order_by(order_col.desc() if sort_dir == "desc" else order_col.asc(), Audiobook.id)
    statement = statement.offset(effective_skip).limit(effective_limit)

    result = await session.execute(statement)
    books = result.scalars().all()

    total_pages = (total + effective_limit - 1) // effective_limit if effective_limit else 0

    return {
        "total": total,
        "skip": effective_skip,
        "limit": effective_limit,
        "page": effective_page,
        "page_size": effective_page_size,
        "total_pages": total_pages,
        "items": [AudiobookRead.model_validate(book) for book in books],
    }


@router.get("/{book_id}", response_model=AudiobookRead)
async def get_book(book_id: int, session: AsyncSession = Depends(get_session)) -> AudiobookRead:
    """Get a single audiobook by its canonical id."""
    book = await BookRepository(session).get_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return AudiobookRead.model_validate(book)


@router.get("/{book_id}/tracks", response_model=list[MediaTrackRead])
async def get_book_tracks(book_id: int, session: AsyncSession = Depends(get_session)) -> list[MediaTrackRead]:
    """List a book's tracks in playback order."""
    book = await BookRepository(session).get_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    tracks = await TrackRepository(session).get_tracks_for_book(book_id)
    return [MediaTrackRead.model_validate(t) for t in tracks]
