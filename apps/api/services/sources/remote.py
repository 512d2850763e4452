"""Remote catalog server source (HTTP/JSON)."""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from db.models import ID_NOT_YET_SET
from services.media_types import BookRecord, TrackRecord
from services.sources.base import MediaSource, SourceFetchError

logger = logging.getLogger(__name__)


class RemoteBook(BaseModel):
    """Book entry as served by ``GET /library/books``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    title: str = ""
    title_sort: str | None = Field(default=None, alias="titleSort")
    author: str = ""
    thumb: str = ""
    genre: str = ""
    parent_id: int = Field(default=ID_NOT_YET_SET, alias="parentId")


class RemoteTrack(BaseModel):
    """Track entry as served by ``GET /library/tracks``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    parent_key: int = Field(default=ID_NOT_YET_SET, alias="parentKey")
    title: str = ""
    album: str = ""
    artist: str = ""
    thumb: str = ""
    genre: str = ""
    index: int = 0
    disc_number: int = Field(default=1, alias="discNumber")
    duration: int = 0
    view_offset: int = Field(default=0, alias="viewOffset")
    last_viewed_at: int = Field(default=0, alias="lastViewedAt")
    media: str = ""


class RemoteCatalogSource(MediaSource):
    """
    A catalog server that reports both books and tracks.

    Aggregate fields are not taken from the server; they are recomputed from the tracks
    during sync.
    """

    is_local = False

    def __init__(
        self,
        id: int,
        name: str,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(id, name)
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    async def _get_list(self, path: str) -> list[Any]:
        try:
            async with self._client() as client:
                resp = await client.get(path)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPError as e:
            raise SourceFetchError(f"{self.name}: request to {path} failed: {e}") from e
        except ValueError as e:
            raise SourceFetchError(f"{self.name}: invalid JSON from {path}") from e

        if isinstance(payload, dict):
            payload = payload.get("items", [])
        if not isinstance(payload, list):
            raise SourceFetchError(f"{self.name}: expected a list from {path}")
        return payload

    async def fetch_books(self) -> list[BookRecord]:
        raw = await self._get_list("/library/books")
        try:
            items = [RemoteBook.model_validate(it) for it in raw]
        except ValidationError as e:
            raise SourceFetchError(f"{self.name}: malformed book entry: {e}") from e

        return [
            BookRecord(
                id=it.id,
                source=self.id,
                title=it.title,
                title_sort=it.title_sort or it.title,
                author=it.author,
                thumb=it.thumb,
                genre=it.genre,
                parent_id=it.parent_id,
            )
            for it in items
        ]

    async def fetch_tracks(self) -> list[TrackRecord]:
        raw = await self._get_list("/library/tracks")
        try:
            items = [RemoteTrack.model_validate(it) for it in raw]
        except ValidationError as e:
            raise SourceFetchError(f"{self.name}: malformed track entry: {e}") from e

        logger.info("Fetched %d track(s) from %s", len(items), self.base_url)
        return [
            TrackRecord(
                id=it.id,
                source=self.id,
                parent_key=it.parent_key,
                title=it.title,
                album=it.album,
                artist=it.artist,
                thumb=it.thumb,
                genre=it.genre,
                index=it.index,
                disc_number=it.disc_number,
                duration=it.duration,
                progress=it.view_offset,
                last_viewed_at=it.last_viewed_at,
                media=it.media,
            )
            for it in items
        ]
