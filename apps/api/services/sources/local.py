"""Filesystem media source: every directory of audio files is one book."""

import asyncio
import hashlib
import logging
from pathlib import Path

from services.media_types import BookRecord, TrackRecord
from services.sources.base import MediaSource, SourceFetchError
from services.track_probe import TrackProbe

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {".mp3", ".m4a", ".m4b", ".aac", ".ogg", ".opus", ".flac", ".wav"}
COVER_NAMES = ("cover", "folder")
COVER_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")


def stable_id(text: str) -> int:
    """Non-negative 63-bit id that stays the same for the same relative path."""
    digest = hashlib.sha1(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") >> 1


class LocalMediaSource(MediaSource):
    """
    Scans a directory tree for audio files.

    The source reports no books: tracks carry a provisional parent key derived from their
    directory, and books are synthesized from those groups during sync.
    """

    is_local = True

    def __init__(
        self,
        id: int,
        name: str,
        root: Path,
        probe: TrackProbe | None = None,
        concurrency: int = 4,
    ) -> None:
        super().__init__(id, name)
        self.root = Path(root)
        self.probe = probe or TrackProbe()
        self.concurrency = max(1, concurrency)

    async def fetch_books(self) -> list[BookRecord]:
        return []

    async def fetch_tracks(self) -> list[TrackRecord]:
        if not self.root.is_dir():
            raise SourceFetchError(f"Library root not found: {self.root}")

        try:
            files = await asyncio.to_thread(self._find_audio_files)
        except OSError as e:
            raise SourceFetchError(f"Failed to scan {self.root}: {e}") from e

        semaphore = asyncio.Semaphore(self.concurrency)

        async def probe_one(path: Path):
            async with semaphore:
                return await self.probe.probe(path)

        all_tags = await asyncio.gather(*(probe_one(path) for path in files))

        covers: dict[Path, str] = {}
        positions: dict[Path, int] = {}
        tracks: list[TrackRecord] = []
        for path, tags in zip(files, all_tags):
            directory = path.parent
            positions[directory] = positions.get(directory, 0) + 1
            if directory not in covers:
                covers[directory] = self._find_cover(directory)

            relative = path.relative_to(self.root)
            tracks.append(
                TrackRecord(
                    id=stable_id(relative.as_posix()),
                    source=self.id,
                    parent_key=stable_id(relative.parent.as_posix()),
                    title=tags.title or path.stem,
                    album=tags.album or directory.name,
                    artist=tags.artist or "",
                    thumb=covers[directory],
                    genre=tags.genre or "",
                    index=tags.track_number or positions[directory],
                    disc_number=tags.disc_number or 1,
                    duration=tags.duration_ms,
                    media=str(path),
                )
            )

        logger.info("Scanned %d audio file(s) under %s", len(tracks), self.root)
        return tracks

    def _find_audio_files(self) -> list[Path]:
        return sorted(
            p for p in self.root.rglob("*")
            if p.is_file() and p.suffix.lower() in AUDIO_EXTENSIONS
        )

    @staticmethod
    def _find_cover(directory: Path) -> str:
        for name in COVER_NAMES:
            for ext in COVER_EXTENSIONS:
                candidate = directory / f"{name}{ext}"
                if candidate.is_file():
                    return str(candidate)
        return ""
