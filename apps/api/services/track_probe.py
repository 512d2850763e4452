"""Read tags and duration from audio files with ffprobe."""

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^\s*(\d+)")


class TrackTags(BaseModel):
    title: str | None = None
    album: str | None = None
    artist: str | None = None
    genre: str | None = None
    track_number: int | None = None
    disc_number: int | None = None
    duration_ms: int = 0


class TrackProbe:
    """Tag reader for audio files using ffprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe"):
        self.ffprobe_path = ffprobe_path

    async def probe(self, file_path: Path) -> TrackTags:
        """Probe a media file. Unreadable files yield empty tags rather than an error."""
        data = await self._run_ffprobe(file_path)
        return self._parse_ffprobe_output(data)

    async def _run_ffprobe(self, file_path: Path) -> dict[str, Any]:
        """Execute ffprobe and return JSON output."""
        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            str(file_path),
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()

            if process.returncode != 0:
                logger.warning("ffprobe failed on %s with code %d: %s", file_path, process.returncode, stderr.decode())
                return {}

            return json.loads(stdout.decode())
        except (OSError, ValueError):
            logger.exception("Error running ffprobe on %s", file_path)
            return {}

    def _parse_ffprobe_output(self, data: dict[str, Any]) -> TrackTags:
        """Parse and normalize ffprobe JSON output."""
        fmt = data.get("format", {})
        tags = fmt.get("tags", {})

        # Helper to get tags case-insensitively
        def get_tag(*keys: str) -> str | None:
            for k in keys:
                if k in tags:
                    return tags[k]
                k_lower = k.lower()
                for tk in tags:
                    if tk.lower() == k_lower:
                        return tags[tk]
            return None

        duration_ms = 0
        if fmt.get("duration"):
            try:
                duration_ms = max(0, int(float(fmt["duration"]) * 1000))
            except (TypeError, ValueError):
                duration_ms = 0

        return TrackTags(
            title=self._clean(get_tag("title")),
            album=self._clean(get_tag("album")),
            artist=self._clean(get_tag("artist", "album_artist", "author")),
            genre=self._clean(get_tag("genre")),
            track_number=self._parse_number(get_tag("track")),
            disc_number=self._parse_number(get_tag("disc", "discnumber")),
            duration_ms=duration_ms,
        )

    @staticmethod
    def _clean(raw: str | None) -> str | None:
        if raw is None:
            return None
        value = raw.strip()
        return value or None

    @staticmethod
    def _parse_number(raw: str | None) -> int | None:
        """Parse tags like ``"3"`` or ``"3/12"``."""
        if not raw:
            return None
        match = _LEADING_NUMBER.match(raw)
        return int(match.group(1)) if match else None
