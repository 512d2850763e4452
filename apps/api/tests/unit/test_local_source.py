"""Unit tests for the filesystem media source."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from services.sources.base import SourceFetchError
from services.sources.local import LocalMediaSource, stable_id
from services.track_probe import TrackTags


def _probe(tags_by_name: dict[str, TrackTags] | None = None) -> MagicMock:
    tags_by_name = tags_by_name or {}
    probe = MagicMock()
    probe.probe = AsyncMock(side_effect=lambda path: tags_by_name.get(path.name, TrackTags()))
    return probe


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


class TestLocalMediaSource:
    """Tests for LocalMediaSource."""

    @pytest.mark.asyncio
    async def test_missing_root_raises(self, tmp_path: Path) -> None:
        source = LocalMediaSource(1, "local", tmp_path / "nope", probe=_probe())

        with pytest.raises(SourceFetchError):
            await source.fetch_tracks()

    @pytest.mark.asyncio
    async def test_reports_no_books(self, tmp_path: Path) -> None:
        assert await LocalMediaSource(1, "local", tmp_path, probe=_probe()).fetch_books() == []

    @pytest.mark.asyncio
    async def test_scans_audio_files_grouped_by_directory(self, tmp_path: Path) -> None:
        _touch(tmp_path / "Dune" / "01.mp3")
        _touch(tmp_path / "Dune" / "02.MP3")
        _touch(tmp_path / "Dune" / "notes.txt")
        _touch(tmp_path / "Dune" / "cover.jpg")
        _touch(tmp_path / "Emma" / "emma.m4b")

        tracks = await LocalMediaSource(5, "local", tmp_path, probe=_probe()).fetch_tracks()

        assert len(tracks) == 3
        dune = [t for t in tracks if t.album == "Dune"]
        emma = [t for t in tracks if t.album == "Emma"]
        assert len(dune) == 2
        assert len(emma) == 1
        assert {t.parent_key for t in dune} == {stable_id("Dune")}
        assert emma[0].parent_key == stable_id("Emma")
        assert [t.index for t in dune] == [1, 2]
        assert [t.title for t in dune] == ["01", "02"]
        assert dune[0].thumb == str(tmp_path / "Dune" / "cover.jpg")
        assert emma[0].thumb == ""
        assert all(t.source == 5 for t in tracks)

    @pytest.mark.asyncio
    async def test_tags_override_fallbacks(self, tmp_path: Path) -> None:
        _touch(tmp_path / "folder-name" / "a.flac")
        tags = TrackTags(
            title="Prologue",
            album="Real Album",
            artist="Author",
            genre="History",
            track_number=7,
            disc_number=2,
            duration_ms=61000,
        )

        [track] = await LocalMediaSource(1, "local", tmp_path, probe=_probe({"a.flac": tags})).fetch_tracks()

        assert track.title == "Prologue"
        assert track.album == "Real Album"
        assert track.artist == "Author"
        assert track.genre == "History"
        assert track.index == 7
        assert track.disc_number == 2
        assert track.duration == 61000
        assert track.media == str(tmp_path / "folder-name" / "a.flac")

    @pytest.mark.asyncio
    async def test_ids_are_stable_across_scans(self, tmp_path: Path) -> None:
        _touch(tmp_path / "Book" / "01.ogg")
        source = LocalMediaSource(1, "local", tmp_path, probe=_probe())

        first = await source.fetch_tracks()
        second = await source.fetch_tracks()

        assert [t.id for t in first] == [t.id for t in second]
        assert first[0].id == stable_id("Book/01.ogg")

    def test_stable_id_fits_signed_64_bits(self) -> None:
        value = stable_id("some/long/path/to/a/file.m4b")
        assert 0 <= value < 2**63
        assert value == stable_id("some/long/path/to/a/file.m4b")
        assert value != stable_id("some/long/path/to/a/file2.m4b")
