"""Unit tests for download file classification."""

from pathlib import Path

import pytest

from reelgrab.mediafiles import (
    MediaFile,
    classify_download,
    is_extra,
    remove_empty_dirs,
    subtitle_suffix,
)

SAMPLE_SIZE = 1000


def write(path: Path, size: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x00" * size)
    return path


class TestClassifyDownload:
    """Tests for classify_download."""

    def test_sorts_files_by_role(self, tmp_path: Path) -> None:
        root = tmp_path / "Movie.2024.1080p.WEB-DL.x264-GRP"
        write(root / "Movie.2024.1080p.WEB-DL.x264-GRP.mkv", 5000)
        write(root / "Sample" / "movie.sample.mkv", 5000)
        write(root / "tiny.mkv", 10)
        write(root / "Featurettes" / "Making the movie.mkv", 3000)
        write(root / "Movie.Trailer.mp4", 2000)
        write(root / "Subs" / "English.srt", 10)
        write(root / "movie.nfo", 10)

        files = classify_download(str(root), SAMPLE_SIZE)

        assert [f.name for f in files.videos] == ["Movie.2024.1080p.WEB-DL.x264-GRP.mkv"]
        assert sorted(f.name for f in files.extras) == ["Making the movie.mkv", "Movie.Trailer.mp4"]
        assert sorted(f.name for f in files.samples) == ["movie.sample.mkv", "tiny.mkv"]
        assert [f.relative for f in files.subtitles] == ["Subs/English.srt"]
        assert [f.name for f in files.other] == ["movie.nfo"]

    def test_single_file_download(self, tmp_path: Path) -> None:
        video = write(tmp_path / "Movie.2024.1080p.WEB-DL.x264-GRP.mkv", 5000)

        files = classify_download(str(video), SAMPLE_SIZE)

        assert files.primary is not None
        assert files.primary.path == str(video)
        assert files.primary.relative == video.name

    def test_primary_is_largest_video(self, tmp_path: Path) -> None:
        write(tmp_path / "a.mkv", 2000)
        write(tmp_path / "b.mkv", 9000)

        assert classify_download(str(tmp_path), SAMPLE_SIZE).primary.name == "b.mkv"

    def test_title_with_extras_keyword_is_main_video(self, tmp_path: Path) -> None:
        root = tmp_path / "Interview.with.the.Vampire.1994.1080p.BluRay.x264-GRP"
        write(root / "Interview.with.the.Vampire.1994.1080p.BluRay.x264-GRP.mkv", 5000)

        files = classify_download(str(root), SAMPLE_SIZE)

        assert [f.name for f in files.videos] == [
            "Interview.with.the.Vampire.1994.1080p.BluRay.x264-GRP.mkv"
        ]
        assert files.extras == []

    def test_season_pack_with_extras_keyword(self, tmp_path: Path) -> None:
        root = tmp_path / "Trailer.Park.Boys.S01.1080p.WEB-DL.x264-GRP"
        write(root / "Trailer.Park.Boys.S01E01.1080p.WEB-DL.x264-GRP.mkv", 5000)
        write(root / "Trailer.Park.Boys.S01E02.1080p.WEB-DL.x264-GRP.mkv", 4800)
        write(root / "Extras" / "Trailer.Park.Boys.Bloopers.mkv", 2000)

        files = classify_download(str(root), SAMPLE_SIZE)

        assert [f.name for f in files.videos] == [
            "Trailer.Park.Boys.S01E01.1080p.WEB-DL.x264-GRP.mkv",
            "Trailer.Park.Boys.S01E02.1080p.WEB-DL.x264-GRP.mkv",
        ]
        assert [f.name for f in files.extras] == ["Trailer.Park.Boys.Bloopers.mkv"]

    def test_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            classify_download(str(tmp_path / "missing"), SAMPLE_SIZE)


class TestIsExtra:
    """Tests for extras keyword detection."""

    @pytest.mark.parametrize(
        "relative",
        [
            "Behind.The.Scenes.mkv",
            "Extras/clip.mkv",
            "Deleted Scenes/scene1.mkv",
            "movie-featurette.mkv",
            "Bloopers.mkv",
        ],
    )
    def test_detected(self, relative: str) -> None:
        assert is_extra(relative)

    @pytest.mark.parametrize("relative", ["Movie.2024.1080p.mkv", "Textra.mkv", "Show.S01E01.mkv"])
    def test_not_detected(self, relative: str) -> None:
        assert not is_extra(relative)


class TestSubtitleSuffix:
    """Tests for subtitle_suffix."""

    @pytest.mark.parametrize(
        ("name", "suffix"),
        [
            ("Movie.2024.srt", ".srt"),
            ("Movie.2024.en.srt", ".en.srt"),
            ("Movie.2024.eng.forced.srt", ".en.forced.srt"),
            ("Movie.2024.French.SRT", ".fr.srt"),
            ("Movie.2024.en.sdh.ass", ".en.sdh.ass"),
        ],
    )
    def test_suffix(self, name: str, suffix: str) -> None:
        assert subtitle_suffix(name) == suffix


class TestMediaFile:
    """Tests for MediaFile helpers."""

    def test_name_parts(self) -> None:
        media_file = MediaFile("/downloads/x/Movie.MKV", "x/Movie.MKV", 1)

        assert media_file.name == "Movie.MKV"
        assert media_file.stem == "Movie"
        assert media_file.extension == ".mkv"


def test_remove_empty_dirs(tmp_path: Path) -> None:
    (tmp_path / "a" / "b").mkdir(parents=True)
    write(tmp_path / "c" / "keep.txt", 1)

    removed = remove_empty_dirs(str(tmp_path))

    assert removed == 2
    assert not (tmp_path / "a").exists()
    assert (tmp_path / "c" / "keep.txt").exists()
