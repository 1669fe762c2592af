"""Classification of files found in a completed download.

Functions here do plain synchronous filesystem reads and are called
through ``asyncify`` by the import manager.
"""

import os
import posixpath
import re

import msgspec

from .release.patterns import LANGUAGE_TOKENS

VIDEO_EXTENSIONS = frozenset(
    {".mkv", ".mp4", ".avi", ".m4v", ".wmv", ".mov", ".ts", ".m2ts", ".webm", ".flv"}
)
SUBTITLE_EXTENSIONS = frozenset({".srt", ".sub", ".idx", ".ass", ".ssa", ".vtt"})

EXTRAS_RE = re.compile(
    r"(?<![a-z])(extras?|featurettes?|bonus|deleted[.\s_-]?scenes?|"
    r"behind[.\s_-]?the[.\s_-]?scenes?|making[.\s_-]?of|interviews?|trailers?|"
    r"gag[.\s_-]?reel|bloopers?|outtakes?|teasers?)(?![a-z])",
    re.I,
)
SAMPLE_RE = re.compile(r"(?<![a-z])sample(?![a-z])", re.I)
_FORCED_RE = re.compile(r"(?<![a-z])forced(?![a-z])", re.I)
_SDH_RE = re.compile(r"(?<![a-z])(sdh|hi|cc)(?![a-z])", re.I)
_TOKEN_SPLIT_RE = re.compile(r"[\s._\-\[\]()]+")
_ISO_CODES = frozenset(LANGUAGE_TOKENS.values())


class MediaFile(msgspec.Struct, frozen=True):
    """A file inside a download.

    Attributes:
        path: Absolute path of the file.
        relative: Path relative to the download root.
        size: Size in bytes.
    """

    path: str
    relative: str
    size: int

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def stem(self) -> str:
        return posixpath.splitext(self.name)[0]

    @property
    def extension(self) -> str:
        return posixpath.splitext(self.name)[1].lower()


class DownloadFiles(msgspec.Struct):
    """Files of a download grouped by role."""

    videos: list[MediaFile] = msgspec.field(default_factory=list)
    extras: list[MediaFile] = msgspec.field(default_factory=list)
    subtitles: list[MediaFile] = msgspec.field(default_factory=list)
    samples: list[MediaFile] = msgspec.field(default_factory=list)
    other: list[MediaFile] = msgspec.field(default_factory=list)

    @property
    def primary(self) -> MediaFile | None:
        """The largest main video file."""
        return max(self.videos, key=lambda f: f.size, default=None)

    @property
    def all_files(self) -> list[MediaFile]:
        return [*self.videos, *self.extras, *self.subtitles, *self.samples, *self.other]


def is_video_file(name: str) -> bool:
    return posixpath.splitext(name)[1].lower() in VIDEO_EXTENSIONS


def is_subtitle_file(name: str) -> bool:
    return posixpath.splitext(name)[1].lower() in SUBTITLE_EXTENSIONS


def _extras_keyword(match: re.Match[str]) -> str:
    return re.sub(r"[.\s_-]", "", match.group(1).lower()).rstrip("s")


def extras_keywords(text: str) -> frozenset[str]:
    return frozenset(_extras_keyword(match) for match in EXTRAS_RE.finditer(text))


def is_extra(relative: str, ignore: frozenset[str] = frozenset()) -> bool:
    """Check the file name and every parent folder for extras keywords.

    Keywords in ``ignore`` do not count, so a title such as
    "Interview with the Vampire" is not mistaken for an interview.
    """
    return any(
        _extras_keyword(match) not in ignore
        for part in relative.split("/")
        for match in EXTRAS_RE.finditer(part)
    )


def is_sample(media_file: MediaFile, sample_size: int) -> bool:
    return bool(SAMPLE_RE.search(media_file.relative)) or media_file.size < sample_size


def subtitle_suffix(name: str) -> str:
    """Build the ``.en.forced``-style suffix for a subtitle file name.

    Args:
        name: Subtitle file name including its extension.

    Returns:
        str: Language and flag suffix (possibly empty) followed by the
            lower-cased extension.
    """
    stem, extension = posixpath.splitext(name)
    parts = []
    # Only the trailing token (after any forced/sdh flag) names the language.
    for token in reversed([t for t in _TOKEN_SPLIT_RE.split(stem) if t]):
        if _FORCED_RE.fullmatch(token) or _SDH_RE.fullmatch(token):
            continue
        if token.upper() in LANGUAGE_TOKENS:
            parts.append(LANGUAGE_TOKENS[token.upper()])
        elif token.lower() in _ISO_CODES:
            parts.append(token.lower())
        break
    if _FORCED_RE.search(stem):
        parts.append("forced")
    elif _SDH_RE.search(stem):
        parts.append("sdh")
    suffix = "".join(f".{part}" for part in parts)
    return f"{suffix}{extension.lower()}"


def _walk(root: str) -> list[MediaFile]:
    if os.path.isfile(root):
        return [MediaFile(root, posixpath.basename(root), os.path.getsize(root))]
    found = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in sorted(filenames):
            full = os.path.join(dirpath, filename)
            relative = os.path.relpath(full, root).replace(os.sep, "/")
            found.append(MediaFile(full, relative, os.path.getsize(full)))
    return found


def classify_download(root: str, sample_size: int) -> DownloadFiles:
    """Walk a download and sort its files into videos, extras, subtitles etc.

    Args:
        root: Downloaded file or directory.
        sample_size: Video files smaller than this many bytes are samples.

    Returns:
        DownloadFiles: Classified files.

    Raises:
        FileNotFoundError: If ``root`` does not exist.
    """
    if not os.path.exists(root):
        raise FileNotFoundError(f"Download path does not exist: {root}")

    files = DownloadFiles()
    videos: list[MediaFile] = []
    for media_file in _walk(root):
        if is_video_file(media_file.name):
            if is_sample(media_file, sample_size):
                files.samples.append(media_file)
            else:
                videos.append(media_file)
        elif is_subtitle_file(media_file.name):
            files.subtitles.append(media_file)
        else:
            files.other.append(media_file)

    # The main video is picked first; only the rest can be extras
    pool = [f for f in videos if not is_extra(f.relative)] or videos
    main = max(pool, key=lambda f: f.size, default=None)
    ignore = extras_keywords(main.relative) if main is not None else frozenset()
    for media_file in videos:
        if media_file is not main and is_extra(media_file.relative, ignore):
            files.extras.append(media_file)
        else:
            files.videos.append(media_file)
    return files


def remove_empty_dirs(root: str) -> int:
    """Remove empty directories below and including ``root``.

    Returns:
        int: Number of directories removed.
    """
    if not os.path.isdir(root):
        return 0
    removed = 0
    for dirpath, _dirnames, _filenames in os.walk(root, topdown=False):
        try:
            if not os.listdir(dirpath):
                os.rmdir(dirpath)
                removed += 1
        except OSError:
            continue
    return removed
