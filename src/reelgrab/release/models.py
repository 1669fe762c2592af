"""Value types produced by the release parser."""

from datetime import date
from enum import StrEnum

import msgspec


class Resolution(StrEnum):
    """Video resolution of a release."""

    R2160P = "2160p"
    R1080P = "1080p"
    R720P = "720p"
    R576P = "576p"
    R480P = "480p"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        """Ordinal used for comparisons, higher is better."""
        return _RESOLUTION_RANK[self]


_RESOLUTION_RANK = {
    Resolution.R2160P: 5,
    Resolution.R1080P: 4,
    Resolution.R720P: 3,
    Resolution.R576P: 2,
    Resolution.R480P: 1,
    Resolution.UNKNOWN: 0,
}


class Source(StrEnum):
    """Origin of the encoded video."""

    REMUX = "remux"
    BLURAY = "bluray"
    WEBDL = "webdl"
    WEBRIP = "webrip"
    UHDTV = "uhdtv"
    HDTV = "hdtv"
    PDTV = "pdtv"
    SATELLITE = "satellite"
    PPV = "ppv"
    DVD = "dvd"
    CAM = "cam"
    TELESYNC = "ts"
    TELECINE = "tc"
    SCREENER = "screener"
    R5 = "r5"
    WORKPRINT = "workprint"
    UNKNOWN = "unknown"

    @property
    def is_blocked(self) -> bool:
        return self in BLOCKED_SOURCES

    @property
    def rank(self) -> int:
        """Ordinal used for cutoff comparisons, higher is better."""
        return _SOURCE_RANK.get(self, 0)


BLOCKED_SOURCES = frozenset(
    {
        Source.CAM,
        Source.TELESYNC,
        Source.TELECINE,
        Source.SCREENER,
        Source.R5,
        Source.WORKPRINT,
    }
)

_SOURCE_RANK = {
    Source.REMUX: 5,
    Source.BLURAY: 4,
    Source.WEBDL: 3,
    Source.WEBRIP: 2,
    Source.UHDTV: 1,
    Source.HDTV: 1,
}


class Codec(StrEnum):
    HEVC = "hevc"
    AV1 = "av1"
    VP9 = "vp9"
    AVC = "avc"
    XVID = "xvid"
    MPEG2 = "mpeg2"
    VC1 = "vc1"
    UNKNOWN = "unknown"


class HDRKind(StrEnum):
    DV = "dv"
    HDR10PLUS = "hdr10plus"
    HDR10 = "hdr10"
    HLG = "hlg"
    SDR = "sdr"
    NONE = "none"


class AudioFormat(StrEnum):
    ATMOS = "atmos"
    TRUEHD = "truehd"
    DTSX = "dtsx"
    DTSHD = "dtshd"
    FLAC = "flac"
    PCM = "pcm"
    DDPLUS = "ddplus"
    DTS = "dts"
    DD = "dd"
    AAC = "aac"
    OPUS = "opus"
    MP3 = "mp3"
    UNKNOWN = "unknown"


class Edition(StrEnum):
    DIRECTORS = "directors"
    EXTENDED = "extended"
    THEATRICAL = "theatrical"
    UNRATED = "unrated"
    REMASTERED = "remastered"
    IMAX = "imax"
    CRITERION = "criterion"
    ULTIMATE = "ultimate"
    COLLECTORS = "collectors"
    ANNIVERSARY = "anniversary"
    SPECIAL = "special"
    OPEN_MATTE = "openmatte"
    NONE = "none"


class SubtitleKind(StrEnum):
    """Whether and how subtitles ship with a release."""

    NONE = "none"
    SOFT = "soft"
    HARD = "hard"


class BlockReason(StrEnum):
    """Reasons a release must never be accepted, in precedence order."""

    BLOCKED_SOURCE = "blocked_source"
    BLOCKED_AUDIO = "blocked_audio"
    BLOCKED_GROUP = "blocked_group"
    HARDCODED_SUBS = "hardcoded_subs"
    UPSCALED = "upscaled"
    SAMPLE = "sample"
    NUKED = "nuked"


class ParsedRelease(msgspec.Struct, frozen=True, kw_only=True):
    """Structured attributes extracted from one raw release title.

    Attributes:
        raw_title: The title exactly as received.
        title: Cleaned media title, empty when nothing could be extracted.
        year: Release year, if present.
        season: Season number for TV releases.
        episodes: Episode numbers; empty for movies and season packs,
            several entries for multi-episode releases.
        is_season_pack: Release contains a whole season.
        is_absolute_episode: ``episodes`` holds absolute (anime) numbers.
        version: Fansub revision, 1 unless a ``v2``-style suffix exists.
        air_date: Air date for daily shows.
    """

    raw_title: str
    title: str = ""
    year: int | None = None
    season: int | None = None
    episodes: tuple[int, ...] = ()
    is_season_pack: bool = False
    is_absolute_episode: bool = False
    is_daily: bool = False
    air_date: date | None = None
    version: int = 1

    resolution: Resolution = Resolution.UNKNOWN
    source: Source = Source.UNKNOWN
    codec: Codec = Codec.UNKNOWN
    bit_depth: int = 8
    hdr: HDRKind = HDRKind.NONE
    audio_format: AudioFormat = AudioFormat.UNKNOWN
    audio_channels: str = ""
    edition: Edition = Edition.NONE
    is_3d: bool = False
    format_3d: str = ""

    release_group: str = ""
    streaming_service: str = ""
    languages: frozenset[str] = frozenset()
    subtitles: SubtitleKind = SubtitleKind.NONE

    is_proper: bool = False
    is_repack: bool = False
    is_real: bool = False
    is_rerip: bool = False
    is_internal: bool = False
    is_limited: bool = False
    is_dubbed: bool = False
    is_dual_audio: bool = False
    is_multi_audio: bool = False
    is_fansub: bool = False
    is_fullscreen: bool = False
    is_anime: bool = False

    is_blocked_source: bool = False
    is_blocked_audio: bool = False
    has_hardcoded_subs: bool = False
    is_upscaled: bool = False
    is_sample: bool = False
    is_nuked: bool = False
    is_blocked_group: bool = False

    @property
    def is_tv(self) -> bool:
        return (
            self.season is not None
            or bool(self.episodes)
            or self.is_season_pack
            or self.is_daily
        )

    @property
    def is_multi_episode(self) -> bool:
        return len(self.episodes) > 1

    @property
    def block_reasons(self) -> list[BlockReason]:
        """All blocked flags that are set, in precedence order."""
        flags = (
            (self.is_blocked_source, BlockReason.BLOCKED_SOURCE),
            (self.is_blocked_audio, BlockReason.BLOCKED_AUDIO),
            (self.is_blocked_group, BlockReason.BLOCKED_GROUP),
            (self.has_hardcoded_subs, BlockReason.HARDCODED_SUBS),
            (self.is_upscaled, BlockReason.UPSCALED),
            (self.is_sample, BlockReason.SAMPLE),
            (self.is_nuked, BlockReason.NUKED),
        )
        return [reason for is_set, reason in flags if is_set]

    @property
    def is_blocked(self) -> bool:
        return bool(self.block_reasons)
