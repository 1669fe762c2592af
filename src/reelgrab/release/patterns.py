"""Ordered pattern tables used by the release parser.

Every table is evaluated top to bottom and the first hit wins, so more
specific patterns must come before their prefixes (``HDR10+`` before
``HDR10``, ``DTS-HD`` before ``DTS``, ``DDP`` before ``DD``).
"""

import re
from typing import NamedTuple

from .models import AudioFormat, Codec, Edition, HDRKind, Resolution, Source


class TagPattern(NamedTuple):
    """A pattern, the tag it yields and an optional veto pattern."""

    pattern: re.Pattern[str]
    tag: object
    exclude: re.Pattern[str] | None = None


def _p(regex: str, tag: object, exclude: str | None = None, flags: int = re.I) -> TagPattern:
    return TagPattern(
        re.compile(regex, flags),
        tag,
        re.compile(exclude, flags) if exclude else None,
    )


def first_match(table: list[TagPattern], text: str, default=None):
    """Return the tag of the first pattern in ``table`` matching ``text``."""
    for entry in table:
        if entry.pattern.search(text) and not (
            entry.exclude and entry.exclude.search(text)
        ):
            return entry.tag
    return default


def first_position(table: list[TagPattern], text: str) -> int | None:
    """Return the earliest match start of any pattern in ``table``."""
    positions = [
        match.start()
        for entry in table
        if (match := entry.pattern.search(text)) is not None
    ]
    return min(positions) if positions else None


RESOLUTION_PATTERNS = [
    _p(r"\b(2160p|4k|uhd|3840x2160)\b", Resolution.R2160P),
    _p(r"\b(1080[pi]|1920x1080|fhd)\b", Resolution.R1080P),
    _p(r"\b(720p|1280x720)\b", Resolution.R720P),
    _p(r"\b576[pi]\b", Resolution.R576P),
    _p(r"\b(480[pi]|640x480|848x480)\b", Resolution.R480P),
]

# Blocked sources come first so "HDTS" is never read as a TV source.
SOURCE_PATTERNS = [
    _p(r"\b(cam|hdcam|camrip)\b", Source.CAM),
    _p(r"\b(ts|hdts|telesync|tsrip)\b", Source.TELESYNC),
    _p(r"\b(tc|hdtc|telecine)\b", Source.TELECINE),
    _p(r"\b(scr|screener|dvdscr|dvdscreener|bdscr|webscr)\b", Source.SCREENER),
    _p(r"\br5\b", Source.R5),
    _p(r"\bworkprint\b", Source.WORKPRINT),
    _p(r"\bremux\b", Source.REMUX),
    _p(r"\b(blu-?ray|bdrip|brrip|bd(25|50|66|100)?)\b", Source.BLURAY),
    _p(r"\bweb-?dl\b", Source.WEBDL),
    _p(r"\bweb-?rip\b", Source.WEBRIP),
    _p(r"\bweb\b", Source.WEBDL),
    _p(r"\buhdtv\b", Source.UHDTV),
    _p(r"\bhdtv(rip)?\b", Source.HDTV),
    _p(r"\bpdtv\b", Source.PDTV),
    _p(r"\b(dsr|dsrip|satrip|dthrip)\b", Source.SATELLITE),
    _p(r"\bppv(rip)?\b", Source.PPV),
    _p(r"\b(dvd(rip|r|5|9)?|ntsc|pal)\b", Source.DVD),
]

CODEC_PATTERNS = [
    _p(r"\b(hevc|x\.?265|h\.?265)\b", Codec.HEVC),
    _p(r"\bav1\b", Codec.AV1),
    _p(r"\bvp9\b", Codec.VP9),
    _p(r"\b(avc|x\.?264|h\.?264)\b", Codec.AVC),
    _p(r"\b(xvid|divx)\b", Codec.XVID),
    _p(r"\bmpeg-?2\b", Codec.MPEG2),
    _p(r"\bvc-?1\b", Codec.VC1),
]

BIT_DEPTH_PATTERNS = [
    _p(r"\b12-?bit\b", 12),
    _p(r"\b(10-?bit|hi10p?)\b", 10),
    _p(r"\b8-?bit\b", 8),
]

HDR_PATTERNS = [
    _p(r"\b(dv|dovi|dolby[.\s-]?vision)\b", HDRKind.DV),
    _p(r"\bhdr10(\+|plus)", HDRKind.HDR10PLUS),
    _p(r"\bhdr(10)?\b", HDRKind.HDR10),
    _p(r"\bhlg\b", HDRKind.HLG),
    _p(r"\bsdr\b", HDRKind.SDR),
]

AUDIO_PATTERNS = [
    _p(r"\batmos\b", AudioFormat.ATMOS),
    _p(r"\btrue-?hd\b", AudioFormat.TRUEHD),
    _p(r"\bdts[.\s-]?x\b", AudioFormat.DTSX),
    _p(r"\b(dts[.\s-]?hd([.\s-]?ma)?|dts-?ma)\b", AudioFormat.DTSHD),
    _p(r"\bflac\b", AudioFormat.FLAC),
    _p(r"\bl?pcm\b", AudioFormat.PCM),
    _p(r"\b(ddpa?|dd\+|e-?ac-?3)", AudioFormat.DDPLUS),
    _p(r"\bdts(?![a-z])", AudioFormat.DTS),
    _p(r"\b(dd(?=\d|\b)|ac-?3\b|dolby[.\s]?digital\b)", AudioFormat.DD),
    _p(r"\baac(?![a-z])", AudioFormat.AAC),
    _p(r"\bopus\b", AudioFormat.OPUS),
    _p(r"\bmp3\b", AudioFormat.MP3),
]

AUDIO_CHANNEL_PATTERNS = [
    _p(r"(?<!\d)7[.\s]1(?!\d)|\b8ch\b", "7.1"),
    _p(r"(?<!\d)5[.\s]1(?!\d)|\b6ch\b", "5.1"),
    _p(r"(?<!\d)2[.\s]0(?!\d)|\b2ch\b|\bstereo\b", "2.0"),
    _p(r"(?<!\d)1[.\s]0(?!\d)|\bmono\b", "1.0"),
]

EDITION_PATTERNS = [
    _p(r"\b(directors?'?s?[.\s-]?cut|dc)\b", Edition.DIRECTORS),
    _p(r"\bextended([.\s-]?(cut|edition))?\b", Edition.EXTENDED),
    _p(r"\btheatrical\b", Edition.THEATRICAL),
    _p(r"\b(unrated|uncut)\b", Edition.UNRATED),
    _p(r"\bremaster(ed)?\b", Edition.REMASTERED),
    _p(r"\bimax\b", Edition.IMAX),
    _p(r"\bcriterion\b", Edition.CRITERION),
    _p(r"\bultimate[.\s-]?(cut|edition)\b", Edition.ULTIMATE),
    _p(r"\bcollector'?s?[.\s-]?edition\b", Edition.COLLECTORS),
    _p(r"\b(anniversary[.\s-]?edition|\d+th[.\s-]anniversary)\b", Edition.ANNIVERSARY),
    _p(r"\bspecial[.\s-]?edition\b", Edition.SPECIAL),
    _p(r"\bopen[.\s-]?matte\b", Edition.OPEN_MATTE),
]

FORMAT_3D_PATTERNS = [
    _p(r"\b(h-?sbs|half[.\s-]?sbs)\b", "hsbs"),
    _p(r"\b(full[.\s-]?)?sbs\b", "sbs"),
    _p(r"\b(h-?ou|half[.\s-]?ou)\b", "hou"),
    _p(r"\bmvc\b", "mvc"),
]

THREE_D_RE = re.compile(r"\b3d\b", re.I)
OVER_UNDER_RE = re.compile(r"\b(ou|tab)\b", re.I)

# Case-sensitive: "iT" must not match the word "it".
STREAMING_SERVICE_RE = re.compile(
    r"(?<![A-Za-z0-9])"
    r"(AMZN|NF|ATVP|DSNP|HMAX|HULU|PCOK|PMTP|iT|ZEE5|ANGL|CRAV|STAN|HTSR)"
    r"(?![A-Za-z0-9])"
)

# Episode numbering
SEASON_EPISODE_RE = re.compile(
    r"\bS(?P<season>\d{1,2})[.\s-]?E(?P<first>\d{1,4})"
    r"(?P<rest>(?:[.\s-]?E\d{1,4}|-\d{1,4}(?![\dp]))*)",
    re.I,
)
EPISODE_TOKEN_RE = re.compile(r"(-)?\s*E?(\d+)", re.I)
CROSS_EPISODE_RE = re.compile(r"(?<![\d])(?P<season>\d{1,2})x(?P<first>\d{2,3})(?![\dp])", re.I)
SEASON_PACK_RE = re.compile(
    r"\bS(?P<season>\d{1,2})(?:[.\s-]?S\d{1,2})?\b(?![.\s-]?E\d)", re.I
)
SEASON_WORD_RE = re.compile(r"\bseason[.\s]?(?P<season>\d{1,2})\b", re.I)
COMPLETE_RE = re.compile(r"\bcomplete\b", re.I)
DAILY_RE = re.compile(
    r"(?<!\d)(?P<year>(?:19|20)\d{2})[.\-\s](?P<month>\d{2})[.\-\s](?P<day>\d{2})(?!\d)"
)
ANIME_GROUP_RE = re.compile(r"^\[(?P<group>[^\]]+)\]\s*")
ABSOLUTE_DASH_RE = re.compile(
    r"\s-\s*(?P<episode>\d{2,4})(?:v(?P<version>\d))?(?=\s*[\[(]|\s*$|\s)", re.I
)
ABSOLUTE_BARE_RE = re.compile(
    r"\s(?P<episode>\d{2,4})(?:v(?P<version>\d))?\s*(?=[\[(])", re.I
)
VERSION_RE = re.compile(r"(?<=\d)v(?P<version>\d)\b|\[v(?P<bracketed>\d)\]", re.I)
YEAR_RE = re.compile(r"(?<![0-9])(?P<year>(?:19|20)\d{2})(?![0-9])")
RESOLUTION_NUMBERS = frozenset({480, 576, 720, 1080, 2160})

# Release group and cleanup
EXTENSION_RE = re.compile(
    r"\.(mkv|mp4|avi|m4v|wmv|mov|ts|m2ts|webm|flv|nzb|torrent)$", re.I
)
TRAILING_BRACKETS_RE = re.compile(r"(\s*\[[^\]]*\])+\s*$")
GROUP_RE = re.compile(r"-(?P<group>[A-Za-z0-9][A-Za-z0-9_]*)$")
NOT_A_GROUP = frozenset(
    {"DL", "RIP", "WEB", "HD", "MA", "X264", "X265", "H264", "H265", "DV", "HDR", "AAC", "DTS"}
)
BLOCKED_GROUPS = frozenset(
    {"yify", "yts", "rarbg", "tgx", "megusta", "stuttershit", "axxo"}
)
BLOCKED_GROUP_MARKER_RE = re.compile(r"\b(yify|yts(\.(mx|am|lt|ag))?)\b", re.I)

# Language tokens are matched against separator-split words of the tag zone.
LANGUAGE_TOKENS = {
    "ENG": "en", "ENGLISH": "en", "EN": "en",
    "FRENCH": "fr", "FRE": "fr", "FR": "fr", "VFF": "fr", "VFQ": "fr", "TRUEFRENCH": "fr",
    "GERMAN": "de", "GER": "de", "DEU": "de", "DE": "de",
    "ITALIAN": "it", "ITA": "it",
    "SPANISH": "es", "SPA": "es", "ESP": "es", "CASTELLANO": "es", "LATINO": "es",
    "JAPANESE": "ja", "JPN": "ja", "JAP": "ja",
    "KOREAN": "ko", "KOR": "ko",
    "CHINESE": "zh", "CHI": "zh", "CHS": "zh", "CHT": "zh", "MANDARIN": "zh",
    "RUSSIAN": "ru", "RUS": "ru",
    "PORTUGUESE": "pt", "POR": "pt",
    "HINDI": "hi", "HIN": "hi",
    "DUTCH": "nl", "NLD": "nl",
    "POLISH": "pl", "POL": "pl",
    "SWEDISH": "sv", "SWE": "sv",
    "DANISH": "da", "DAN": "da",
    "NORWEGIAN": "no", "NOR": "no",
    "TURKISH": "tr", "TUR": "tr",
    "ARABIC": "ar", "ARA": "ar",
}
TOKEN_SPLIT_RE = re.compile(r"[\s.\-_\[\]()+,]+")

# Scene and quality tags
PROPER_RE = re.compile(r"\bproper\b", re.I)
REPACK_RE = re.compile(r"\brepack\d?\b", re.I)
REAL_RE = re.compile(r"\bREAL\b")
RERIP_RE = re.compile(r"\brerip\b", re.I)
INTERNAL_RE = re.compile(r"\binternal\b", re.I)
LIMITED_RE = re.compile(r"\blimited\b", re.I)
NUKED_RE = re.compile(r"\bnuked?\b", re.I)
SAMPLE_RE = re.compile(r"\bsample\b", re.I)
UPSCALED_RE = re.compile(r"\b(upscaled?|ai[.\s-]?upscaled?)\b", re.I)
HARDCODED_RE = re.compile(r"\b(hc|hardcoded|hard[.\s-]?coded|hardsubs?|korsubs?|hcsubs?)\b", re.I)
SOFTSUB_RE = re.compile(r"\b(soft[.\s-]?subs?|subbed|multi[.\s-]?subs?|msubs)\b", re.I)
DUBBED_RE = re.compile(r"\b(dubbed|dub)\b", re.I)
DUAL_AUDIO_RE = re.compile(r"\bdual([.\s-]?audio)?\b", re.I)
MULTI_AUDIO_RE = re.compile(r"\bmulti\b", re.I)
FANSUB_RE = re.compile(r"\bfansub\b", re.I)
FULLSCREEN_RE = re.compile(r"\b(fs|full[.\s-]?screen)\b", re.I)
COMPRESSED_AUDIO_RE = re.compile(r"\b(md|mic[.\s-]?dub|line[.\s-]?dub|line|ld)\b", re.I)
