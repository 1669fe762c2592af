"""Release title parser.

``parse`` turns an arbitrary release title into a :class:`ParsedRelease`.
It never raises: anything it cannot recognise stays at its unknown or
empty default.
"""

import re
from datetime import date
from functools import lru_cache

from . import patterns as p
from .models import (
    AudioFormat,
    Codec,
    Edition,
    HDRKind,
    ParsedRelease,
    Resolution,
    Source,
    SubtitleKind,
)

# Markers that reliably end the title part of a release name.
_TITLE_STOP_RE = re.compile(
    r"\b(remux|blu-?ray|bdrip|brrip|web-?dl|web-?rip|hdtv|dvdrip|hdcam|hdts|"
    r"telesync|proper|repack|hevc|x\.?26[45]|h\.?26[45])\b",
    re.I,
)
_HDR_TEN_BIT = frozenset({HDRKind.DV, HDRKind.HDR10PLUS, HDRKind.HDR10, HDRKind.HLG})
_MAX_RANGE = 50


class _Episodes:
    """Episode numbering found in a title and where it starts."""

    def __init__(self) -> None:
        self.season: int | None = None
        self.episodes: tuple[int, ...] = ()
        self.is_season_pack = False
        self.is_absolute = False
        self.air_date: date | None = None
        self.version: int | None = None
        self.position: int | None = None


def _strip_name(raw_title: str) -> str:
    name = raw_title.strip()
    name = p.EXTENSION_RE.sub("", name)
    return name


def _expand_episodes(first: int, rest: str) -> tuple[int, ...]:
    """Expand ``E01E02``, ``E01-E03`` and ``E01-03`` style episode lists."""
    episodes = [first]
    for dash, number in p.EPISODE_TOKEN_RE.findall(rest):
        value = int(number)
        previous = episodes[-1]
        if dash and previous < value <= previous + _MAX_RANGE:
            episodes.extend(range(previous + 1, value + 1))
        elif value not in episodes:
            episodes.append(value)
    return tuple(episodes)


def _parse_episodes(text: str, is_anime: bool) -> _Episodes:
    found = _Episodes()

    if match := p.SEASON_EPISODE_RE.search(text):
        found.season = int(match["season"])
        found.episodes = _expand_episodes(int(match["first"]), match["rest"])
        found.position = match.start()
        return found

    if match := p.CROSS_EPISODE_RE.search(text):
        found.season = int(match["season"])
        found.episodes = (int(match["first"]),)
        found.position = match.start()
        return found

    if match := p.DAILY_RE.search(text):
        try:
            found.air_date = date(int(match["year"]), int(match["month"]), int(match["day"]))
        except ValueError:
            pass
        else:
            found.position = match.start()
            return found

    for regex in (p.SEASON_PACK_RE, p.SEASON_WORD_RE):
        if match := regex.search(text):
            found.season = int(match["season"])
            found.is_season_pack = True
            found.position = match.start()
            return found

    if is_anime:
        for regex in (p.ABSOLUTE_DASH_RE, p.ABSOLUTE_BARE_RE):
            match = regex.search(text)
            if match is None:
                continue
            number = int(match["episode"])
            if number in p.RESOLUTION_NUMBERS or (
                len(match["episode"]) == 4 and 1900 <= number <= 2099
            ):
                continue
            found.episodes = (number,)
            found.is_absolute = True
            found.position = match.start()
            if match["version"]:
                found.version = int(match["version"])
            return found

    if match := p.COMPLETE_RE.search(text):
        found.is_season_pack = True
        found.position = match.start()

    return found


def _pick_year(text: str, stop: int | None) -> tuple[int | None, int | None]:
    """Choose the release year: the last year-like token before ``stop``.

    A year at the very start of the name is part of the title (``1917``).
    """
    year = position = None
    for match in p.YEAR_RE.finditer(text):
        if match.start() == 0:
            continue
        if stop is not None and match.start() >= stop:
            break
        year, position = int(match["year"]), match.start()
    return year, position


def _clean_title(title_part: str) -> str:
    title = title_part.replace(".", " ").replace("_", " ")
    title = re.sub(r"[\[(]\s*$", "", title)
    title = re.sub(r"\s+", " ", title)
    return title.strip(" -([")


def _detect_languages(tokens: list[str], is_dubbed: bool, is_multi: bool) -> frozenset[str]:
    languages = {p.LANGUAGE_TOKENS[token] for token in tokens if token in p.LANGUAGE_TOKENS}
    if not languages and not is_dubbed and not is_multi:
        languages.add("en")
    return frozenset(languages)


def _detect_group(name: str, anime_group: str | None) -> str:
    if anime_group:
        return anime_group.strip()
    stripped = p.TRAILING_BRACKETS_RE.sub("", name)
    match = p.GROUP_RE.search(stripped)
    if match and match["group"].upper() not in p.NOT_A_GROUP:
        return match["group"]
    return ""


@lru_cache(maxsize=4096)
def parse(raw_title: str) -> ParsedRelease:
    """Parse a raw release title into structured attributes.

    Args:
        raw_title: Release name as returned by an indexer or found on disk.

    Returns:
        ParsedRelease: Parsed attributes. Unrecognised attributes keep
            their unknown/empty defaults.
    """
    name = _strip_name(raw_title)
    anime_match = p.ANIME_GROUP_RE.match(name)
    anime_group = anime_match["group"] if anime_match else None
    body = name[anime_match.end():] if anime_match else name
    text = body.replace("_", " ")

    episodes = _parse_episodes(text, is_anime=anime_group is not None)

    stop_match = _TITLE_STOP_RE.search(text)
    quality_positions = [
        pos
        for pos in (
            p.first_position(p.RESOLUTION_PATTERNS, text),
            p.first_position(p.CODEC_PATTERNS, text),
            stop_match.start() if stop_match else None,
            episodes.position,
        )
        if pos is not None
    ]
    quality_start = min(quality_positions) if quality_positions else None

    if episodes.air_date is not None:
        year, year_position = episodes.air_date.year, episodes.position
    else:
        year, year_position = _pick_year(text, quality_start)

    ends = [pos for pos in (quality_start, year_position) if pos is not None]
    if anime_group is not None:
        bracket = re.search(r"[\[(]", text)
        if bracket:
            ends.append(bracket.start())
    title_end = min(ends) if ends else len(text)
    if title_end == 0:
        title_end = len(text)

    title = _clean_title(text[:title_end])
    tag_zone = text[title_end:] if title_end < len(text) else text
    tokens = [token.upper() for token in p.TOKEN_SPLIT_RE.split(tag_zone) if token]

    resolution = p.first_match(p.RESOLUTION_PATTERNS, text, Resolution.UNKNOWN)
    source = p.first_match(p.SOURCE_PATTERNS, tag_zone, Source.UNKNOWN)
    codec = p.first_match(p.CODEC_PATTERNS, text, Codec.UNKNOWN)
    hdr = p.first_match(p.HDR_PATTERNS, tag_zone, HDRKind.NONE)
    bit_depth = p.first_match(p.BIT_DEPTH_PATTERNS, text, None)
    if bit_depth is None:
        bit_depth = 10 if hdr in _HDR_TEN_BIT else 8

    format_3d = p.first_match(p.FORMAT_3D_PATTERNS, tag_zone, "")
    has_3d_marker = bool(p.THREE_D_RE.search(tag_zone))
    if not format_3d and has_3d_marker and p.OVER_UNDER_RE.search(tag_zone):
        format_3d = "ou"

    service_match = p.STREAMING_SERVICE_RE.search(tag_zone)
    release_group = _detect_group(name, anime_group)
    group_key = release_group.lower()

    is_dubbed = bool(p.DUBBED_RE.search(tag_zone))
    is_multi = bool(p.MULTI_AUDIO_RE.search(tag_zone))
    has_hardcoded = bool(p.HARDCODED_RE.search(tag_zone))
    if has_hardcoded:
        subtitles = SubtitleKind.HARD
    elif p.SOFTSUB_RE.search(tag_zone):
        subtitles = SubtitleKind.SOFT
    else:
        subtitles = SubtitleKind.NONE

    version = episodes.version
    if version is None:
        version_match = p.VERSION_RE.search(text)
        version = (
            int(version_match["version"] or version_match["bracketed"])
            if version_match
            else 1
        )

    return ParsedRelease(
        raw_title=raw_title,
        title=title,
        year=year,
        season=episodes.season,
        episodes=episodes.episodes,
        is_season_pack=episodes.is_season_pack,
        is_absolute_episode=episodes.is_absolute,
        is_daily=episodes.air_date is not None,
        air_date=episodes.air_date,
        version=version,
        resolution=resolution,
        source=source,
        codec=codec,
        bit_depth=bit_depth,
        hdr=hdr,
        audio_format=p.first_match(p.AUDIO_PATTERNS, tag_zone, AudioFormat.UNKNOWN),
        audio_channels=p.first_match(p.AUDIO_CHANNEL_PATTERNS, tag_zone, ""),
        edition=p.first_match(p.EDITION_PATTERNS, tag_zone, Edition.NONE),
        is_3d=has_3d_marker or bool(format_3d),
        format_3d=format_3d,
        release_group=release_group,
        streaming_service=service_match.group(1) if service_match else "",
        languages=_detect_languages(tokens, is_dubbed, is_multi),
        subtitles=subtitles,
        is_proper=bool(p.PROPER_RE.search(tag_zone)),
        is_repack=bool(p.REPACK_RE.search(tag_zone)),
        is_real=bool(p.REAL_RE.search(tag_zone)),
        is_rerip=bool(p.RERIP_RE.search(tag_zone)),
        is_internal=bool(p.INTERNAL_RE.search(tag_zone)),
        is_limited=bool(p.LIMITED_RE.search(tag_zone)),
        is_dubbed=is_dubbed,
        is_dual_audio=bool(p.DUAL_AUDIO_RE.search(tag_zone)),
        is_multi_audio=is_multi,
        is_fansub=bool(p.FANSUB_RE.search(tag_zone)),
        is_fullscreen=bool(p.FULLSCREEN_RE.search(tag_zone)),
        is_anime=anime_group is not None or episodes.is_absolute,
        is_blocked_source=source.is_blocked,
        is_blocked_audio=bool(p.COMPRESSED_AUDIO_RE.search(tag_zone)),
        has_hardcoded_subs=has_hardcoded,
        is_upscaled=bool(p.UPSCALED_RE.search(tag_zone)),
        is_sample=bool(p.SAMPLE_RE.search(name)),
        is_nuked=bool(p.NUKED_RE.search(tag_zone)),
        is_blocked_group=(
            group_key in p.BLOCKED_GROUPS or bool(p.BLOCKED_GROUP_MARKER_RE.search(name))
        ),
    )
