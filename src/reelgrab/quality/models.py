"""Data models for quality scoring and selection."""

import re
from datetime import datetime
from enum import StrEnum
from functools import lru_cache
from typing import TYPE_CHECKING

import msgspec

from ..release import AudioFormat, Codec, Edition, HDRKind, ParsedRelease, Resolution, Source

if TYPE_CHECKING:
    from ..indexers import IndexerResult


class QualityTier(StrEnum):
    """Coarse quality buckets derived from resolution and source."""

    REMUX_2160P = "Remux-2160p"
    BLURAY_2160P = "Bluray-2160p"
    WEBDL_2160P = "WEBDL-2160p"
    WEBRIP_2160P = "WEBRip-2160p"
    HDTV_2160P = "HDTV-2160p"
    REMUX_1080P = "Remux-1080p"
    BLURAY_1080P = "Bluray-1080p"
    WEBDL_1080P = "WEBDL-1080p"
    WEBRIP_1080P = "WEBRip-1080p"
    HDTV_1080P = "HDTV-1080p"
    BLURAY_720P = "Bluray-720p"
    WEBDL_720P = "WEBDL-720p"
    WEBRIP_720P = "WEBRip-720p"
    HDTV_720P = "HDTV-720p"
    BLURAY_576P = "Bluray-576p"
    BLURAY_480P = "Bluray-480p"
    WEBDL_480P = "WEBDL-480p"
    DVD = "DVD"
    SDTV = "SDTV"
    UNKNOWN = "Unknown"

    @property
    def base_score(self) -> int:
        return TIER_BASE_SCORES[self]


TIER_BASE_SCORES = {
    QualityTier.REMUX_2160P: 100000,
    QualityTier.BLURAY_2160P: 95000,
    QualityTier.WEBDL_2160P: 90000,
    QualityTier.WEBRIP_2160P: 85000,
    QualityTier.HDTV_2160P: 80000,
    QualityTier.REMUX_1080P: 75000,
    QualityTier.BLURAY_1080P: 70000,
    QualityTier.WEBDL_1080P: 65000,
    QualityTier.WEBRIP_1080P: 60000,
    QualityTier.HDTV_1080P: 55000,
    QualityTier.BLURAY_720P: 50000,
    QualityTier.WEBDL_720P: 45000,
    QualityTier.WEBRIP_720P: 40000,
    QualityTier.HDTV_720P: 35000,
    QualityTier.BLURAY_576P: 30000,
    QualityTier.BLURAY_480P: 25000,
    QualityTier.WEBDL_480P: 20000,
    QualityTier.DVD: 10000,
    QualityTier.SDTV: 5000,
    QualityTier.UNKNOWN: 1000,
}


class ConditionField(StrEnum):
    """Release attribute a custom format condition is matched against."""

    TITLE = "title"
    RELEASE_GROUP = "release_group"
    SOURCE = "source"
    RESOLUTION = "resolution"
    CODEC = "codec"
    HDR = "hdr"
    AUDIO_FORMAT = "audio_format"
    EDITION = "edition"
    STREAMING_SERVICE = "streaming_service"


@lru_cache(maxsize=1024)
def compile_condition(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.I)


class CustomFormatCondition(msgspec.Struct, frozen=True, kw_only=True):
    """One regex condition of a custom format.

    Attributes:
        pattern: Regular expression, matched case-insensitively.
        field: Release attribute to match, the raw title by default.
        required: Condition must hold for the format to match.
        negate: Invert the match result.
    """

    pattern: str
    field: ConditionField = ConditionField.TITLE
    required: bool = False
    negate: bool = False

    def value_of(self, release: ParsedRelease) -> str:
        if self.field is ConditionField.TITLE:
            return release.raw_title
        return str(getattr(release, self.field.value))

    def matches(self, release: ParsedRelease) -> bool:
        hit = compile_condition(self.pattern).search(self.value_of(release)) is not None
        return hit != self.negate


class CustomFormat(msgspec.Struct, frozen=True, kw_only=True):
    """Named, signed-score rule used to fine-tune ranking."""

    name: str
    score: int
    conditions: tuple[CustomFormatCondition, ...] = ()

    def matches(self, release: ParsedRelease) -> bool:
        """Check whether the format applies to ``release``.

        All required conditions must hold, and when optional conditions
        exist at least one of them must hold as well.
        """
        if not self.conditions:
            return False
        required = [c for c in self.conditions if c.required]
        optional = [c for c in self.conditions if not c.required]
        if not all(c.matches(release) for c in required):
            return False
        return not optional or any(c.matches(release) for c in optional)


class TierSetting(msgspec.Struct, frozen=True):
    tier: QualityTier
    enabled: bool = True


class QualityProfile(msgspec.Struct, frozen=True, kw_only=True):
    """Tiered profile: tiers are listed best first."""

    tiers: tuple[TierSetting, ...] = ()
    cutoff: QualityTier | None = None
    custom_formats: tuple[CustomFormat, ...] = ()
    min_format_score: int | None = None
    upgrade_allowed: bool = True

    def tier_index(self, tier: QualityTier) -> int | None:
        for index, setting in enumerate(self.tiers):
            if setting.tier is tier:
                return index
        return None

    def is_enabled(self, tier: QualityTier) -> bool:
        """Tiers missing from a non-empty list count as disabled."""
        if not self.tiers:
            return True
        index = self.tier_index(tier)
        return index is not None and self.tiers[index].enabled


class QualityTarget(msgspec.Struct, frozen=True, kw_only=True):
    """What the user wants a piece of media to look like."""

    name: str = "default"
    resolution: Resolution | None = None
    min_resolution: Resolution = Resolution.R720P
    sources: tuple[Source, ...] = ()
    hdr_preferences: tuple[HDRKind, ...] = ()
    audio_preferences: tuple[AudioFormat, ...] = ()
    codec: Codec | None = None
    preferred_edition: Edition | None = None
    min_seeders: int = 0
    prefer_season_packs: bool = False
    prefer_dual_audio: bool = False
    prefer_soft_subs: bool = False
    required_languages: tuple[str, ...] = ()
    auto_upgrade: bool = False
    min_upgrade_increment: int = 10
    profile: QualityProfile | None = None


def _default_resolution_weights() -> dict[Resolution, int]:
    return {
        Resolution.R2160P: 100,
        Resolution.R1080P: 75,
        Resolution.R720P: 50,
        Resolution.R576P: 30,
        Resolution.R480P: 25,
        Resolution.UNKNOWN: 0,
    }


def _default_source_weights() -> dict[Source, int]:
    return {
        Source.REMUX: 50,
        Source.BLURAY: 40,
        Source.WEBDL: 30,
        Source.WEBRIP: 20,
        Source.UHDTV: 12,
        Source.HDTV: 10,
        Source.SATELLITE: 5,
        Source.PDTV: 5,
        Source.DVD: 5,
    }


def _default_hdr_weights() -> dict[HDRKind, int]:
    return {HDRKind.DV: 20, HDRKind.HDR10PLUS: 15, HDRKind.HDR10: 10, HDRKind.HLG: 5}


def _default_audio_weights() -> dict[AudioFormat, int]:
    return {
        AudioFormat.ATMOS: 20,
        AudioFormat.TRUEHD: 15,
        AudioFormat.DTSHD: 15,
        AudioFormat.DTSX: 15,
        AudioFormat.FLAC: 10,
        AudioFormat.PCM: 10,
        AudioFormat.DDPLUS: 5,
        AudioFormat.DTS: 3,
        AudioFormat.DD: 2,
    }


def _default_codec_weights() -> dict[Codec, int]:
    return {Codec.HEVC: 5, Codec.AV1: 5, Codec.AVC: 3}


class ScoringWeights(msgspec.Struct, frozen=True, kw_only=True):
    """Magnitudes of the additive scoring model."""

    resolution: dict[Resolution, int] = msgspec.field(default_factory=_default_resolution_weights)
    source: dict[Source, int] = msgspec.field(default_factory=_default_source_weights)
    hdr: dict[HDRKind, int] = msgspec.field(default_factory=_default_hdr_weights)
    audio: dict[AudioFormat, int] = msgspec.field(default_factory=_default_audio_weights)
    codec: dict[Codec, int] = msgspec.field(default_factory=_default_codec_weights)
    preference_step: int = 2
    codec_preference: int = 5
    ten_bit: int = 5
    trusted_group: int = 5
    proper: int = 5
    rerip: int = 5
    version_step: int = 3
    dual_audio: int = 10
    soft_subs: int = 5
    preferred_edition: int = 5
    season_pack: int = 10
    seeder_divisor: int = 10
    seeder_cap: int = 10
    fullscreen_penalty: int = -20
    dubbed_penalty: int = -10
    fansub_penalty: int = -5


DEFAULT_TRUSTED_GROUPS = frozenset(
    group.lower()
    for group in (
        "FraMeSToR", "SPARKS", "FLUX", "TERMINAL", "SMURF", "CtrlHD", "EVO", "NTb",
        "CMRG", "PlayWEB", "HONE", "BHDStudio", "DON", "EbP", "KiNGS", "TEPES",
        "SubsPlease", "Erai-raws", "Judas", "Commie", "GJM", "Tsundere-Raws",
    )
)


def normalize_release_title(title: str) -> str:
    """Lower-case a title and collapse separators for blocklist comparisons."""
    return re.sub(r"[\s._-]+", " ", title).strip().lower()


class ScoringSettings(msgspec.Struct, frozen=True, kw_only=True):
    """Read-only snapshot of user settings passed into every evaluation."""

    weights: ScoringWeights = msgspec.field(default_factory=ScoringWeights)
    trusted_groups: frozenset[str] = DEFAULT_TRUSTED_GROUPS
    blocked_groups: frozenset[str] = frozenset()
    blocklisted_titles: frozenset[str] = frozenset()

    def is_blocklisted(self, release: ParsedRelease) -> bool:
        return normalize_release_title(release.raw_title) in self.blocklisted_titles

    def is_group_blocked(self, release: ParsedRelease) -> bool:
        return bool(release.release_group) and (
            release.release_group.lower() in self.blocked_groups
        )


class Evaluation(msgspec.Struct, frozen=True, kw_only=True):
    """Outcome of evaluating one release against a target."""

    accepted: bool
    score: int = 0
    reason: str | None = None
    matches_target: bool = False
    tier: QualityTier = QualityTier.UNKNOWN
    format_score: int = 0
    matched_formats: tuple[str, ...] = ()


class Candidate(msgspec.Struct, frozen=True):
    """A parsed release together with the indexer result it came from."""

    release: ParsedRelease
    result: "IndexerResult"


class ScoredCandidate(msgspec.Struct, frozen=True):
    """An accepted candidate with its evaluation."""

    release: ParsedRelease
    result: "IndexerResult"
    evaluation: Evaluation

    @property
    def score(self) -> int:
        return self.evaluation.score

    @property
    def matches_target(self) -> bool:
        return self.evaluation.matches_target

    @property
    def seeders(self) -> int:
        return self.result.seeders or 0

    @property
    def published_at(self) -> datetime | None:
        return self.result.published_at
