"""Release evaluation and scoring.

All functions here are pure: the target and settings snapshots are
passed in explicitly and nothing is read from global state.
"""

from .. import logger
from ..release import ParsedRelease, Resolution, Source, SubtitleKind
from .models import (
    CustomFormat,
    Evaluation,
    QualityTarget,
    QualityTier,
    ScoringSettings,
)

PREMIUM_SOURCES = frozenset({Source.REMUX, Source.BLURAY})

_TIER_BY_SOURCE = {
    Resolution.R2160P: {
        Source.REMUX: QualityTier.REMUX_2160P,
        Source.BLURAY: QualityTier.BLURAY_2160P,
        Source.WEBDL: QualityTier.WEBDL_2160P,
        Source.WEBRIP: QualityTier.WEBRIP_2160P,
        Source.UHDTV: QualityTier.HDTV_2160P,
        Source.HDTV: QualityTier.HDTV_2160P,
    },
    Resolution.R1080P: {
        Source.REMUX: QualityTier.REMUX_1080P,
        Source.BLURAY: QualityTier.BLURAY_1080P,
        Source.WEBDL: QualityTier.WEBDL_1080P,
        Source.WEBRIP: QualityTier.WEBRIP_1080P,
        Source.HDTV: QualityTier.HDTV_1080P,
    },
    Resolution.R720P: {
        Source.BLURAY: QualityTier.BLURAY_720P,
        Source.WEBDL: QualityTier.WEBDL_720P,
        Source.WEBRIP: QualityTier.WEBRIP_720P,
        Source.HDTV: QualityTier.HDTV_720P,
    },
    Resolution.R576P: {Source.BLURAY: QualityTier.BLURAY_576P},
    Resolution.R480P: {
        Source.BLURAY: QualityTier.BLURAY_480P,
        Source.WEBDL: QualityTier.WEBDL_480P,
        Source.WEBRIP: QualityTier.WEBDL_480P,
    },
}


def compute_quality_tier(release: ParsedRelease) -> QualityTier:
    """Map resolution and source onto a quality tier."""
    tier = _TIER_BY_SOURCE.get(release.resolution, {}).get(release.source)
    if tier is not None:
        return tier
    if release.source is Source.DVD:
        return QualityTier.DVD
    if release.source in (Source.HDTV, Source.PDTV, Source.SATELLITE):
        return QualityTier.SDTV
    return QualityTier.UNKNOWN


def score_custom_formats(
    release: ParsedRelease, formats: tuple[CustomFormat, ...] | list[CustomFormat]
) -> tuple[int, tuple[str, ...]]:
    """Sum the scores of all custom formats matching a release.

    Returns:
        tuple[int, tuple[str, ...]]: Total signed score and the names of
            the matching formats.
    """
    matched = [fmt for fmt in formats if fmt.matches(release)]
    return sum(fmt.score for fmt in matched), tuple(fmt.name for fmt in matched)


def matches_target(release: ParsedRelease, target: QualityTarget) -> bool:
    """Check every explicit target constraint structurally."""
    if target.resolution is not None and release.resolution is not target.resolution:
        return False
    if target.sources and release.source not in target.sources:
        return False
    if target.hdr_preferences and release.hdr not in target.hdr_preferences:
        return False
    if target.audio_preferences and release.audio_format not in target.audio_preferences:
        return False
    if target.codec is not None and release.codec is not target.codec:
        return False
    return True


def _preference_bonus(value, preferences: tuple, step: int) -> int:
    """Earlier entries of an ordered preference list earn more."""
    if value in preferences:
        return step * (len(preferences) - preferences.index(value))
    return 0


def seeder_bonus(seeders: int | None, settings: ScoringSettings) -> int:
    if not seeders or seeders < 0:
        return 0
    weights = settings.weights
    return min(seeders // max(weights.seeder_divisor, 1), weights.seeder_cap)


def score_release(
    release: ParsedRelease,
    target: QualityTarget,
    settings: ScoringSettings,
    seeders: int | None = None,
) -> int:
    """Compute the additive score of a release, custom formats excluded."""
    w = settings.weights
    score = w.resolution.get(release.resolution, 0)
    score += w.source.get(release.source, 0)
    score += w.hdr.get(release.hdr, 0)
    score += w.audio.get(release.audio_format, 0)
    score += w.codec.get(release.codec, 0)

    score += _preference_bonus(release.hdr, target.hdr_preferences, w.preference_step)
    score += _preference_bonus(
        release.audio_format, target.audio_preferences, w.preference_step
    )
    if target.codec is not None and release.codec is target.codec:
        score += w.codec_preference
    if release.bit_depth >= 10:
        score += w.ten_bit
    if release.release_group.lower() in settings.trusted_groups:
        score += w.trusted_group
    if release.is_proper or release.is_repack:
        score += w.proper
    if release.is_rerip:
        score += w.rerip
    if release.version > 1:
        score += w.version_step * (release.version - 1)
    if target.prefer_dual_audio and release.is_dual_audio:
        score += w.dual_audio
    if target.prefer_soft_subs and release.subtitles is SubtitleKind.SOFT:
        score += w.soft_subs
    if target.preferred_edition is not None and release.edition is target.preferred_edition:
        score += w.preferred_edition
    if target.prefer_season_packs and release.is_season_pack:
        score += w.season_pack

    score += seeder_bonus(seeders, settings)

    if release.is_fullscreen:
        score += w.fullscreen_penalty
    if release.is_dubbed:
        score += w.dubbed_penalty
    if release.is_fansub:
        score += w.fansub_penalty
    return score


def _rejection_reason(
    release: ParsedRelease,
    target: QualityTarget,
    settings: ScoringSettings,
    seeders: int | None,
    tier: QualityTier,
) -> str | None:
    if release.is_blocked:
        return f"blocked: {release.block_reasons[0]}"
    if settings.is_group_blocked(release):
        return "blocked: blocked_group"
    if settings.is_blocklisted(release):
        return "blocklisted"
    if seeders is not None and seeders < target.min_seeders:
        return f"seeders {seeders} below minimum {target.min_seeders}"
    missing = [lang for lang in target.required_languages if lang not in release.languages]
    if missing:
        return f"missing required language(s): {', '.join(missing)}"
    if (
        release.resolution.rank < target.min_resolution.rank
        and release.source not in PREMIUM_SOURCES
    ):
        return f"resolution {release.resolution} below floor {target.min_resolution}"
    if target.profile is not None and not target.profile.is_enabled(tier):
        return f"quality tier {tier} not enabled"
    return None


def evaluate(
    release: ParsedRelease,
    target: QualityTarget,
    settings: ScoringSettings,
    *,
    seeders: int | None = None,
) -> Evaluation:
    """Decide whether a release is acceptable and how good it is.

    Checks short-circuit on the first rejection: blocked flags, blocklist,
    seeders, required languages, the quality floor, then profile tiers
    and custom format minimums. Only accepted releases get a score.

    Args:
        release: Parsed release to evaluate.
        target: Quality target of the wanted item.
        settings: Scoring settings snapshot.
        seeders: Seeder count reported by the indexer, None for usenet.

    Returns:
        Evaluation: Acceptance, score and diagnostics.
    """
    tier = compute_quality_tier(release)
    reason = _rejection_reason(release, target, settings, seeders, tier)
    if reason is not None:
        logger.debug("Rejected %s: %s", release.raw_title, reason)
        return Evaluation(accepted=False, reason=reason, tier=tier)

    format_score, matched_formats = 0, ()
    if target.profile is not None:
        format_score, matched_formats = score_custom_formats(
            release, target.profile.custom_formats
        )
        minimum = target.profile.min_format_score
        if minimum is not None and format_score < minimum:
            reason = f"custom format score {format_score} below minimum {minimum}"
            logger.debug("Rejected %s: %s", release.raw_title, reason)
            return Evaluation(
                accepted=False,
                reason=reason,
                tier=tier,
                format_score=format_score,
                matched_formats=matched_formats,
            )

    return Evaluation(
        accepted=True,
        score=score_release(release, target, settings, seeders) + format_score,
        matches_target=matches_target(release, target),
        tier=tier,
        format_score=format_score,
        matched_formats=matched_formats,
    )
