"""Candidate ranking, best-candidate selection and upgrade decisions."""

from collections.abc import Iterable

from .models import (
    Candidate,
    QualityTarget,
    QualityTier,
    ScoredCandidate,
    ScoringSettings,
)
from .scorer import evaluate


def _sort_key(candidate: ScoredCandidate) -> tuple:
    published = candidate.published_at
    freshness = -published.timestamp() if published is not None else float("inf")
    return (
        not candidate.matches_target,
        -candidate.score,
        -candidate.seeders,
        freshness,
    )


def rank_candidates(
    candidates: Iterable[Candidate],
    target: QualityTarget,
    settings: ScoringSettings,
) -> list[ScoredCandidate]:
    """Evaluate candidates and return the accepted ones, best first.

    Candidates matching every explicit target constraint form the first
    group; within a group order is score descending, then seeders
    descending, then newest first.
    """
    accepted = []
    for candidate in candidates:
        evaluation = evaluate(
            candidate.release, target, settings, seeders=candidate.result.seeders
        )
        if evaluation.accepted:
            accepted.append(
                ScoredCandidate(candidate.release, candidate.result, evaluation)
            )
    accepted.sort(key=_sort_key)
    return accepted


def select_best(
    candidates: Iterable[Candidate],
    target: QualityTarget,
    settings: ScoringSettings,
) -> ScoredCandidate | None:
    """Pick the winning candidate, or None when nothing is acceptable."""
    ranked = rank_candidates(candidates, target, settings)
    return ranked[0] if ranked else None


def cutoff_reached(tier: QualityTier, target: QualityTarget) -> bool:
    """Check whether ``tier`` is at or above the profile cutoff."""
    profile = target.profile
    if profile is None or profile.cutoff is None:
        return False
    current_index = profile.tier_index(tier)
    cutoff_index = profile.tier_index(profile.cutoff)
    if current_index is not None and cutoff_index is not None:
        return current_index <= cutoff_index
    return tier.base_score >= profile.cutoff.base_score


def should_upgrade(
    current_score: int,
    current_tier: QualityTier,
    candidate_score: int,
    target: QualityTarget,
) -> bool:
    """Decide whether an existing file should be replaced.

    Args:
        current_score: Score of the file already in the library.
        current_tier: Quality tier of the file already in the library.
        candidate_score: Score of the best new candidate.
        target: Quality target of the item.

    Returns:
        bool: True only when upgrades are enabled, the gain is at least
            the minimum increment and the cutoff has not been reached.
    """
    if not target.auto_upgrade:
        return False
    if target.profile is not None and not target.profile.upgrade_allowed:
        return False
    if candidate_score - current_score < target.min_upgrade_increment:
        return False
    return not cutoff_reached(current_tier, target)
