"""Quality scoring and selection for reelgrab."""

from .models import (
    DEFAULT_TRUSTED_GROUPS,
    Candidate,
    ConditionField,
    CustomFormat,
    CustomFormatCondition,
    Evaluation,
    QualityProfile,
    QualityTarget,
    QualityTier,
    ScoredCandidate,
    ScoringSettings,
    ScoringWeights,
    TierSetting,
    normalize_release_title,
)
from .presets import PRESETS, get_preset
from .scorer import (
    compute_quality_tier,
    evaluate,
    matches_target,
    score_custom_formats,
    score_release,
)
from .selector import cutoff_reached, rank_candidates, select_best, should_upgrade

__all__ = [
    "DEFAULT_TRUSTED_GROUPS",
    "PRESETS",
    "Candidate",
    "ConditionField",
    "CustomFormat",
    "CustomFormatCondition",
    "Evaluation",
    "QualityProfile",
    "QualityTarget",
    "QualityTier",
    "ScoredCandidate",
    "ScoringSettings",
    "ScoringWeights",
    "TierSetting",
    "compute_quality_tier",
    "cutoff_reached",
    "evaluate",
    "get_preset",
    "matches_target",
    "normalize_release_title",
    "rank_candidates",
    "score_custom_formats",
    "score_release",
    "select_best",
    "should_upgrade",
]
