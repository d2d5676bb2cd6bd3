"""Composite ranker: weighted sum of the five sub-scores."""

from __future__ import annotations

import math

from src.marketplace.config import ScoringWeights, settings
from src.marketplace.models import SubScores


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(max(value, low), high)


def composite_score(scores: SubScores, weights: ScoringWeights | None = None) -> int:
    w = weights or settings.weights
    total = (
        w.attribute_overlap * scores.attribute_overlap
        + w.budget_value_fit * scores.budget_value_fit
        + w.timeline_compatibility * scores.timeline_compatibility
        + w.location_fit * scores.location_fit
        + w.reputation * scores.reputation
    )
    # Guard against float drift (e.g. 89.99999999) before rounding.
    return round_half_up(round(total, 9))


def meets_threshold(final: int, threshold: int | None = None) -> bool:
    limit = settings.match_threshold if threshold is None else threshold
    return final >= limit
