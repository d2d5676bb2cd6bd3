"""Scoring kernel: pure ``score(opportunity, offering, provider)``.

Deterministic: no clock reads, no randomness, no I/O.  Every missing-data
branch resolves to a neutral or zero sub-score; nothing here raises.
"""

from __future__ import annotations

import logging

from src.marketplace.config import ScoringWeights, settings
from src.marketplace.domain_model import payment_compatibility
from src.marketplace.models import (
    MatchExplanation,
    Offering,
    Opportunity,
    Provider,
    ScoreCard,
    SubScores,
)
from src.marketplace.scoring import attribute_overlap, budget_fit, location, reputation, timeline
from src.marketplace.scoring.composite import composite_score, meets_threshold

logger = logging.getLogger(__name__)

TOP_MATCHED = 3


def score(
    opportunity: Opportunity,
    offering: Offering,
    provider: Provider,
    weights: ScoringWeights | None = None,
) -> ScoreCard:
    w = weights or settings.weights

    attrs = attribute_overlap.score(opportunity, offering, provider)
    location_score, location_reason = location.score(opportunity, offering, provider)
    sub = SubScores(
        attribute_overlap=attrs.score,
        budget_value_fit=budget_fit.score(opportunity, offering),
        timeline_compatibility=timeline.score(opportunity, offering),
        location_fit=location_score,
        reputation=reputation.score(provider),
    )
    final = composite_score(sub, w)
    passed = attrs.gate_passed and meets_threshold(final)

    opp_mode = opportunity.payment_terms.mode if opportunity.payment_terms else None
    explain = MatchExplanation(
        matched_skills=attrs.matched_skills,
        unmatched_skills=attrs.unmatched_skills,
        top_matched_skills=attrs.matched_skills[:TOP_MATCHED],
        location_reason=location_reason,
        payment_compatibility=payment_compatibility(opp_mode, offering.exchange_type),
    )

    logger.debug(
        "Score %s/%s/%s: attr=%.0f budget=%.0f timeline=%.0f loc=%.0f rep=%.1f -> %d",
        opportunity.id, provider.id, offering.id,
        sub.attribute_overlap, sub.budget_value_fit, sub.timeline_compatibility,
        sub.location_fit, sub.reputation, final,
    )
    return ScoreCard(
        final=final,
        sub_scores=sub,
        attribute_detail=attrs.breakdown,
        weights=w,
        meets_threshold=passed,
        skill_gate_passed=attrs.gate_passed,
        explain=explain,
    )
