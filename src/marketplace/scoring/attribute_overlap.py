"""Sub-score 1: Attribute overlap (40% weight).

Skill-tag coverage (60%), category match via the domain mapping table (25%)
and experience fit (15%).  Zero overlap on a non-empty required-skill list is
a hard gate: the whole sub-score collapses to 0 and the candidate is dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.marketplace.config import settings
from src.marketplace.domain_model import category_matches, level_rank, skill_matches
from src.marketplace.models import AttributeBreakdown, Offering, Opportunity, Provider
from src.marketplace.scoring.composite import round_half_up

logger = logging.getLogger(__name__)

_LEVEL_PENALTY = 30.0


@dataclass
class AttributeResult:
    score: int
    breakdown: AttributeBreakdown
    matched_skills: list[str] = field(default_factory=list)
    unmatched_skills: list[str] = field(default_factory=list)
    gate_passed: bool = True


def skill_overlap(
    required: list[str], offered: list[str],
) -> tuple[int, list[str], list[str]]:
    """Return (score, matched, unmatched) over the required tags."""
    required = [r for r in required if r and r.strip()]
    if not required:
        return 100, [], []
    offered = [o for o in offered if o and o.strip()]
    if not offered:
        return 0, [], list(required)

    matched: list[str] = []
    unmatched: list[str] = []
    for tag in required:
        if any(skill_matches(tag, o) for o in offered):
            matched.append(tag)
        else:
            unmatched.append(tag)
    return round_half_up(len(matched) / len(required) * 100), matched, unmatched


def category_score(opportunity: Opportunity, offering: Offering) -> int:
    return 100 if category_matches(opportunity.category, offering.category) else 0


def experience_score(opportunity: Opportunity, provider: Provider) -> int:
    required_rank = level_rank(opportunity.experience_level)
    provider_rank = level_rank(provider.experience_level)
    if provider_rank >= required_rank:
        level = 100.0
    else:
        level = max(0.0, 100.0 - (required_rank - provider_rank) * _LEVEL_PENALTY)

    required_years = opportunity.minimum_experience_years or 0.0
    provider_years = provider.years_experience or 0.0
    if provider_years >= required_years:
        years = 100.0
    else:
        years = provider_years / required_years * 100.0

    return round_half_up((level + years) / 2.0)


def score(opportunity: Opportunity, offering: Offering, provider: Provider) -> AttributeResult:
    skills, matched, unmatched = skill_overlap(opportunity.required_skills, offering.skills)
    breakdown = AttributeBreakdown(
        skills=skills,
        category=category_score(opportunity, offering),
        experience=experience_score(opportunity, provider),
    )

    if unmatched and not matched:
        logger.debug(
            "Skill gate closed for %s / %s: none of %s offered",
            opportunity.id, offering.id, unmatched,
        )
        return AttributeResult(
            score=0,
            breakdown=breakdown,
            unmatched_skills=unmatched,
            gate_passed=False,
        )

    w = settings.attribute_weights
    combined = (
        breakdown.skills * w.skills
        + breakdown.category * w.category
        + breakdown.experience * w.experience
    )
    return AttributeResult(
        score=round_half_up(round(combined, 9)),
        breakdown=breakdown,
        matched_skills=matched,
        unmatched_skills=unmatched,
    )
