"""Match narrative: structured score card to a short natural-language rationale.

Optional and advisory: the narrative is attached to a persisted Match after
scoring and never influences the score or the admission decision.
"""

from __future__ import annotations

import logging

from anthropic import Anthropic

from src.marketplace.llm import call_llm_json
from src.marketplace.models import Match, Offering, Opportunity, Provider

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """\
You write match rationales for a construction-industry collaboration marketplace.
You receive an opportunity, a provider's offering and the deterministic score
card that ranked them. Produce a 2-3 sentence rationale addressed to the
provider explaining why this opportunity fits.

RULES:
- Reference the concrete matched skills, budget fit and location reason given.
- Mention the weakest sub-score honestly if it is below 50.
- Never invent facts that are not in the data.
- Do not restate the numeric scores verbatim.

Return ONLY valid JSON:
{
  "narrative": "2-3 sentence rationale"
}
"""


def _build_user_message(
    match: Match,
    opportunity: Opportunity,
    offering: Offering,
    provider: Provider,
) -> str:
    parts = [
        "OPPORTUNITY:",
        f"  Title: {opportunity.title or opportunity.id}",
        f"  Kind: {opportunity.kind}",
    ]
    if opportunity.category:
        parts.append(f"  Category: {opportunity.category}")
    if opportunity.required_skills:
        parts.append(f"  Required skills: {', '.join(opportunity.required_skills)}")
    if opportunity.budget:
        parts.append(
            f"  Budget: {opportunity.budget.min}-{opportunity.budget.max} "
            f"{opportunity.budget.currency}"
        )

    parts.append("")
    parts.append("PROVIDER OFFERING:")
    parts.append(f"  Provider: {provider.name or provider.id}")
    parts.append(f"  Offering: {offering.title or offering.id}")
    if offering.skills:
        parts.append(f"  Skills: {', '.join(offering.skills)}")

    parts.append("")
    parts.append("SCORE CARD:")
    parts.append(f"  Final: {match.score}")
    sub = match.sub_scores
    parts.append(f"  Attribute overlap: {sub.attribute_overlap:.0f}")
    parts.append(f"  Budget fit: {sub.budget_value_fit:.0f}")
    parts.append(f"  Timeline: {sub.timeline_compatibility:.0f}")
    parts.append(f"  Location: {sub.location_fit:.0f} ({match.explain.location_reason})")
    parts.append(f"  Reputation: {sub.reputation:.0f}")
    if match.explain.top_matched_skills:
        parts.append(f"  Top matched skills: {', '.join(match.explain.top_matched_skills)}")
    if match.explain.payment_compatibility:
        parts.append(f"  Payment: {match.explain.payment_compatibility}")

    return "\n".join(parts)


def fallback_narrative(match: Match, opportunity: Opportunity) -> str:
    skills = match.explain.top_matched_skills
    skill_text = f" on {', '.join(skills)}" if skills else ""
    return (
        f"Your offering matches {opportunity.title or opportunity.id}{skill_text} "
        f"with an overall fit of {match.score}/100."
    )


def generate_match_narrative(
    client: Anthropic,
    match: Match,
    opportunity: Opportunity,
    offering: Offering,
    provider: Provider,
) -> str:
    user_msg = _build_user_message(match, opportunity, offering, provider)
    data = call_llm_json(client, _SYSTEM_PROMPT, user_msg, fast=True)

    narrative = data.get("narrative", "")
    if not narrative:
        logger.warning(
            "Empty narrative for %s -> %s", opportunity.id, provider.id,
        )
        narrative = fallback_narrative(match, opportunity)
    return narrative
