"""Sub-score 2: Budget / value fit (30% weight).

Compares the opportunity's budget range to the offering's rate range.
"""

from __future__ import annotations

from src.marketplace.config import settings
from src.marketplace.models import Offering, Opportunity
from src.marketplace.scoring.composite import round_half_up

_EMPTY_RANGE_OVERLAP = 80


def _range(low: float | None, high: float | None) -> tuple[float, float] | None:
    if low is None and high is None:
        return None
    if low is None:
        low = high
    if high is None:
        high = low
    if low > high:
        low, high = high, low
    return low, high


def range_fit(need: tuple[float, float] | None, offer: tuple[float, float] | None) -> int:
    if need is None or offer is None:
        return int(settings.neutral_score)

    need_min, need_max = need
    offer_min, offer_max = offer

    if offer_min >= need_min and offer_max <= need_max:
        return 100

    overlap = min(need_max, offer_max) - max(need_min, offer_min)
    need_width = need_max - need_min
    if overlap >= 0 and (overlap > 0 or need_width == 0):
        if need_width == 0:
            return _EMPTY_RANGE_OVERLAP
        return round_half_up(overlap / need_width * 100)

    # Disjoint ranges: decay from 50 by the distance between midpoints.
    need_center = (need_min + need_max) / 2.0
    offer_center = (offer_min + offer_max) / 2.0
    base = need_width or need_center
    if base == 0:
        return 0
    pct_diff = abs(offer_center - need_center) / base * 100.0
    penalty = max(0.0, pct_diff - settings.budget_tolerance_pct)
    return round_half_up(max(0.0, 50.0 - penalty))


def score(opportunity: Opportunity, offering: Offering) -> int:
    budget = opportunity.budget
    need = _range(budget.min, budget.max) if budget else None
    offer = _range(offering.price_min, offering.price_max)
    return range_fit(need, offer)
