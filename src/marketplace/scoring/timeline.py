"""Sub-score 3: Timeline compatibility (15% weight).

Half the credit for start-date alignment, half for covering the need's
computed end date.
"""

from __future__ import annotations

from datetime import timedelta

from src.marketplace.config import settings
from src.marketplace.models import Availability, Offering, Opportunity
from src.marketplace.scoring.composite import round_half_up

_HALF = 50.0
_LATE_FLOOR = 30.0
_MISSING_HALF = 25.0
_LEAD_TIME_ONLY = 30.0


def _start_half(need_start, availability: Availability | None) -> float:
    offer_start = availability.start_date if availability else None
    if need_start is None or offer_start is None:
        return _MISSING_HALF
    if offer_start <= need_start:
        return _HALF
    days_late = (offer_start - need_start).days
    grace = settings.timeline_grace_days
    if days_late <= grace:
        return max(_LATE_FLOOR, _HALF - days_late)
    return max(0.0, _LATE_FLOOR - (days_late - grace) * settings.timeline_decay_per_day)


def _duration_half(need_start, duration_days: int | None, availability: Availability | None) -> float:
    if availability is None:
        return _MISSING_HALF
    if need_start is None or not duration_days or availability.end_date is None:
        if availability.lead_time_days is not None:
            return _LEAD_TIME_ONLY
        return _MISSING_HALF

    need_end = need_start + timedelta(days=duration_days)
    if availability.end_date >= need_end:
        return _HALF

    window_start = max(need_start, availability.start_date or need_start)
    overlap_days = max(0, (availability.end_date - window_start).days)
    return max(0.0, overlap_days / duration_days * 100.0 * 0.5)


def score(opportunity: Opportunity, offering: Offering) -> int:
    timeline = opportunity.timeline
    availability = offering.availability
    need_start = timeline.start_date if timeline else None
    offer_start = availability.start_date if availability else None
    if need_start is None and offer_start is None:
        return int(settings.neutral_score)

    duration = timeline.duration_days if timeline else None
    if timeline and not duration and timeline.end_date and need_start:
        duration = (timeline.end_date - need_start).days

    total = _start_half(need_start, availability) + _duration_half(
        need_start, duration, availability,
    )
    return min(100, round_half_up(total))
