"""Sub-score 4: Location fit (10% weight)."""

from __future__ import annotations

from src.marketplace.config import settings
from src.marketplace.models import Location, Offering, Opportunity, Provider


def _same(a: str | None, b: str | None) -> bool:
    return bool(a and b) and a.strip().lower() == b.strip().lower()


def offering_location(offering: Offering, provider: Provider | None = None) -> Location | None:
    if offering.location and not offering.location.is_empty():
        return offering.location
    if provider and provider.location and not provider.location.is_empty():
        return provider.location
    return None


def score(
    opportunity: Opportunity, offering: Offering, provider: Provider | None = None,
) -> tuple[int, str]:
    """Return (score, reason)."""
    need = opportunity.location
    offer = offering_location(offering, provider)
    neutral = int(settings.neutral_score)
    if need is None or need.is_empty() or offer is None:
        return neutral, "Location not specified"

    if _same(need.city, offer.city) and (
        not need.country or not offer.country or _same(need.country, offer.country)
    ):
        return 100, f"Same city ({offer.city})"

    if not need.country or not offer.country:
        return neutral, "Country not specified"

    remote = need.remote_allowed or offering.allows_remote
    if _same(need.country, offer.country):
        if remote:
            return 70, f"Same country ({offer.country}), remote work possible"
        return 40, f"Same country ({offer.country}), different city"
    if remote:
        return 20, "Different country, remote work possible"
    return 0, "Different country, on-site required"
