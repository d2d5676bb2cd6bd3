"""Sub-score 5: Reputation (5% weight)."""

from __future__ import annotations

from src.marketplace.config import settings
from src.marketplace.models import Provider
from src.marketplace.scoring.composite import clamp


def score(provider: Provider) -> float:
    if provider.reputation_score is None:
        return settings.neutral_score
    return clamp(provider.reputation_score)
