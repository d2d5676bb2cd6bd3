"""Matching orchestrator: runs the scoring kernel over candidate sets.

Pipeline (per entry point):
  1. Load the anchor record (published opportunity, or approved provider)
  2. Narrow offerings through the candidate index           (optional)
  3. Score every (opportunity, offering, provider) triple    (deterministic)
  4. Keep each provider's single best gate-passing offering
  5. Blend in historical evaluations, apply the threshold
  6. Persist the Match (skip on duplicate), notify           (fire-and-forget)
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict

from anthropic import Anthropic, APIError

from src.marketplace.collaborators import (
    Clock,
    EvaluationProvider,
    NotificationSink,
    NullReputation,
    OutboxNotificationSink,
    ReputationProvider,
    utc_now,
)
from src.marketplace.config import settings
from src.marketplace.explanation.generator import generate_match_narrative
from src.marketplace.index import CandidateIndex
from src.marketplace.llm import make_client
from src.marketplace.models import (
    EvaluationAggregate,
    Match,
    Notification,
    Offering,
    Opportunity,
    Provider,
    ScoreCard,
)
from src.marketplace.scoring import kernel
from src.marketplace.scoring.composite import meets_threshold, round_half_up
from src.marketplace.store.base import Repository

logger = logging.getLogger(__name__)


class MatchingService:
    def __init__(
        self,
        store: Repository,
        reputation: ReputationProvider | None = None,
        evaluations: EvaluationProvider | None = None,
        notifications: NotificationSink | None = None,
        index: CandidateIndex | None = None,
        llm_client: Anthropic | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.reputation = reputation or NullReputation()
        self.evaluations = evaluations
        self.notifications = notifications or OutboxNotificationSink()
        self.llm_client = llm_client
        if self.llm_client is None and settings.narrate_matches:
            self.llm_client = make_client()
        self.clock = clock
        self.index = index
        if self.index is None and settings.candidate_index_enabled:
            self.index = CandidateIndex()
            self.index.rebuild(store.list_offerings())

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def match_opportunity(self, opportunity_id: str) -> list[Match]:
        opportunity = self.store.get_opportunity(opportunity_id)
        if opportunity is None:
            logger.info("Opportunity %s not found; no matches", opportunity_id)
            return []
        if not opportunity.is_published:
            logger.info(
                "Opportunity %s is %s; matching skipped", opportunity_id, opportunity.status,
            )
            return []

        by_provider: dict[str, list[Offering]] = defaultdict(list)
        for offering in self._candidate_offerings(opportunity):
            by_provider[offering.provider_id].append(offering)

        created: list[Match] = []
        for provider_id in sorted(by_provider):
            if provider_id == opportunity.creator_id:
                continue
            provider = self._load_provider(provider_id)
            if provider is None:
                continue
            if self.store.get_match(opportunity.id, provider_id) is not None:
                continue
            best = self._best_offering(opportunity, by_provider[provider_id], provider)
            if best is None:
                continue
            match = self._admit(opportunity, provider, *best)
            if match is not None:
                created.append(match)

        logger.info(
            "Matched opportunity %s: %d providers considered, %d matches created",
            opportunity_id, len(by_provider), len(created),
        )
        return created

    def match_provider(self, provider_id: str) -> list[Match]:
        provider = self._load_provider(provider_id)
        if provider is None:
            return []
        offerings = self.store.list_offerings(provider_id=provider_id)
        if not offerings:
            logger.info("Provider %s has no active offerings", provider_id)
            return []

        created: list[Match] = []
        opportunities = self.store.list_opportunities(status="PUBLISHED")
        for opportunity in opportunities:
            if opportunity.creator_id == provider_id:
                continue
            if self.store.get_match(opportunity.id, provider_id) is not None:
                continue
            best = self._best_offering(opportunity, offerings, provider)
            if best is None:
                continue
            match = self._admit(opportunity, provider, *best)
            if match is not None:
                created.append(match)

        logger.info(
            "Matched provider %s: %d opportunities considered, %d matches created",
            provider_id, len(opportunities), len(created),
        )
        return created

    def on_offering_changed(self, offering_id: str) -> list[Match]:
        """Re-index a changed offering and match its provider against published work."""
        offering = self.store.get_offering(offering_id)
        if offering is None:
            if self.index is not None:
                self.index.remove(offering_id)
            return []
        if self.index is not None:
            if offering.is_active:
                self.index.add(offering)
            else:
                self.index.remove(offering.id)
        return self.match_provider(offering.provider_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _candidate_offerings(self, opportunity: Opportunity) -> list[Offering]:
        offerings = self.store.list_offerings()
        if self.index is None or not settings.candidate_index_enabled:
            return offerings
        self.index.sync(offerings)
        hits = self.index.candidates_for(opportunity)
        if not hits:
            return offerings
        narrowed = [o for o in offerings if o.id in hits]
        logger.debug(
            "Candidate index narrowed %d offerings to %d for %s",
            len(offerings), len(narrowed), opportunity.id,
        )
        return narrowed

    def _load_provider(self, provider_id: str) -> Provider | None:
        provider = self.store.get_provider(provider_id)
        if provider is None or not provider.is_approved:
            return None
        external = self.reputation.get_score(provider_id)
        if external is not None:
            provider = provider.model_copy(update={"reputation_score": external})
        return provider

    def _best_offering(
        self, opportunity: Opportunity, offerings: list[Offering], provider: Provider,
    ) -> tuple[Offering, ScoreCard] | None:
        best: tuple[Offering, ScoreCard] | None = None
        for offering in sorted(offerings, key=lambda o: o.id):
            card = kernel.score(opportunity, offering, provider)
            if not card.skill_gate_passed:
                continue
            if best is None or card.final > best[1].final:
                best = (offering, card)
        return best

    def _evaluation(self, provider_id: str) -> EvaluationAggregate | None:
        if self.evaluations is not None:
            agg = self.evaluations.get_aggregate(provider_id)
        else:
            agg = self.store.get_evaluation(provider_id)
        if agg is None or agg.count == 0:
            return None
        return agg

    def _admit(
        self,
        opportunity: Opportunity,
        provider: Provider,
        offering: Offering,
        card: ScoreCard,
    ) -> Match | None:
        final = card.final
        evaluation_score: float | None = None
        blend = 0.0
        agg = self._evaluation(provider.id)
        if agg is not None:
            evaluation_score = agg.as_score()
            blend = settings.evaluation_blend
            final = round_half_up(round(final * (1 - blend) + evaluation_score * blend, 9))

        if not meets_threshold(final):
            logger.debug(
                "Below threshold %s/%s: %d", opportunity.id, provider.id, final,
            )
            return None

        match = Match(
            id=f"match-{uuid.uuid4().hex[:12]}",
            opportunity_id=opportunity.id,
            provider_id=provider.id,
            offering_id=offering.id,
            score=final,
            sub_scores=card.sub_scores,
            weights=card.weights,
            evaluation_score=evaluation_score,
            evaluation_weight=blend,
            explain=card.explain,
            created_at=self.clock(),
        )
        if self.llm_client is not None and settings.narrate_matches:
            match.narrative = self._narrate(match, opportunity, offering, provider)

        stored = self.store.create_match(match)
        if stored is None:
            logger.debug("Concurrent match for %s/%s; skipped", opportunity.id, provider.id)
            return None
        self._notify(stored, opportunity)
        return stored

    def _narrate(
        self, match: Match, opportunity: Opportunity, offering: Offering, provider: Provider,
    ) -> str | None:
        try:
            return generate_match_narrative(self.llm_client, match, opportunity, offering, provider)
        except APIError as exc:
            logger.warning("Narrative generation failed for %s: %s", match.id, exc)
            return None

    def _notify(self, match: Match, opportunity: Opportunity) -> None:
        notification = Notification(
            user_id=match.provider_id,
            type="match_found",
            title="New opportunity match",
            message=(
                f"Your offering matches '{opportunity.title or opportunity.id}' "
                f"with a score of {match.score}%"
            ),
            related_entity_type="opportunity",
            related_entity_id=opportunity.id,
            created_at=self.clock(),
        )
        try:
            self.notifications.publish(notification)
        except Exception as exc:  # delivery failures never fail matching
            logger.warning("Notification for match %s not delivered: %s", match.id, exc)
            return
        match.notified = True
        self.store.mark_match_notified(match.id)
