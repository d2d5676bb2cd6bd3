"""Thread-safe in-memory repository with a JSON seed loader."""

from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from pydantic import ValidationError

from src.marketplace.config import settings
from src.marketplace.errors import NotFound, PreconditionFailed, StoreUnavailable
from src.marketplace.models import (
    CollaborationApplication,
    Contract,
    EvaluationAggregate,
    Match,
    Offering,
    Opportunity,
    Proposal,
    Provider,
    ServiceOffer,
    ServiceRequest,
)
from src.marketplace.store.base import ContractMutation, Repository

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent.parent.parent / "data"

_PROVENANCE_FIELDS = ("source_proposal_id", "source_proposal_version", "source_service_offer_id")


class InMemoryStore(Repository):
    def __init__(self, timeout: float | None = None) -> None:
        self._lock = threading.RLock()
        self._timeout = timeout
        self._opportunities: dict[str, Opportunity] = {}
        self._offerings: dict[str, Offering] = {}
        self._providers: dict[str, Provider] = {}
        self._proposals: dict[str, Proposal] = {}
        self._service_offers: dict[str, ServiceOffer] = {}
        self._service_requests: dict[str, ServiceRequest] = {}
        self._applications: dict[str, CollaborationApplication] = {}
        self._evaluations: dict[str, EvaluationAggregate] = {}
        self._matches: dict[tuple[str, str], Match] = {}
        self._contracts: dict[str, Contract] = {}

    @contextmanager
    def _locked(self) -> Iterator[None]:
        timeout = settings.store_timeout_seconds if self._timeout is None else self._timeout
        if not self._lock.acquire(timeout=timeout):
            raise StoreUnavailable(f"store lock not acquired within {timeout}s")
        try:
            yield
        finally:
            self._lock.release()

    # -- seeding ------------------------------------------------------------

    def put_opportunity(self, item: Opportunity) -> None:
        with self._locked():
            self._opportunities[item.id] = item.model_copy(deep=True)

    def put_offering(self, item: Offering) -> None:
        with self._locked():
            self._offerings[item.id] = item.model_copy(deep=True)

    def put_provider(self, item: Provider) -> None:
        with self._locked():
            self._providers[item.id] = item.model_copy(deep=True)

    def put_proposal(self, item: Proposal) -> None:
        with self._locked():
            self._proposals[item.id] = item.model_copy(deep=True)

    def put_service_offer(self, item: ServiceOffer) -> None:
        with self._locked():
            self._service_offers[item.id] = item.model_copy(deep=True)

    def put_service_request(self, item: ServiceRequest) -> None:
        with self._locked():
            self._service_requests[item.id] = item.model_copy(deep=True)

    def put_application(self, item: CollaborationApplication) -> None:
        with self._locked():
            self._applications[item.id] = item.model_copy(deep=True)

    def put_evaluation(self, item: EvaluationAggregate) -> None:
        with self._locked():
            self._evaluations[item.provider_id] = item.model_copy(deep=True)

    @classmethod
    def from_json(cls, data: dict[str, list[dict[str, Any]]]) -> InMemoryStore:
        store = cls()
        loaders = (
            ("providers", Provider, store.put_provider),
            ("opportunities", Opportunity, store.put_opportunity),
            ("offerings", Offering, store.put_offering),
            ("proposals", Proposal, store.put_proposal),
            ("service_requests", ServiceRequest, store.put_service_request),
            ("service_offers", ServiceOffer, store.put_service_offer),
            ("applications", CollaborationApplication, store.put_application),
            ("evaluations", EvaluationAggregate, store.put_evaluation),
        )
        for key, model, put in loaders:
            for raw in data.get(key, []):
                put(model(**raw))
        return store

    # -- reads --------------------------------------------------------------

    def get_opportunity(self, opportunity_id: str) -> Opportunity | None:
        with self._locked():
            return _copy(self._opportunities.get(opportunity_id))

    def list_opportunities(self, status: str | None = None) -> list[Opportunity]:
        with self._locked():
            return [
                o.model_copy(deep=True)
                for o in sorted(self._opportunities.values(), key=lambda o: o.id)
                if status is None or o.status == status
            ]

    def get_offering(self, offering_id: str) -> Offering | None:
        with self._locked():
            return _copy(self._offerings.get(offering_id))

    def list_offerings(
        self, provider_id: str | None = None, active_only: bool = True,
    ) -> list[Offering]:
        with self._locked():
            return [
                o.model_copy(deep=True)
                for o in sorted(self._offerings.values(), key=lambda o: o.id)
                if (provider_id is None or o.provider_id == provider_id)
                and (not active_only or o.is_active)
            ]

    def get_provider(self, provider_id: str) -> Provider | None:
        with self._locked():
            return _copy(self._providers.get(provider_id))

    def get_proposal(self, proposal_id: str) -> Proposal | None:
        with self._locked():
            return _copy(self._proposals.get(proposal_id))

    def get_service_offer(self, offer_id: str) -> ServiceOffer | None:
        with self._locked():
            return _copy(self._service_offers.get(offer_id))

    def get_service_request(self, request_id: str) -> ServiceRequest | None:
        with self._locked():
            return _copy(self._service_requests.get(request_id))

    def list_applications(self, opportunity_id: str) -> list[CollaborationApplication]:
        with self._locked():
            return [
                a.model_copy(deep=True)
                for a in sorted(self._applications.values(), key=lambda a: a.id)
                if a.opportunity_id == opportunity_id
            ]

    def get_evaluation(self, provider_id: str) -> EvaluationAggregate | None:
        with self._locked():
            return _copy(self._evaluations.get(provider_id))

    # -- matches ------------------------------------------------------------

    def get_match(self, opportunity_id: str, provider_id: str) -> Match | None:
        with self._locked():
            return _copy(self._matches.get((opportunity_id, provider_id)))

    def list_matches(
        self, opportunity_id: str | None = None, provider_id: str | None = None,
    ) -> list[Match]:
        with self._locked():
            return [
                m.model_copy(deep=True)
                for (opp_id, prov_id), m in self._matches.items()
                if (opportunity_id is None or opp_id == opportunity_id)
                and (provider_id is None or prov_id == provider_id)
            ]

    def create_match(self, match: Match) -> Match | None:
        key = (match.opportunity_id, match.provider_id)
        with self._locked():
            if key in self._matches:
                logger.debug("Match %s/%s already exists, skipping", *key)
                return None
            self._matches[key] = match.model_copy(deep=True)
            return match.model_copy(deep=True)

    def mark_match_notified(self, match_id: str) -> None:
        with self._locked():
            for key, m in self._matches.items():
                if m.id == match_id:
                    self._matches[key] = m.model_copy(update={"notified": True})
                    return
        raise NotFound(f"Match {match_id} not found")

    # -- contracts ----------------------------------------------------------

    def get_contract(self, contract_id: str) -> Contract | None:
        with self._locked():
            return _copy(self._contracts.get(contract_id))

    def create_contract(self, contract: Contract) -> Contract:
        with self._locked():
            if contract.id in self._contracts:
                raise PreconditionFailed(f"Contract {contract.id} already exists")
            checked = _revalidate(contract)
            self._contracts[checked.id] = checked
            return checked.model_copy(deep=True)

    def update_contract(self, contract_id: str, mutate: ContractMutation) -> Contract:
        with self._locked():
            current = self._contracts.get(contract_id)
            if current is None:
                raise NotFound(f"Contract {contract_id} not found")
            updated = _revalidate(mutate(current.model_copy(deep=True)))
            for name in _PROVENANCE_FIELDS:
                if getattr(updated, name) != getattr(current, name):
                    raise PreconditionFailed(f"Contract provenance field {name} is immutable")
            self._contracts[contract_id] = updated
            return updated.model_copy(deep=True)

    def list_contracts(
        self,
        scope_type: str | None = None,
        scope_id: str | None = None,
        party_id: str | None = None,
        parent_contract_id: str | None = None,
    ) -> list[Contract]:
        with self._locked():
            found = [
                c for c in self._contracts.values()
                if (scope_type is None or c.scope_type == scope_type)
                and (scope_id is None or c.scope_id == scope_id)
                and (party_id is None or c.involves(party_id))
                and (parent_contract_id is None or c.parent_contract_id == parent_contract_id)
            ]
            return [c.model_copy(deep=True) for c in found]


def _copy(item):
    return item.model_copy(deep=True) if item is not None else None


def _revalidate(contract: Contract) -> Contract:
    """Re-run model validation so share-sum and party rules hold at write time."""
    try:
        return Contract.model_validate(contract.model_dump())
    except ValidationError as exc:
        raise PreconditionFailed(
            "Contract failed validation",
            errors=[e["msg"] for e in exc.errors()],
        ) from exc


def load_sample_store(path: Path | None = None) -> InMemoryStore:
    path = path or DATA_DIR / "sample_marketplace.json"
    with open(path) as f:
        raw = json.load(f)
    store = InMemoryStore.from_json(raw)
    logger.info("Loaded sample marketplace from %s", path)
    return store
