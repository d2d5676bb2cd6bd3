"""Repository interface: the only storage surface the services depend on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

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

ContractMutation = Callable[[Contract], Contract]


class Repository(ABC):
    # -- read-only inputs ---------------------------------------------------

    @abstractmethod
    def get_opportunity(self, opportunity_id: str) -> Opportunity | None: ...

    @abstractmethod
    def list_opportunities(self, status: str | None = None) -> list[Opportunity]: ...

    @abstractmethod
    def get_offering(self, offering_id: str) -> Offering | None: ...

    @abstractmethod
    def list_offerings(
        self, provider_id: str | None = None, active_only: bool = True,
    ) -> list[Offering]: ...

    @abstractmethod
    def get_provider(self, provider_id: str) -> Provider | None: ...

    @abstractmethod
    def get_proposal(self, proposal_id: str) -> Proposal | None: ...

    @abstractmethod
    def get_service_offer(self, offer_id: str) -> ServiceOffer | None: ...

    @abstractmethod
    def get_service_request(self, request_id: str) -> ServiceRequest | None: ...

    @abstractmethod
    def list_applications(self, opportunity_id: str) -> list[CollaborationApplication]: ...

    @abstractmethod
    def get_evaluation(self, provider_id: str) -> EvaluationAggregate | None: ...

    # -- matches ------------------------------------------------------------

    @abstractmethod
    def get_match(self, opportunity_id: str, provider_id: str) -> Match | None: ...

    @abstractmethod
    def list_matches(
        self, opportunity_id: str | None = None, provider_id: str | None = None,
    ) -> list[Match]: ...

    @abstractmethod
    def create_match(self, match: Match) -> Match | None:
        """Insert unless (opportunity_id, provider_id) exists; return None on duplicate."""

    @abstractmethod
    def mark_match_notified(self, match_id: str) -> None: ...

    # -- contracts ----------------------------------------------------------

    @abstractmethod
    def get_contract(self, contract_id: str) -> Contract | None: ...

    @abstractmethod
    def create_contract(self, contract: Contract) -> Contract: ...

    @abstractmethod
    def update_contract(self, contract_id: str, mutate: ContractMutation) -> Contract:
        """Apply ``mutate`` to the current record atomically and persist the result.

        Raises NotFound when the contract does not exist; exceptions raised by
        ``mutate`` propagate and leave the stored record untouched.
        """

    @abstractmethod
    def list_contracts(
        self,
        scope_type: str | None = None,
        scope_id: str | None = None,
        party_id: str | None = None,
        parent_contract_id: str | None = None,
    ) -> list[Contract]: ...
