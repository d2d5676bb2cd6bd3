"""Contract generation and lifecycle for two-party contracts.

Accepted proposals and accepted service offers become DRAFT contracts; the
lifecycle then follows the status table in ``validator.STATUS_TRANSITIONS``.
Multi-party archetypes are delegated to ``MultiPartyContractService``.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import date

from src.marketplace.collaborators import Clock, utc_now
from src.marketplace.config import settings
from src.marketplace.contracts.acceptance import (
    require_eligible,
    resolve_version,
    version_payment_terms,
    version_warnings,
)
from src.marketplace.contracts.multi_party import MultiPartyContractService
from src.marketplace.contracts.results import returns_result
from src.marketplace.contracts.validator import check_transition, validate_creation, validate_signer
from src.marketplace.domain_model import (
    buyer_party_type,
    is_multi_party_kind,
    provider_party_type,
    scope_type_for,
    single_party_contract_type,
)
from src.marketplace.errors import NotFound, PreconditionFailed
from src.marketplace.models import (
    Contract,
    ContractResult,
    Opportunity,
    PaymentTerms,
    Pricing,
    ProposalVersion,
    ScheduleItem,
    ServiceItem,
)
from src.marketplace.store.base import Repository

logger = logging.getLogger(__name__)

_DEFAULT_PROVIDER_TYPE = {
    "PROJECT_BID": "VENDOR_CORPORATE",
    "SERVICE_OFFER": "SERVICE_PROVIDER",
    "ADVISORY_OFFER": "CONSULTANT",
}

# Targets reachable through update_contract_status; SIGNED and TERMINATED
# carry extra data and have dedicated entry points.
_GENERIC_TARGETS = ("SENT", "DRAFT", "ACTIVE", "COMPLETED")


def build_schedule(items: list[ServiceItem]) -> list[ScheduleItem]:
    return [
        ScheduleItem(
            name=item.name,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            unit_price=item.unit_price,
            total=item.line_total,
            currency=item.currency,
            delivery_date=item.delivery_date,
        )
        for item in items
    ]


def _new_contract_id() -> str:
    return f"contract-{uuid.uuid4().hex[:12]}"


class ContractService:
    def __init__(
        self,
        store: Repository,
        multi_party: MultiPartyContractService | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.clock = clock
        self.multi_party = multi_party or MultiPartyContractService(store, clock=clock)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    @returns_result
    def create_from_proposal(
        self,
        proposal_id: str,
        version: int | None = None,
        created_by: str | None = None,
    ) -> ContractResult:
        proposal = self.store.get_proposal(proposal_id)
        if proposal is None:
            raise NotFound(f"Proposal {proposal_id} not found")
        require_eligible(proposal)

        opportunity = self.store.get_opportunity(proposal.opportunity_id)
        if opportunity is None:
            raise NotFound(f"Opportunity {proposal.opportunity_id} not found for proposal")

        if is_multi_party_kind(opportunity.kind):
            logger.info(
                "Proposal %s targets a %s; delegating to multi-party generation",
                proposal_id, opportunity.kind,
            )
            return self.multi_party.generate_for_opportunity(proposal_id, opportunity.kind, version)

        number, source = resolve_version(proposal, version)
        warnings = version_warnings(proposal, number, source)
        pv = proposal.get_version(number)

        contract_type = single_party_contract_type(proposal.proposal_type, opportunity.kind)
        if contract_type is None:
            raise PreconditionFailed(
                f"No contract type for {proposal.proposal_type} against {opportunity.kind}",
            )

        payment_terms, fallback = version_payment_terms(pv, number, opportunity.payment_terms)
        warnings.extend(fallback)

        owner = self.store.get_provider(proposal.owner_id)
        bidder = self.store.get_provider(proposal.bidder_id)
        schedule = build_schedule(pv.service_items if pv else [])
        start, end = self._dates(pv, opportunity)

        contract = Contract(
            id=_new_contract_id(),
            contract_type=contract_type,
            scope_type=scope_type_for(opportunity.kind),
            scope_id=opportunity.id,
            buyer_party_id=proposal.owner_id,
            buyer_party_type=buyer_party_type(owner.role if owner else None),
            provider_party_id=proposal.bidder_id,
            provider_party_type=provider_party_type(
                bidder.role if bidder else None,
                default=_DEFAULT_PROVIDER_TYPE[proposal.proposal_type],
            ),
            start_date=start,
            end_date=end,
            services_schedule=schedule,
            payment_terms=payment_terms,
            terms=self._terms(pv, schedule),
            source_proposal_id=proposal.id,
            source_proposal_version=number,
            created_by=created_by,
            created_at=self.clock(),
        )
        validate_creation(contract)
        stored = self.store.create_contract(contract)
        logger.info(
            "Created %s %s from proposal %s v%d (%s)",
            contract_type, stored.id, proposal.id, number, source,
        )
        return ContractResult.ok(stored, warnings=warnings)

    @returns_result
    def create_from_service_offer(
        self, offer_id: str, created_by: str | None = None,
    ) -> ContractResult:
        offer = self.store.get_service_offer(offer_id)
        if offer is None:
            raise NotFound(f"Service offer {offer_id} not found")
        if offer.status != "ACCEPTED":
            raise PreconditionFailed(f"Service offer {offer_id} is {offer.status}; it must be ACCEPTED")

        request = self.store.get_service_request(offer.service_request_id)
        if request is None:
            raise NotFound(f"Service request {offer.service_request_id} not found")

        warnings: list[str] = []
        payment_terms = offer.payment_terms
        if payment_terms is None:
            payment_terms = request.payment_terms
            if payment_terms is not None:
                warnings.append("Payment terms taken from the service request defaults")
            else:
                payment_terms = PaymentTerms()
                warnings.append("No payment terms on offer or request; defaulted to CASH")
            logger.warning("Service offer %s has no payment terms: %s", offer_id, warnings[-1])

        requester = self.store.get_provider(request.requester_id)
        provider = self.store.get_provider(offer.provider_id)
        if request.requester_type == "VENDOR":
            buyer_type = buyer_party_type(requester.role if requester else "vendor_corporate")
        else:
            buyer_type = "BENEFICIARY"

        schedule = build_schedule(offer.service_items)
        pricing = offer.proposed_pricing or Pricing(
            amount=math.fsum(i.total for i in schedule), currency=settings.default_currency,
        )
        contract = Contract(
            id=_new_contract_id(),
            contract_type="SERVICE_CONTRACT",
            scope_type="SERVICE_REQUEST",
            scope_id=request.id,
            buyer_party_id=request.requester_id,
            buyer_party_type=buyer_type,
            provider_party_id=offer.provider_id,
            provider_party_type=provider_party_type(
                provider.role if provider else None, default="SERVICE_PROVIDER",
            ),
            start_date=offer.start_date,
            end_date=request.required_by,
            services_schedule=schedule,
            payment_terms=payment_terms,
            terms={
                "pricing": pricing.model_dump(mode="json"),
                "total": math.fsum(i.total for i in schedule),
            },
            source_service_offer_id=offer.id,
            created_by=created_by,
            created_at=self.clock(),
        )
        validate_creation(contract)
        stored = self.store.create_contract(contract)
        logger.info("Created SERVICE_CONTRACT %s from service offer %s", stored.id, offer_id)
        return ContractResult.ok(stored, warnings=warnings)

    @returns_result
    def create_sub_contract(
        self,
        parent_contract_id: str,
        sub_contractor_id: str,
        service_items: list[ServiceItem] | None = None,
        payment_terms: PaymentTerms | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        created_by: str | None = None,
    ) -> ContractResult:
        parent = self.store.get_contract(parent_contract_id)
        if parent is None:
            raise NotFound(f"Parent contract {parent_contract_id} not found")
        sub = self.store.get_provider(sub_contractor_id)
        if sub is None:
            raise NotFound(f"Sub-contractor {sub_contractor_id} not found")

        schedule = build_schedule(service_items or [])
        contract = Contract(
            id=_new_contract_id(),
            contract_type="SUB_CONTRACT",
            scope_type="SUB_PROJECT",
            scope_id=parent.scope_id,
            parent_contract_id=parent.id,
            buyer_party_id=parent.provider_party_id,
            buyer_party_type=parent.provider_party_type,
            provider_party_id=sub.id,
            provider_party_type=provider_party_type(sub.role, default="SUB_CONTRACTOR"),
            start_date=start_date or parent.start_date,
            end_date=end_date or parent.end_date,
            services_schedule=schedule,
            payment_terms=payment_terms or parent.payment_terms,
            terms={
                "pricing": {
                    "amount": math.fsum(i.total for i in schedule),
                    "currency": settings.default_currency,
                },
            },
            created_by=created_by,
            created_at=self.clock(),
        )
        validate_creation(contract, parent)
        stored = self.store.create_contract(contract)
        logger.info("Created SUB_CONTRACT %s under %s", stored.id, parent.id)
        return ContractResult.ok(stored)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @returns_result
    def sign_contract(self, contract_id: str, signer_id: str) -> ContractResult:
        now = self.clock()

        def sign(contract: Contract) -> Contract:
            validate_signer(contract, signer_id)
            contract.status = "SIGNED"
            contract.signed_at = now
            contract.signed_by = signer_id
            return contract

        updated = self.store.update_contract(contract_id, sign)
        logger.info("Contract %s signed by %s", contract_id, signer_id)
        return ContractResult.ok(updated)

    @returns_result
    def terminate_contract(self, contract_id: str, reason: str) -> ContractResult:
        if not reason or not reason.strip():
            raise PreconditionFailed("A termination reason is required")
        now = self.clock()

        def terminate(contract: Contract) -> Contract:
            check_transition(contract.status, "TERMINATED")
            contract.status = "TERMINATED"
            contract.terminated_at = now
            contract.termination_reason = reason.strip()
            return contract

        updated = self.store.update_contract(contract_id, terminate)
        logger.info("Contract %s terminated: %s", contract_id, reason)
        return ContractResult.ok(updated)

    def send_contract(self, contract_id: str) -> ContractResult:
        return self.update_contract_status(contract_id, "SENT")

    def activate_contract(self, contract_id: str) -> ContractResult:
        return self.update_contract_status(contract_id, "ACTIVE")

    def complete_contract(self, contract_id: str) -> ContractResult:
        return self.update_contract_status(contract_id, "COMPLETED")

    @returns_result
    def update_contract_status(self, contract_id: str, status: str) -> ContractResult:
        if status not in _GENERIC_TARGETS:
            raise PreconditionFailed(
                f"Status {status} cannot be set directly; use the dedicated operation",
            )
        now = self.clock()

        def transition(contract: Contract) -> Contract:
            check_transition(contract.status, status)
            if status == "SENT" and contract.is_multi_party and not contract.all_consented:
                raise PreconditionFailed("All parties must consent before the contract is sent")
            contract.status = status
            if status == "SENT":
                contract.sent_at = now
            elif status == "ACTIVE":
                contract.activated_at = now
            elif status == "COMPLETED":
                contract.completed_at = now
            return contract

        updated = self.store.update_contract(contract_id, transition)
        logger.info("Contract %s -> %s", contract_id, status)
        return ContractResult.ok(updated)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_contract(self, contract_id: str) -> Contract | None:
        return self.store.get_contract(contract_id)

    def contracts_by_scope(self, scope_type: str, scope_id: str) -> list[Contract]:
        return self.store.list_contracts(scope_type=scope_type, scope_id=scope_id)

    def contracts_by_party(self, party_id: str) -> list[Contract]:
        return self.store.list_contracts(party_id=party_id)

    def sub_contracts(self, parent_contract_id: str) -> list[Contract]:
        return self.store.list_contracts(parent_contract_id=parent_contract_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _dates(pv: ProposalVersion | None, opportunity: Opportunity) -> tuple[date | None, date | None]:
        timeline = (pv.timeline if pv else None) or opportunity.timeline
        if timeline is None:
            return None, None
        return timeline.start_date, timeline.computed_end()

    @staticmethod
    def _terms(pv: ProposalVersion | None, schedule: list[ScheduleItem]) -> dict:
        total = math.fsum(item.total for item in schedule)
        pricing = (pv.pricing if pv else None) or Pricing(
            amount=total, currency=settings.default_currency,
        )
        return {
            "pricing": pricing.model_dump(mode="json"),
            "total": total,
            "deliverables": list(pv.deliverables) if pv else [],
            "milestones": [m.model_dump(mode="json") for m in pv.milestones] if pv else [],
        }
