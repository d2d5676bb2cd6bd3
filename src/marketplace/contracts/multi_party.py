"""Multi-party contracts: SPV, Joint Venture and Consortium.

Builds the party list and governance structure, persists the contract in
DRAFT with every party PENDING, and drives the per-party consent state
machine.  The contract moves DRAFT -> SENT only when every party has
CONSENTED; a REJECTED party holds it in DRAFT.
"""

from __future__ import annotations

import logging
import math
import uuid
from typing import Any

from src.marketplace.collaborators import Clock, utc_now
from src.marketplace.config import settings
from src.marketplace.contracts import governance
from src.marketplace.contracts.acceptance import (
    require_eligible,
    resolve_version,
    version_payment_terms,
    version_warnings,
)
from src.marketplace.contracts.results import returns_result
from src.marketplace.contracts.shares import equal_shares, validate_parties
from src.marketplace.contracts.validator import validate_creation
from src.marketplace.domain_model import (
    MULTI_PARTY_CONTRACT_TYPE_SET,
    buyer_party_type,
    multi_party_contract_type,
    provider_party_type,
    scope_type_for,
)
from src.marketplace.errors import NotFound, PreconditionFailed, StateTransitionInvalid
from src.marketplace.models import (
    Contract,
    ContractParty,
    ContractResult,
    GovernanceStructure,
    Opportunity,
    PartyShare,
    Pricing,
    Proposal,
)
from src.marketplace.store.base import Repository

logger = logging.getLogger(__name__)


class MultiPartyContractService:
    def __init__(self, store: Repository, clock: Clock = utc_now) -> None:
        self.store = store
        self.clock = clock

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @returns_result
    def create_multi_party_contract(
        self,
        proposal_id: str,
        parties: list[PartyShare] | list[dict],
        contract_type: str | None = None,
        governance_structure: GovernanceStructure | None = None,
        version: int | None = None,
        created_by: str | None = None,
    ) -> ContractResult:
        proposal, opportunity = self._load(proposal_id)
        validated = validate_parties(parties)

        ctype = contract_type or multi_party_contract_type(opportunity.kind)
        if ctype is None:
            raise PreconditionFailed(
                f"Opportunity {opportunity.id} ({opportunity.kind}) is not a multi-party archetype",
            )
        if ctype not in MULTI_PARTY_CONTRACT_TYPE_SET:
            raise PreconditionFailed(f"{ctype} is not a multi-party contract type")
        if ctype == "SPV_CONTRACT":
            self._check_spv_floor(opportunity)

        number, source = resolve_version(proposal, version)
        warnings = version_warnings(proposal, number, source)
        pv = proposal.get_version(number)
        payment_terms, fallback = version_payment_terms(pv, number, opportunity.payment_terms)
        warnings.extend(fallback)

        gov = governance_structure or governance.synthesize(ctype, validated, opportunity)
        start = None
        end = None
        if pv and pv.timeline:
            start, end = pv.timeline.start_date, pv.timeline.computed_end()
        elif opportunity.timeline:
            start, end = opportunity.timeline.start_date, opportunity.timeline.computed_end()

        contract = Contract(
            id=f"contract-{uuid.uuid4().hex[:12]}",
            contract_type=ctype,
            scope_type=scope_type_for(opportunity.kind),
            scope_id=opportunity.id,
            is_multi_party=True,
            parties=[
                ContractParty(
                    party_id=p.party_id,
                    party_type=p.party_type,
                    role=p.role,
                    share=p.share,
                )
                for p in validated
            ],
            governance_structure=gov,
            start_date=start,
            end_date=end,
            payment_terms=payment_terms,
            terms=self._terms(ctype, proposal, number, validated, gov),
            source_proposal_id=proposal.id,
            source_proposal_version=number,
            created_by=created_by,
            created_at=self.clock(),
        )
        validate_creation(contract)
        stored = self.store.create_contract(contract)
        logger.info(
            "Created %s %s for proposal %s v%d with %d parties",
            ctype, stored.id, proposal.id, number, len(validated),
        )
        return ContractResult.ok(
            stored, warnings=warnings, requires_consent=True, all_consented=False,
        )

    @returns_result
    def generate_spv_contract(self, proposal_id: str, version: int | None = None) -> ContractResult:
        proposal, opportunity = self._load(proposal_id)
        self._check_spv_floor(opportunity)
        parties = self.extract_parties_from_opportunity(opportunity, proposal)
        return self.create_multi_party_contract(
            proposal_id, parties, contract_type="SPV_CONTRACT", version=version,
        )

    @returns_result
    def generate_jv_contract(self, proposal_id: str, version: int | None = None) -> ContractResult:
        proposal, opportunity = self._load(proposal_id)
        parties = governance.apply_split(
            self.extract_parties_from_opportunity(opportunity, proposal),
            opportunity.jv_structure,
        )
        return self.create_multi_party_contract(
            proposal_id, parties, contract_type="JV_CONTRACT", version=version,
        )

    @returns_result
    def generate_consortium_contract(self, proposal_id: str, version: int | None = None) -> ContractResult:
        proposal, opportunity = self._load(proposal_id)
        parties = self.extract_parties_from_opportunity(opportunity, proposal)
        return self.create_multi_party_contract(
            proposal_id, parties, contract_type="CONSORTIUM_CONTRACT", version=version,
        )

    def generate_for_opportunity(
        self, proposal_id: str, kind: str, version: int | None = None,
    ) -> ContractResult:
        generators = {
            "SPV": self.generate_spv_contract,
            "JOINT_VENTURE": self.generate_jv_contract,
            "CONSORTIUM": self.generate_consortium_contract,
        }
        generate = generators.get(kind)
        if generate is None:
            return ContractResult.failure(
                PreconditionFailed(f"{kind} is not a multi-party archetype"),
            )
        return generate(proposal_id, version)

    # ------------------------------------------------------------------
    # Consent state machine
    # ------------------------------------------------------------------

    @returns_result
    def record_party_consent(self, contract_id: str, party_id: str) -> ContractResult:
        now = self.clock()

        def consent(contract: Contract) -> Contract:
            party = self._party(contract, party_id)
            if party.consent_status == "CONSENTED":
                return contract
            if party.consent_status == "REJECTED":
                raise PreconditionFailed(f"Party {party_id} has rejected contract {contract.id}")
            if contract.status != "DRAFT":
                raise StateTransitionInvalid(
                    f"Consent can only be recorded on a DRAFT contract (status {contract.status})",
                )
            party.consent_status = "CONSENTED"
            party.consented_at = now
            if contract.all_consented:
                contract.status = "SENT"
                contract.sent_at = now
            return contract

        updated = self.store.update_contract(contract_id, consent)
        if updated.status == "SENT":
            logger.info("All parties consented to %s; contract SENT", contract_id)
        return ContractResult.ok(
            updated,
            all_consented=updated.all_consented,
            rejected_parties=updated.rejected_parties,
        )

    @returns_result
    def record_party_rejection(
        self, contract_id: str, party_id: str, reason: str | None = None,
    ) -> ContractResult:
        now = self.clock()

        def reject(contract: Contract) -> Contract:
            party = self._party(contract, party_id)
            if party.consent_status == "REJECTED":
                return contract
            if contract.status != "DRAFT":
                raise StateTransitionInvalid(
                    f"Rejection can only be recorded on a DRAFT contract (status {contract.status})",
                )
            party.consent_status = "REJECTED"
            party.rejected_at = now
            party.rejection_reason = reason
            return contract

        updated = self.store.update_contract(contract_id, reject)
        logger.info("Party %s rejected contract %s", party_id, contract_id)
        return ContractResult.ok(
            updated,
            all_consented=False,
            rejected_parties=updated.rejected_parties,
        )

    # ------------------------------------------------------------------
    # Party extraction
    # ------------------------------------------------------------------

    def extract_parties_from_opportunity(
        self, opportunity: Opportunity, proposal: Proposal,
    ) -> list[PartyShare]:
        """Owner, winning bidder, then approved applicants, deduplicated.

        Approved applicants keep the share they declared on application.  The
        remaining percentage is split equally across the parties that declared
        none.  When declarations leave nothing to split (they reach 100 or
        more), every party gets an equal share instead.
        """
        entries: list[tuple[str, str, str, float | None]] = []

        owner = self.store.get_provider(opportunity.creator_id)
        entries.append((
            opportunity.creator_id,
            buyer_party_type(owner.role if owner else None),
            "OWNER",
            None,
        ))
        bidder = self.store.get_provider(proposal.bidder_id)
        entries.append((
            proposal.bidder_id,
            provider_party_type(bidder.role if bidder else None),
            "PARTNER",
            None,
        ))
        for app in self.store.list_applications(opportunity.id):
            if app.status != "approved":
                continue
            applicant = self.store.get_provider(app.applicant_id)
            entries.append((
                app.applicant_id,
                provider_party_type(applicant.role if applicant else None),
                "PARTNER",
                app.proposed_share,
            ))

        seen: set[str] = set()
        unique = []
        for entry in entries:
            if entry[0] in seen:
                continue
            seen.add(entry[0])
            unique.append(entry)

        declared = [e[3] for e in unique if e[3] is not None]
        declared_total = math.fsum(declared)
        open_count = len(unique) - len(declared)
        if declared and declared_total < 100.0 and open_count:
            rest = iter(equal_shares(open_count, total=round(100.0 - declared_total, 2)))
            shares = [e[3] if e[3] is not None else next(rest) for e in unique]
        else:
            if declared:
                logger.warning(
                    "Declared applicant shares on %s total %g%%; splitting equally",
                    opportunity.id, declared_total,
                )
            shares = equal_shares(len(unique))

        return [
            PartyShare(party_id=pid, party_type=ptype, role=role, share=share)
            for (pid, ptype, role, _), share in zip(unique, shares)
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, proposal_id: str) -> tuple[Proposal, Opportunity]:
        proposal = self.store.get_proposal(proposal_id)
        if proposal is None:
            raise NotFound(f"Proposal {proposal_id} not found")
        require_eligible(proposal)
        opportunity = self.store.get_opportunity(proposal.opportunity_id)
        if opportunity is None:
            raise NotFound(f"Opportunity {proposal.opportunity_id} not found for proposal")
        return proposal, opportunity

    @staticmethod
    def _check_spv_floor(opportunity: Opportunity) -> None:
        value = opportunity.project_value or 0.0
        if value < settings.spv_min_value:
            raise PreconditionFailed(
                f"SPV contracts require project value of at least "
                f"{settings.spv_min_value:,.0f} {settings.default_currency} (got {value:,.0f})",
            )

    @staticmethod
    def _party(contract: Contract, party_id: str) -> ContractParty:
        if not contract.is_multi_party:
            raise PreconditionFailed(f"Contract {contract.id} is not a multi-party contract")
        party = contract.party(party_id)
        if party is None:
            raise NotFound(f"Party {party_id} not found in contract {contract.id}")
        return party

    @staticmethod
    def _terms(
        contract_type: str,
        proposal: Proposal,
        version: int,
        parties: list[PartyShare],
        gov: GovernanceStructure,
    ) -> dict[str, Any]:
        pv = proposal.get_version(version)
        pricing = (pv.pricing if pv and pv.pricing else None) or Pricing(
            amount=sum(item.line_total for item in pv.service_items) if pv else 0.0,
            currency=settings.default_currency,
        )
        return {
            "type": contract_type,
            "parties": [
                {"party_id": p.party_id, "role": p.role, "share": p.share} for p in parties
            ],
            "governance": gov.model_dump(mode="json"),
            "pricing": pricing.model_dump(mode="json"),
            "deliverables": list(pv.deliverables) if pv else [],
            "milestones": [m.model_dump(mode="json") for m in pv.milestones] if pv else [],
            "risk_allocation": governance.risk_allocation(parties),
        }
