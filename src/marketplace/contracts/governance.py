"""Governance synthesis for multi-party archetypes (SPV / JV / Consortium).

Pure functions over a validated party list and the opportunity snapshot.
"""

from __future__ import annotations

import math

from src.marketplace.config import settings
from src.marketplace.contracts.shares import parse_split
from src.marketplace.models import (
    BoardSeat,
    BoardStructure,
    GovernanceStructure,
    LiabilityStructure,
    Opportunity,
    PartyShare,
    RegulatoryCompliance,
    RoleAssignment,
    ShareAllocation,
    WorkPackage,
    shares_sum_to_hundred,
)

DEFAULT_EXIT_STRATEGY: dict[str, str] = {
    "buyout": "Available after 2 years",
    "dissolution": "Mutual agreement or project completion",
}


def quorum_for(count: int) -> int:
    return min(count, math.ceil(count / 2) + 1)


def largest_shareholder(parties: list[PartyShare]) -> PartyShare:
    """Largest share wins; the earliest party wins ties."""
    lead = parties[0]
    for p in parties[1:]:
        if p.share > lead.share:
            lead = p
    return lead


def _allocation(parties: list[PartyShare], basis: str) -> list[ShareAllocation]:
    return [ShareAllocation(party_id=p.party_id, percentage=p.share, basis=basis) for p in parties]


def apply_split(parties: list[PartyShare], split: str | None) -> list[PartyShare]:
    """Reassign shares from a declared split when it fits the party list."""
    values = parse_split(split)
    if values is None or len(values) != len(parties) or not shares_sum_to_hundred(values):
        return parties
    return [p.model_copy(update={"share": v}) for p, v in zip(parties, values)]


# ---------------------------------------------------------------------------
# SPV
# ---------------------------------------------------------------------------

def board_structure(parties: list[PartyShare]) -> BoardStructure:
    size = min(len(parties), settings.max_board_seats)
    chair = largest_shareholder(parties)
    ranked = [chair] + [p for p in parties if p.party_id != chair.party_id]
    members = [
        BoardSeat(
            party_id=p.party_id,
            role="CHAIRMAN" if i == 0 else "MEMBER",
            appointed_by=p.party_id,
        )
        for i, p in enumerate(ranked[:size])
    ]
    return BoardStructure(size=size, members=members)


def spv_governance(parties: list[PartyShare], opportunity: Opportunity) -> GovernanceStructure:
    return GovernanceStructure(
        entity_type="SPV",
        legal_structure="Limited Liability Company",
        risk_isolation=True,
        equity_structure=_allocation(parties, "Equity share"),
        profit_distribution=_allocation(parties, "Proportional to equity share"),
        board=board_structure(parties),
        decision_making="Majority vote based on equity share",
        quorum=quorum_for(len(parties)),
        regulatory_compliance=RegulatoryCompliance(
            registration="Required",
            licenses=list(opportunity.required_licenses),
        ),
        debt_financing=opportunity.debt_financing,
    )


# ---------------------------------------------------------------------------
# Joint Venture
# ---------------------------------------------------------------------------

def jv_roles(parties: list[PartyShare], management: str) -> list[RoleAssignment]:
    if management == "lead":
        return [
            RoleAssignment(
                party_id=p.party_id,
                role="LEAD_PARTNER" if i == 0 else "PARTNER",
                responsibilities="Management and coordination" if i == 0 else "Execution and support",
            )
            for i, p in enumerate(parties)
        ]
    return [
        RoleAssignment(
            party_id=p.party_id,
            role="PARTNER",
            responsibilities="Shared management and execution",
        )
        for p in parties
    ]


def jv_governance(parties: list[PartyShare], opportunity: Opportunity) -> GovernanceStructure:
    management = opportunity.management_structure
    return GovernanceStructure(
        entity_type="JOINT_VENTURE",
        management_structure=management,
        lead_party_id=parties[0].party_id if management == "lead" else None,
        decision_making="Consensus" if management == "shared" else "Lead partner with consultation",
        quorum=quorum_for(len(parties)),
        equity_structure=_allocation(parties, "Equity share"),
        profit_distribution=_allocation(parties, "Proportional to equity share"),
        roles=jv_roles(parties, management),
        exit_strategy=dict(opportunity.exit_strategy or DEFAULT_EXIT_STRATEGY),
    )


# ---------------------------------------------------------------------------
# Consortium
# ---------------------------------------------------------------------------

def work_packages(parties: list[PartyShare], opportunity: Opportunity) -> list[WorkPackage]:
    declared = opportunity.work_packages
    if declared:
        return [
            WorkPackage(
                id=f"wp_{i + 1}",
                name=wp.name or f"Work Package {i + 1}",
                assigned_to=parties[i % len(parties)].party_id,
                value=wp.value,
                specialty=wp.specialty,
            )
            for i, wp in enumerate(declared)
        ]
    value = (opportunity.project_value or 0.0) / len(parties)
    return [
        WorkPackage(
            id=f"wp_{i + 1}",
            name=f"Work Package {i + 1}",
            assigned_to=p.party_id,
            value=value,
        )
        for i, p in enumerate(parties)
    ]


def consortium_roles(parties: list[PartyShare], lead_id: str, specialties: list[str]) -> list[RoleAssignment]:
    roles = []
    for i, p in enumerate(parties):
        lead = p.party_id == lead_id
        roles.append(RoleAssignment(
            party_id=p.party_id,
            role="LEAD_MEMBER" if lead else "MEMBER",
            responsibilities="Coordination and primary interface" if lead else "Specialty execution",
            specialty=specialties[i] if i < len(specialties) else "General",
        ))
    return roles


def consortium_governance(parties: list[PartyShare], opportunity: Opportunity) -> GovernanceStructure:
    lead = largest_shareholder(parties)
    return GovernanceStructure(
        entity_type="CONSORTIUM",
        lead_party_id=lead.party_id,
        decision_making="Lead member with member consultation",
        quorum=quorum_for(len(parties)),
        roles=consortium_roles(parties, lead.party_id, opportunity.required_specialties),
        work_packages=work_packages(parties, opportunity),
        liability_structure=LiabilityStructure(
            type="Joint and Several",
            allocation=_allocation(parties, "Proportional to share"),
        ),
        payment_distribution=_allocation(parties, "Milestone-based"),
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def default_governance(parties: list[PartyShare], contract_type: str) -> GovernanceStructure:
    return GovernanceStructure(
        entity_type=contract_type,
        decision_making="Majority vote",
        quorum=quorum_for(len(parties)),
        roles=[
            RoleAssignment(
                party_id=p.party_id,
                role="LEAD" if i == 0 else "MEMBER",
                responsibilities="Project coordination" if i == 0 else "Work package execution",
            )
            for i, p in enumerate(parties)
        ],
    )


_SYNTHESIZERS = {
    "SPV_CONTRACT": spv_governance,
    "JV_CONTRACT": jv_governance,
    "CONSORTIUM_CONTRACT": consortium_governance,
}


def synthesize(
    contract_type: str, parties: list[PartyShare], opportunity: Opportunity,
) -> GovernanceStructure:
    builder = _SYNTHESIZERS.get(contract_type)
    if builder is None:
        return default_governance(parties, contract_type)
    return builder(parties, opportunity)


def risk_allocation(parties: list[PartyShare]) -> list[dict]:
    return [
        {
            "party_id": p.party_id,
            "risk_share": p.share,
            "liability": "Proportional to equity share",
            "insurance": "Required per party",
        }
        for p in parties
    ]
