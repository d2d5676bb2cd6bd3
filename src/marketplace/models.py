"""Pydantic v2 data models: the data contracts flowing through the system."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from src.marketplace.config import ScoringWeights, settings
from src.marketplace.domain_model import (
    canonical_opportunity_kind,
    canonical_proposal_status,
)
from src.marketplace.errors import MarketplaceError


# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

OpportunityKind = Literal[
    "PROJECT",
    "MEGA_PROJECT",
    "SERVICE_REQUEST",
    "ADVISORY_REQUEST",
    "BULK_PURCHASE",
    "SPV",
    "JOINT_VENTURE",
    "CONSORTIUM",
]

OpportunityStatus = Literal["DRAFT", "PUBLISHED", "CLOSED"]
PaymentMode = Literal["CASH", "BARTER", "HYBRID"]
BarterRule = Literal["EQUAL_VALUE_ONLY", "ALLOW_DIFFERENCE_WITH_CASH", "ACCEPT_AS_IS"]
PricingType = Literal["fixed", "hourly", "daily", "milestone"]
DeliveryMode = Literal["ONSITE", "REMOTE", "HYBRID"]
ExperienceLevel = Literal["junior", "intermediate", "senior", "expert"]
ApprovalStatus = Literal["pending", "approved", "rejected", "suspended"]

ProposalType = Literal["PROJECT_BID", "SERVICE_OFFER", "ADVISORY_OFFER"]
ProposalStatus = Literal[
    "DRAFT",
    "SUBMITTED",
    "UNDER_REVIEW",
    "SHORTLISTED",
    "NEGOTIATION",
    "FINAL_ACCEPTED",
    "REJECTED",
    "WITHDRAWN",
]

ContractType = Literal[
    "PROJECT_CONTRACT",
    "MEGA_PROJECT_CONTRACT",
    "SERVICE_CONTRACT",
    "ADVISORY_CONTRACT",
    "SUB_CONTRACT",
    "SPV_CONTRACT",
    "JV_CONTRACT",
    "CONSORTIUM_CONTRACT",
]
ContractStatus = Literal["DRAFT", "SENT", "SIGNED", "ACTIVE", "COMPLETED", "TERMINATED"]
ScopeType = Literal["PROJECT", "MEGA_PROJECT", "SUB_PROJECT", "SERVICE_REQUEST"]
PartyType = Literal[
    "BENEFICIARY",
    "VENDOR_CORPORATE",
    "VENDOR_INDIVIDUAL",
    "SERVICE_PROVIDER",
    "CONSULTANT",
    "SUB_CONTRACTOR",
]
ConsentStatus = Literal["PENDING", "CONSENTED", "REJECTED"]


# ---------------------------------------------------------------------------
# Shared value objects
# ---------------------------------------------------------------------------

class Location(BaseModel):
    country: str | None = None
    city: str | None = None
    region: str | None = None
    remote_allowed: bool = False
    service_radius_km: float | None = None

    def is_empty(self) -> bool:
        return not (self.country or self.city)


class BudgetRange(BaseModel):
    min: float | None = None
    max: float | None = None
    currency: str = "SAR"


class Timeline(BaseModel):
    start_date: date | None = None
    duration_days: int | None = None
    end_date: date | None = None

    def computed_end(self) -> date | None:
        if self.end_date:
            return self.end_date
        if self.start_date and self.duration_days:
            return self.start_date + timedelta(days=self.duration_days)
        return None


class PaymentTerms(BaseModel):
    mode: PaymentMode = "CASH"
    barter_rule: BarterRule | None = None
    cash_settlement: float | None = None
    acknowledged_difference: bool = False
    schedule: str = "milestone_based"


class Pricing(BaseModel):
    amount: float = 0.0
    currency: str = "SAR"


class Milestone(BaseModel):
    name: str
    due_date: date | None = None
    amount: float | None = None


# ---------------------------------------------------------------------------
# Opportunity / offering / provider snapshots
# ---------------------------------------------------------------------------

class WorkPackageSpec(BaseModel):
    name: str
    value: float = 0.0
    specialty: str | None = None


class Opportunity(BaseModel):
    id: str
    title: str = ""
    kind: OpportunityKind = "PROJECT"
    category: str | None = None
    required_skills: list[str] = Field(default_factory=list)
    experience_level: ExperienceLevel | None = None
    minimum_experience_years: float | None = None
    budget: BudgetRange | None = None
    location: Location | None = None
    timeline: Timeline | None = None
    payment_terms: PaymentTerms | None = None
    status: OpportunityStatus = "DRAFT"
    creator_id: str
    created_at: datetime | None = None
    request_type: str | None = None

    # Multi-party archetype attributes
    project_value: float | None = None
    jv_structure: str | None = None
    management_structure: Literal["shared", "lead"] = "shared"
    exit_strategy: dict[str, str] | None = None
    work_packages: list[WorkPackageSpec] = Field(default_factory=list)
    required_specialties: list[str] = Field(default_factory=list)
    required_licenses: list[str] = Field(default_factory=list)
    debt_financing: str | None = None
    consortium_size: int | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _canonical_kind(cls, value: Any) -> Any:
        return canonical_opportunity_kind(value) if isinstance(value, str) else value

    @property
    def is_published(self) -> bool:
        return self.status == "PUBLISHED"


class Availability(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    lead_time_days: int | None = None
    status: Literal["available", "busy", "unavailable"] = "available"


class Offering(BaseModel):
    id: str
    provider_id: str
    title: str = ""
    category: str | None = None
    skills: list[str] = Field(default_factory=list)
    price_min: float | None = None
    price_max: float | None = None
    pricing_type: PricingType = "fixed"
    delivery_mode: DeliveryMode = "ONSITE"
    exchange_type: PaymentMode = "CASH"
    location: Location | None = None
    availability: Availability | None = None
    status: Literal["Active", "Inactive", "Draft"] = "Active"

    @property
    def is_active(self) -> bool:
        return self.status == "Active"

    @property
    def allows_remote(self) -> bool:
        if self.delivery_mode in ("REMOTE", "HYBRID"):
            return True
        return bool(self.location and self.location.remote_allowed)


class Provider(BaseModel):
    id: str
    name: str = ""
    role: str = "vendor_corporate"
    approval_status: ApprovalStatus = "pending"
    experience_level: ExperienceLevel | None = None
    years_experience: float | None = None
    reputation_score: float | None = None
    location: Location | None = None
    payment_preference: PaymentMode | None = None

    @property
    def is_approved(self) -> bool:
        return self.approval_status == "approved"


class EvaluationAggregate(BaseModel):
    provider_id: str
    average_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    count: int = 0

    def as_score(self) -> float:
        """Scale the 1-5 rating to 0-100."""
        return self.average_rating / 5.0 * 100.0


class CollaborationApplication(BaseModel):
    id: str
    opportunity_id: str
    applicant_id: str
    status: Literal["pending", "approved", "rejected"] = "pending"
    proposed_share: float | None = None
    specialty: str | None = None


class Notification(BaseModel):
    user_id: str
    type: str
    title: str
    message: str
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Scoring / match output types
# ---------------------------------------------------------------------------

class SubScores(BaseModel):
    attribute_overlap: float = 0.0
    budget_value_fit: float = 0.0
    timeline_compatibility: float = 0.0
    location_fit: float = 0.0
    reputation: float = 0.0


class AttributeBreakdown(BaseModel):
    skills: float = 0.0
    category: float = 0.0
    experience: float = 0.0


class MatchExplanation(BaseModel):
    matched_skills: list[str] = Field(default_factory=list)
    unmatched_skills: list[str] = Field(default_factory=list)
    top_matched_skills: list[str] = Field(default_factory=list)
    location_reason: str = ""
    payment_compatibility: str = ""


class ScoreCard(BaseModel):
    final: int
    sub_scores: SubScores
    attribute_detail: AttributeBreakdown
    weights: ScoringWeights
    meets_threshold: bool
    skill_gate_passed: bool = True
    explain: MatchExplanation


class Match(BaseModel):
    id: str
    opportunity_id: str
    provider_id: str
    offering_id: str
    score: int
    sub_scores: SubScores
    weights: ScoringWeights
    evaluation_score: float | None = None
    evaluation_weight: float = 0.0
    explain: MatchExplanation
    narrative: str | None = None
    notified: bool = False
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Proposals and service offers (read-only inputs)
# ---------------------------------------------------------------------------

class ServiceItem(BaseModel):
    name: str
    description: str = ""
    unit: str = "unit"
    quantity: float = Field(default=1.0, gt=0)
    unit_price: float = Field(default=0.0, ge=0)
    total: float | None = None
    currency: str = "SAR"
    delivery_date: date | None = None

    @property
    def line_total(self) -> float:
        if self.total is not None:
            return self.total
        return self.quantity * self.unit_price


class ProposalVersion(BaseModel):
    version: int = Field(ge=1)
    service_items: list[ServiceItem] = Field(default_factory=list)
    payment_terms: PaymentTerms | None = None
    pricing: Pricing | None = None
    timeline: Timeline | None = None
    deliverables: list[str] = Field(default_factory=list)
    milestones: list[Milestone] = Field(default_factory=list)
    comment: str = ""
    created_at: datetime | None = None


class ProposalAcceptance(BaseModel):
    owner_accepted_version: int | None = None
    other_party_accepted_version: int | None = None
    mutually_accepted_version: int | None = None
    accepted_at: datetime | None = None


class Proposal(BaseModel):
    id: str
    opportunity_id: str
    proposal_type: ProposalType = "PROJECT_BID"
    owner_id: str
    bidder_id: str
    status: ProposalStatus = "SUBMITTED"
    current_version: int = 1
    versions: list[ProposalVersion] = Field(default_factory=list)
    acceptance: ProposalAcceptance = Field(default_factory=ProposalAcceptance)

    @field_validator("status", mode="before")
    @classmethod
    def _canonical_status(cls, value: Any) -> Any:
        return canonical_proposal_status(value) if isinstance(value, str) else value

    def get_version(self, number: int) -> ProposalVersion | None:
        for v in self.versions:
            if v.version == number:
                return v
        return None

    def latest_version_number(self) -> int:
        if self.versions:
            return max(self.current_version, max(v.version for v in self.versions))
        return self.current_version


class ServiceRequest(BaseModel):
    id: str
    requester_id: str
    requester_type: Literal["BENEFICIARY", "VENDOR"] = "BENEFICIARY"
    title: str = ""
    required_by: date | None = None
    payment_terms: PaymentTerms | None = None


class ServiceOffer(BaseModel):
    id: str
    service_request_id: str
    provider_id: str
    status: Literal["SUBMITTED", "ACCEPTED", "REJECTED", "WITHDRAWN"] = "SUBMITTED"
    proposed_pricing: Pricing | None = None
    service_items: list[ServiceItem] = Field(default_factory=list)
    payment_terms: PaymentTerms | None = None
    start_date: date | None = None


# ---------------------------------------------------------------------------
# Governance structures
# ---------------------------------------------------------------------------

class ShareAllocation(BaseModel):
    party_id: str
    percentage: float
    basis: str = "Proportional to share"


class RoleAssignment(BaseModel):
    party_id: str
    role: str
    responsibilities: str = ""
    specialty: str | None = None


class BoardSeat(BaseModel):
    party_id: str
    role: Literal["CHAIRMAN", "MEMBER"] = "MEMBER"
    appointed_by: str


class BoardStructure(BaseModel):
    size: int
    members: list[BoardSeat] = Field(default_factory=list)


class WorkPackage(BaseModel):
    id: str
    name: str
    assigned_to: str
    value: float = 0.0
    specialty: str | None = None
    deliverables: list[str] = Field(default_factory=list)


class LiabilityStructure(BaseModel):
    type: str = "Joint and Several"
    allocation: list[ShareAllocation] = Field(default_factory=list)


class RegulatoryCompliance(BaseModel):
    registration: str = "Required"
    licenses: list[str] = Field(default_factory=list)


class GovernanceStructure(BaseModel):
    entity_type: str
    legal_structure: str | None = None
    decision_making: str = "Majority vote"
    quorum: int | None = None
    management_structure: str | None = None
    lead_party_id: str | None = None
    risk_isolation: bool = False
    equity_structure: list[ShareAllocation] = Field(default_factory=list)
    profit_distribution: list[ShareAllocation] = Field(default_factory=list)
    payment_distribution: list[ShareAllocation] = Field(default_factory=list)
    liability_structure: LiabilityStructure | None = None
    roles: list[RoleAssignment] = Field(default_factory=list)
    board: BoardStructure | None = None
    work_packages: list[WorkPackage] = Field(default_factory=list)
    regulatory_compliance: RegulatoryCompliance | None = None
    exit_strategy: dict[str, str] | None = None
    debt_financing: str | None = None


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

class ScheduleItem(BaseModel):
    name: str
    description: str = ""
    quantity: float = 1.0
    unit: str = "unit"
    unit_price: float = 0.0
    total: float = 0.0
    currency: str = "SAR"
    delivery_date: date | None = None


class PartyShare(BaseModel):
    """A party and its share, as supplied by callers of the multi-party API."""

    party_id: str = Field(min_length=1)
    party_type: PartyType = "VENDOR_CORPORATE"
    role: str = "PARTNER"
    share: float = Field(ge=0.0, le=100.0)


class ContractParty(BaseModel):
    party_id: str
    party_type: PartyType
    role: str
    share: float
    consent_status: ConsentStatus = "PENDING"
    consented_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None


def shares_sum_to_hundred(shares: list[float], tolerance: float | None = None) -> bool:
    tol = settings.share_tolerance if tolerance is None else tolerance
    return abs(math.fsum(shares) - 100.0) <= tol + 1e-9


class Contract(BaseModel):
    id: str
    contract_type: ContractType
    scope_type: ScopeType
    scope_id: str
    status: ContractStatus = "DRAFT"
    parent_contract_id: str | None = None

    buyer_party_id: str | None = None
    buyer_party_type: PartyType | None = None
    provider_party_id: str | None = None
    provider_party_type: PartyType | None = None

    start_date: date | None = None
    end_date: date | None = None
    services_schedule: list[ScheduleItem] = Field(default_factory=list)
    payment_terms: PaymentTerms | None = None
    terms: dict[str, Any] = Field(default_factory=dict)

    source_proposal_id: str | None = Field(default=None, frozen=True)
    source_proposal_version: int | None = Field(default=None, frozen=True)
    source_service_offer_id: str | None = Field(default=None, frozen=True)

    is_multi_party: bool = False
    parties: list[ContractParty] = Field(default_factory=list)
    governance_structure: GovernanceStructure | None = None

    created_by: str | None = None
    created_at: datetime | None = None
    sent_at: datetime | None = None
    signed_at: datetime | None = None
    signed_by: str | None = None
    activated_at: datetime | None = None
    completed_at: datetime | None = None
    terminated_at: datetime | None = None
    termination_reason: str | None = None

    @model_validator(mode="after")
    def _check_parties(self) -> Contract:
        if self.is_multi_party:
            if len(self.parties) < 2:
                raise ValueError("multi-party contract requires at least 2 parties")
            if not shares_sum_to_hundred([p.share for p in self.parties]):
                raise ValueError("party shares must sum to 100%")
        elif self.parties:
            raise ValueError("parties are only valid on multi-party contracts")
        return self

    def party(self, party_id: str) -> ContractParty | None:
        for p in self.parties:
            if p.party_id == party_id:
                return p
        return None

    def involves(self, party_id: str) -> bool:
        if party_id in (self.buyer_party_id, self.provider_party_id):
            return True
        return self.party(party_id) is not None

    @property
    def all_consented(self) -> bool:
        return bool(self.parties) and all(
            p.consent_status == "CONSENTED" for p in self.parties
        )

    @property
    def rejected_parties(self) -> list[str]:
        return [p.party_id for p in self.parties if p.consent_status == "REJECTED"]

    @property
    def total_value(self) -> float:
        return math.fsum(item.total for item in self.services_schedule)


class ContractResult(BaseModel):
    success: bool
    contract: Contract | None = None
    error: str | None = None
    errors: list[str] = Field(default_factory=list)
    code: str | None = None
    retryable: bool = False
    warnings: list[str] = Field(default_factory=list)
    requires_consent: bool = False
    all_consented: bool | None = None
    rejected_parties: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, contract: Contract, **extra: Any) -> ContractResult:
        return cls(success=True, contract=contract, **extra)

    @classmethod
    def failure(cls, exc: MarketplaceError, **extra: Any) -> ContractResult:
        return cls(
            success=False,
            error=exc.message,
            errors=exc.errors,
            code=exc.code,
            retryable=exc.retryable,
            **extra,
        )
