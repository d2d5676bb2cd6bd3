"""Deterministic domain model: marketplace vocabulary and lookup tables.

Category mapping, experience ladder, status aliases, contract typing rules and
role-to-party translation. No I/O. Fully unit-testable.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Layer 1: Project category -> service category mapping
# ---------------------------------------------------------------------------

CATEGORY_MAPPING: dict[str, list[str]] = {
    "infrastructure": ["engineering", "design", "logistics", "safety"],
    "residential": ["design", "engineering", "legal", "financial"],
    "commercial": ["design", "engineering", "legal", "financial"],
    "industrial": ["engineering", "logistics", "safety", "environmental"],
}

# Primary service category per project category, used to seed the
# candidate index when an opportunity is indexed.
PRIMARY_SERVICE_CATEGORY: dict[str, str] = {
    "infrastructure": "engineering",
    "industrial": "engineering",
    "residential": "design",
    "commercial": "design",
}


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def category_matches(opportunity_category: str | None, offering_category: str | None) -> bool:
    opp = _norm(opportunity_category)
    off = _norm(offering_category)
    if not opp or not off:
        return False
    if opp == off:
        return True
    return off in CATEGORY_MAPPING.get(opp, [])


def primary_service_category(project_category: str | None) -> str | None:
    return PRIMARY_SERVICE_CATEGORY.get(_norm(project_category))


def skill_matches(required: str, offered: str) -> bool:
    """Case-insensitive bidirectional substring match."""
    r = _norm(required)
    o = _norm(offered)
    if not r or not o:
        return False
    return r in o or o in r


# ---------------------------------------------------------------------------
# Layer 2: Experience ladder
# ---------------------------------------------------------------------------

EXPERIENCE_LEVELS: dict[str, int] = {
    "junior": 1,
    "intermediate": 2,
    "senior": 3,
    "expert": 4,
}

DEFAULT_EXPERIENCE_LEVEL = "intermediate"


def level_rank(level: str | None) -> int:
    return EXPERIENCE_LEVELS.get(
        _norm(level), EXPERIENCE_LEVELS[DEFAULT_EXPERIENCE_LEVEL],
    )


# ---------------------------------------------------------------------------
# Layer 3: Status and kind aliases
# ---------------------------------------------------------------------------

PROPOSAL_STATUS_ALIASES: dict[str, str] = {
    "AWARDED": "FINAL_ACCEPTED",
    "ACCEPTED": "FINAL_ACCEPTED",
}

OPPORTUNITY_KIND_ALIASES: dict[str, str] = {
    "JV": "JOINT_VENTURE",
    "MEGA": "MEGA_PROJECT",
    "SERVICE": "SERVICE_REQUEST",
    "ADVISORY": "ADVISORY_REQUEST",
    "BULK": "BULK_PURCHASE",
    # Numeric collaboration model ids used by older clients
    "1.2": "CONSORTIUM",
    "1.3": "JOINT_VENTURE",
    "1.4": "SPV",
}


def canonical_proposal_status(status: str) -> str:
    upper = status.strip().upper()
    return PROPOSAL_STATUS_ALIASES.get(upper, upper)


def canonical_opportunity_kind(kind: str) -> str:
    upper = kind.strip().upper().replace(" ", "_").replace("-", "_")
    return OPPORTUNITY_KIND_ALIASES.get(upper, upper)


# ---------------------------------------------------------------------------
# Layer 4: Contract typing
# ---------------------------------------------------------------------------

MULTI_PARTY_CONTRACT_TYPES: dict[str, str] = {
    "SPV": "SPV_CONTRACT",
    "JOINT_VENTURE": "JV_CONTRACT",
    "CONSORTIUM": "CONSORTIUM_CONTRACT",
}

MULTI_PARTY_CONTRACT_TYPE_SET = frozenset(MULTI_PARTY_CONTRACT_TYPES.values())

SINGLE_PARTY_CONTRACT_TYPES: dict[tuple[str, str], str] = {
    ("PROJECT_BID", "PROJECT"): "PROJECT_CONTRACT",
    ("PROJECT_BID", "BULK_PURCHASE"): "PROJECT_CONTRACT",
    ("PROJECT_BID", "MEGA_PROJECT"): "MEGA_PROJECT_CONTRACT",
    ("SERVICE_OFFER", "SERVICE_REQUEST"): "SERVICE_CONTRACT",
    ("SERVICE_OFFER", "PROJECT"): "SERVICE_CONTRACT",
    ("ADVISORY_OFFER", "ADVISORY_REQUEST"): "ADVISORY_CONTRACT",
    ("ADVISORY_OFFER", "PROJECT"): "ADVISORY_CONTRACT",
    ("ADVISORY_OFFER", "MEGA_PROJECT"): "ADVISORY_CONTRACT",
}

SCOPE_TYPE_BY_KIND: dict[str, str] = {
    "PROJECT": "PROJECT",
    "BULK_PURCHASE": "PROJECT",
    "MEGA_PROJECT": "MEGA_PROJECT",
    "SERVICE_REQUEST": "SERVICE_REQUEST",
    "ADVISORY_REQUEST": "SERVICE_REQUEST",
    "SPV": "PROJECT",
    "JOINT_VENTURE": "PROJECT",
    "CONSORTIUM": "PROJECT",
}


def is_multi_party_kind(kind: str) -> bool:
    return kind in MULTI_PARTY_CONTRACT_TYPES


def multi_party_contract_type(kind: str) -> str | None:
    return MULTI_PARTY_CONTRACT_TYPES.get(kind)


def single_party_contract_type(proposal_type: str, kind: str) -> str | None:
    """Derive the contract type for a two-party proposal, or None if unsupported."""
    return SINGLE_PARTY_CONTRACT_TYPES.get((proposal_type, kind))


def scope_type_for(kind: str) -> str:
    return SCOPE_TYPE_BY_KIND.get(kind, "PROJECT")


# ---------------------------------------------------------------------------
# Layer 5: Role -> party type translation
# ---------------------------------------------------------------------------

_PROVIDER_PARTY_TYPES: dict[str, str] = {
    "vendor": "VENDOR_CORPORATE",
    "vendor_corporate": "VENDOR_CORPORATE",
    "vendor_individual": "VENDOR_INDIVIDUAL",
    "service_provider": "SERVICE_PROVIDER",
    "skill_service_provider": "SERVICE_PROVIDER",
    "consultant": "CONSULTANT",
    "sub_contractor": "SUB_CONTRACTOR",
    "beneficiary": "BENEFICIARY",
    "entity": "BENEFICIARY",
}

VENDOR_PARTY_TYPES = frozenset({"VENDOR_CORPORATE", "VENDOR_INDIVIDUAL"})


def provider_party_type(role: str | None, default: str = "VENDOR_CORPORATE") -> str:
    return _PROVIDER_PARTY_TYPES.get(_norm(role), default)


def buyer_party_type(role: str | None) -> str:
    party = _PROVIDER_PARTY_TYPES.get(_norm(role))
    if party in VENDOR_PARTY_TYPES:
        return party
    return "BENEFICIARY"


# ---------------------------------------------------------------------------
# Payment-mode compatibility
# ---------------------------------------------------------------------------

def payment_compatibility(opportunity_mode: str | None, offering_mode: str | None) -> str:
    """Explanatory note only; never affects the score."""
    opp = (opportunity_mode or "CASH").upper()
    off = (offering_mode or "CASH").upper()
    if opp == off:
        return f"Payment modes align ({opp})"
    if "HYBRID" in (opp, off):
        return f"Compatible via hybrid settlement ({opp} / {off})"
    return f"Payment modes differ ({opp} vs {off}); negotiation required"
