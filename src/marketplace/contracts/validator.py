"""Contract business rules: creation checks, sub-contract rules, status table."""

from __future__ import annotations

from src.marketplace.domain_model import MULTI_PARTY_CONTRACT_TYPE_SET, VENDOR_PARTY_TYPES
from src.marketplace.errors import PreconditionFailed, StateTransitionInvalid
from src.marketplace.models import Contract

STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "DRAFT": ("SENT", "TERMINATED"),
    "SENT": ("SIGNED", "DRAFT", "TERMINATED"),
    "SIGNED": ("ACTIVE", "TERMINATED"),
    "ACTIVE": ("COMPLETED", "TERMINATED"),
    "COMPLETED": (),
    "TERMINATED": (),
}

TERMINAL_STATUSES = frozenset(s for s, targets in STATUS_TRANSITIONS.items() if not targets)

BUYER_PARTY_TYPES = frozenset({"BENEFICIARY", "VENDOR_CORPORATE", "VENDOR_INDIVIDUAL"})
PROVIDER_PARTY_TYPES = frozenset({
    "VENDOR_CORPORATE",
    "VENDOR_INDIVIDUAL",
    "SERVICE_PROVIDER",
    "CONSULTANT",
    "SUB_CONTRACTOR",
})

_SUB_CONTRACT_PARENTS = ("PROJECT_CONTRACT", "MEGA_PROJECT_CONTRACT")


def can_transition(current: str, target: str) -> bool:
    return target in STATUS_TRANSITIONS.get(current, ())


def check_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise StateTransitionInvalid(f"Cannot transition from {current} to {target}")


def sub_contract_errors(contract: Contract, parent: Contract | None) -> list[str]:
    errors = []
    if contract.provider_party_type != "SUB_CONTRACTOR":
        errors.append("SubContract must have SUB_CONTRACTOR as provider")
    if contract.buyer_party_type not in VENDOR_PARTY_TYPES:
        errors.append("SubContract buyer must be a vendor")
    if not contract.parent_contract_id:
        errors.append("SubContract must have parent_contract_id")
    elif parent is None:
        errors.append("Parent contract not found")
    else:
        if parent.contract_type not in _SUB_CONTRACT_PARENTS:
            errors.append("Parent contract must be PROJECT_CONTRACT or MEGA_PROJECT_CONTRACT")
        if parent.provider_party_type not in VENDOR_PARTY_TYPES:
            errors.append("Parent contract provider must be a vendor")
        elif contract.buyer_party_id != parent.provider_party_id:
            errors.append("SubContract buyer must be the parent contract's vendor")
    return errors


def service_provider_errors(contract: Contract) -> list[str]:
    errors = []
    if contract.scope_type in ("PROJECT", "MEGA_PROJECT"):
        errors.append("ServiceProvider cannot contract for Projects/MegaProjects directly")
    if contract.contract_type != "SERVICE_CONTRACT":
        errors.append("ServiceProvider contracts must be SERVICE_CONTRACT type")
    return errors


def creation_errors(contract: Contract, parent: Contract | None = None) -> list[str]:
    """Every rule violation for a contract about to be stored."""
    errors: list[str] = []

    if not contract.scope_id:
        errors.append("scope_id is required")

    if contract.is_multi_party:
        if contract.contract_type not in MULTI_PARTY_CONTRACT_TYPE_SET:
            errors.append(f"{contract.contract_type} cannot be multi-party")
    else:
        if contract.contract_type in MULTI_PARTY_CONTRACT_TYPE_SET:
            errors.append(f"{contract.contract_type} requires parties")
        if not contract.buyer_party_id:
            errors.append("buyer_party_id is required")
        if contract.buyer_party_type not in BUYER_PARTY_TYPES:
            errors.append(f"Invalid buyer_party_type: {contract.buyer_party_type}")
        if not contract.provider_party_id:
            errors.append("provider_party_id is required")
        if contract.provider_party_type not in PROVIDER_PARTY_TYPES:
            errors.append(f"Invalid provider_party_type: {contract.provider_party_type}")
        if contract.buyer_party_id and contract.buyer_party_id == contract.provider_party_id:
            errors.append("buyer and provider must be different parties")

    if contract.contract_type == "SUB_CONTRACT":
        errors.extend(sub_contract_errors(contract, parent))
    elif contract.parent_contract_id:
        errors.append("parent_contract_id should only be set for SUB_CONTRACT")

    if contract.provider_party_type == "SERVICE_PROVIDER":
        errors.extend(service_provider_errors(contract))

    if contract.start_date and contract.end_date and contract.end_date <= contract.start_date:
        errors.append("end_date must be after start_date")

    pricing = contract.terms.get("pricing")
    if isinstance(pricing, dict) and not pricing.get("currency"):
        errors.append("terms.pricing.currency is required")

    return errors


def validate_creation(contract: Contract, parent: Contract | None = None) -> None:
    errors = creation_errors(contract, parent)
    if errors:
        raise PreconditionFailed("Contract validation failed", errors=errors)


def validate_signer(contract: Contract, signer_id: str) -> None:
    if not signer_id:
        raise PreconditionFailed("Signer ID is required")
    if not contract.involves(signer_id):
        raise PreconditionFailed("Signer must be a party to the contract")
    allowed = ("SENT",) if contract.is_multi_party else ("DRAFT", "SENT")
    if contract.status not in allowed:
        raise StateTransitionInvalid(
            f"Contract must be in {' or '.join(allowed)} status to be signed. "
            f"Current status: {contract.status}",
        )
