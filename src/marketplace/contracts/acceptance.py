"""Proposal acceptance gate and version selection for contract generation."""

from __future__ import annotations

import logging
from typing import Literal

from src.marketplace.errors import NotFound, PreconditionFailed
from src.marketplace.models import PaymentTerms, Proposal, ProposalVersion

logger = logging.getLogger(__name__)

VersionSource = Literal["requested", "mutual", "agreed", "latest"]

CONTRACTABLE_STATUS = "FINAL_ACCEPTED"


def agreed_version(proposal: Proposal) -> int | None:
    """The version both sides accepted, if they agree on one."""
    acc = proposal.acceptance
    if acc.mutually_accepted_version is not None:
        return acc.mutually_accepted_version
    if (
        acc.owner_accepted_version is not None
        and acc.owner_accepted_version == acc.other_party_accepted_version
    ):
        return acc.owner_accepted_version
    return None


def is_contract_eligible(proposal: Proposal) -> bool:
    # AWARDED is folded into FINAL_ACCEPTED when the proposal is parsed.
    if proposal.status != CONTRACTABLE_STATUS:
        return False
    return agreed_version(proposal) is not None


def require_eligible(proposal: Proposal) -> None:
    if proposal.status != CONTRACTABLE_STATUS:
        raise PreconditionFailed(
            f"Proposal {proposal.id} is {proposal.status}; it must be FINAL_ACCEPTED",
        )
    if agreed_version(proposal) is None:
        acc = proposal.acceptance
        raise PreconditionFailed(
            f"Proposal {proposal.id} has no mutually accepted version "
            f"(owner={acc.owner_accepted_version}, "
            f"other party={acc.other_party_accepted_version})",
        )


def resolve_version(
    proposal: Proposal, requested: int | None = None,
) -> tuple[int, VersionSource]:
    """Pick the version to contract and say where it came from.

    An explicit request wins, then the mutually accepted version, then a
    version both per-party markers agree on.  A request for a version other
    than the accepted one, and the fall back to the latest version, are
    logged as anomalies; ``version_warnings`` phrases them for callers.
    """
    if requested is not None:
        if proposal.versions and proposal.get_version(requested) is None:
            raise NotFound(f"Proposal {proposal.id} has no version {requested}")
        agreed = agreed_version(proposal)
        if agreed is not None and agreed != requested:
            logger.warning(
                "Proposal %s: contracting requested v%d, not accepted v%d",
                proposal.id, requested, agreed,
            )
        return requested, "requested"

    acc = proposal.acceptance
    if acc.mutually_accepted_version is not None:
        return acc.mutually_accepted_version, "mutual"

    agreed = agreed_version(proposal)
    if agreed is not None:
        return agreed, "agreed"

    latest = proposal.latest_version_number()
    logger.warning(
        "Proposal %s has no mutually accepted version; falling back to latest v%d",
        proposal.id, latest,
    )
    return latest, "latest"


def version_warnings(proposal: Proposal, number: int, source: VersionSource) -> list[str]:
    if source == "latest":
        return [f"Proposal {proposal.id} has no mutually accepted version; using latest v{number}"]
    if source == "requested":
        agreed = agreed_version(proposal)
        if agreed is not None and agreed != number:
            return [
                f"Proposal {proposal.id} v{number} was requested but v{agreed} "
                f"is the mutually accepted version",
            ]
    return []


def version_payment_terms(
    pv: ProposalVersion | None, number: int, fallback: PaymentTerms | None,
) -> tuple[PaymentTerms, list[str]]:
    """Payment terms from the contracted version; fallbacks come with a warning."""
    if pv is not None and pv.payment_terms is not None:
        return pv.payment_terms, []
    if fallback is not None:
        msg = f"Proposal version {number} defines no payment terms; using opportunity defaults"
        logger.warning(msg)
        return fallback, [msg]
    msg = f"No payment terms on proposal version {number} or opportunity; defaulted to CASH"
    logger.warning(msg)
    return PaymentTerms(), [msg]
