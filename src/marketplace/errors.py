"""Error taxonomy for the orchestration layer.

Scoring never raises.  Services raise these internally and convert them to
``ContractResult`` values at their public boundary.
"""

from __future__ import annotations


class MarketplaceError(Exception):
    code = "ERROR"
    retryable = False

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])


class NotFound(MarketplaceError):
    code = "NOT_FOUND"


class PreconditionFailed(MarketplaceError):
    code = "PRECONDITION_FAILED"


class StateTransitionInvalid(MarketplaceError):
    code = "STATE_TRANSITION_INVALID"


class StoreUnavailable(MarketplaceError):
    code = "STORE_UNAVAILABLE"
    retryable = True
