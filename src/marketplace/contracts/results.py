"""Boundary adapter: typed failures in, ``ContractResult`` values out."""

from __future__ import annotations

import functools
import logging
from typing import Callable

from pydantic import ValidationError

from src.marketplace.errors import MarketplaceError, PreconditionFailed
from src.marketplace.models import ContractResult

logger = logging.getLogger(__name__)


def returns_result(fn: Callable[..., ContractResult]) -> Callable[..., ContractResult]:
    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> ContractResult:
        try:
            return fn(*args, **kwargs)
        except MarketplaceError as exc:
            logger.info("%s failed: [%s] %s %s", fn.__name__, exc.code, exc.message, exc.errors)
            return ContractResult.failure(exc)
        except ValidationError as exc:
            failure = PreconditionFailed(
                "Invalid contract data", errors=[e["msg"] for e in exc.errors()],
            )
            logger.info("%s failed validation: %s", fn.__name__, failure.errors)
            return ContractResult.failure(failure)
    return wrapper
