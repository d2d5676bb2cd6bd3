"""Share-percentage helpers: split strings, equal division, boundary validation."""

from __future__ import annotations

import math

from pydantic import TypeAdapter, ValidationError

from src.marketplace.errors import PreconditionFailed
from src.marketplace.models import PartyShare, shares_sum_to_hundred

_PARTY_LIST = TypeAdapter(list[PartyShare])


def parse_split(text: str | None) -> list[float] | None:
    """Parse a "60-40" / "40-30-30" style split into percentages, or None."""
    if not text:
        return None
    parts = [p.strip().rstrip("%") for p in text.split("-")]
    try:
        values = [float(p) for p in parts if p]
    except ValueError:
        return None
    if len(values) < 2 or any(v < 0 for v in values):
        return None
    return values


def equal_shares(count: int, total: float = 100.0) -> list[float]:
    """Equal split of ``total`` rounded to 2 decimals; the last party absorbs the remainder."""
    if count <= 0:
        return []
    base = math.floor(total / count * 100) / 100
    shares = [base] * count
    shares[-1] = round(total - base * (count - 1), 2)
    return shares


def validate_parties(raw: list[PartyShare] | list[dict]) -> list[PartyShare]:
    """Validate caller-supplied parties; raise PreconditionFailed on any violation."""
    try:
        parties = _PARTY_LIST.validate_python(raw)
    except ValidationError as exc:
        raise PreconditionFailed(
            "Invalid party data",
            errors=[f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()],
        ) from exc

    if len(parties) < 2:
        raise PreconditionFailed("Multi-party contract requires at least 2 parties")
    ids = [p.party_id for p in parties]
    if len(set(ids)) != len(ids):
        raise PreconditionFailed("Each party may appear only once")
    total = math.fsum(p.share for p in parties)
    if not shares_sum_to_hundred([p.share for p in parties]):
        raise PreconditionFailed(f"Party shares must sum to 100% (current: {total:g}%)")
    return parties
