"""Inverted skill index over offerings.

Postings keyed by normalized skill tag narrow the candidate set before
scoring.  Skills are the only postings kept because the skill gate is the
only hard exclusion in the kernel; category, location and availability earn
partial credit and cannot remove a candidate.  The index only ever narrows,
never changes a score, and an empty lookup means "scan everything".
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict

from src.marketplace.models import Offering, Opportunity

logger = logging.getLogger(__name__)


def _key(value: str | None) -> str:
    return (value or "").strip().lower()


def _fingerprint(offering: Offering) -> tuple[str, ...]:
    return tuple(sorted({_key(s) for s in offering.skills if _key(s)}))


class CandidateIndex:
    def __init__(self) -> None:
        self._skills: dict[str, set[str]] = defaultdict(set)
        self._fingerprints: dict[str, tuple[str, ...]] = {}
        self._lock = threading.RLock()

    def add(self, offering: Offering) -> None:
        with self._lock:
            self.remove(offering.id)
            fingerprint = _fingerprint(offering)
            self._fingerprints[offering.id] = fingerprint
            for skill in fingerprint:
                self._skills[skill].add(offering.id)

    def remove(self, offering_id: str) -> None:
        with self._lock:
            for skill in self._fingerprints.pop(offering_id, ()):
                ids = self._skills.get(skill)
                if ids is not None:
                    ids.discard(offering_id)
                    if not ids:
                        del self._skills[skill]

    def rebuild(self, offerings: list[Offering]) -> None:
        with self._lock:
            self._skills.clear()
            self._fingerprints.clear()
            for offering in offerings:
                if offering.is_active:
                    self.add(offering)
        logger.info("Candidate index rebuilt: %d offerings", len(self._fingerprints))

    def sync(self, offerings: list[Offering]) -> int:
        """Bring postings in line with the given offerings; returns entries touched.

        Offerings never seen or whose skills changed are re-posted, and
        offerings that are gone or inactive are dropped.
        """
        touched = 0
        with self._lock:
            active = {o.id: o for o in offerings if o.is_active}
            for offering_id in [i for i in self._fingerprints if i not in active]:
                self.remove(offering_id)
                touched += 1
            for offering_id, offering in active.items():
                if self._fingerprints.get(offering_id) != _fingerprint(offering):
                    self.add(offering)
                    touched += 1
        if touched:
            logger.debug("Candidate index synced %d offerings", touched)
        return touched

    def by_skills(self, required: list[str]) -> set[str]:
        """Offerings whose tags substring-match any required tag, either way round."""
        wanted = [_key(r) for r in required if _key(r)]
        hits: set[str] = set()
        with self._lock:
            for skill, ids in self._skills.items():
                if any(w in skill or skill in w for w in wanted):
                    hits |= ids
        return hits

    def candidates_for(self, opportunity: Opportunity) -> set[str]:
        if not opportunity.required_skills:
            return set()
        return self.by_skills(opportunity.required_skills)

    def __contains__(self, offering_id: object) -> bool:
        return offering_id in self._fingerprints

    def __len__(self) -> int:
        return len(self._fingerprints)
