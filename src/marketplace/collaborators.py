"""Optional collaborators injected into the services.

Each interface documents the value used when the collaborator is absent, so
services never check whether a dependency exists at runtime.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Protocol

from src.marketplace.models import EvaluationAggregate, Notification

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReputationProvider(Protocol):
    def get_score(self, user_id: str) -> float | None:
        """0-100 score, or None when unknown (treated as neutral 50)."""


class EvaluationProvider(Protocol):
    def get_aggregate(self, provider_id: str) -> EvaluationAggregate | None:
        """Aggregate rating, or None when no evaluations exist (no blend)."""


class NotificationSink(Protocol):
    def publish(self, notification: Notification) -> None:
        ...


class NullReputation:
    def get_score(self, user_id: str) -> float | None:
        return None


class NullEvaluations:
    def get_aggregate(self, provider_id: str) -> EvaluationAggregate | None:
        return None


class StaticReputation:
    def __init__(self, scores: dict[str, float]) -> None:
        self._scores = dict(scores)

    def get_score(self, user_id: str) -> float | None:
        return self._scores.get(user_id)


class StaticEvaluations:
    def __init__(self, aggregates: list[EvaluationAggregate]) -> None:
        self._by_provider = {a.provider_id: a for a in aggregates}

    def get_aggregate(self, provider_id: str) -> EvaluationAggregate | None:
        agg = self._by_provider.get(provider_id)
        if agg is None or agg.count == 0:
            return None
        return agg


class OutboxNotificationSink:
    """Collects notifications in memory for a caller to drain and deliver."""

    def __init__(self, maxlen: int | None = None) -> None:
        self._queue: deque[Notification] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def publish(self, notification: Notification) -> None:
        with self._lock:
            self._queue.append(notification)
        logger.debug("Queued %s notification for %s", notification.type, notification.user_id)

    def drain(self) -> list[Notification]:
        with self._lock:
            items = list(self._queue)
            self._queue.clear()
        return items

    def __len__(self) -> int:
        return len(self._queue)
