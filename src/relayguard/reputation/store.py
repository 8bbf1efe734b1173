"""Per-actor reputation store.

Records live in a process-local map and are replaced wholesale on every
update, so readers only ever hold immutable snapshots. Each actor has its
own ``asyncio.Lock``; unrelated actors never wait on each other.

Update rule after a decision with ``n`` violations and spam score ``s``::

    violation_count  += n
    spam_score        = (1 - a) * spam_score  + a * s
    trust_score       = (1 - a) * trust_score + a * (0 if n else 1)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from relayguard.config import ReputationConfig
from relayguard.models import Reputation
from relayguard.reputation.backend import ActorReputationBackend

logger = logging.getLogger(__name__)


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


class ReputationStore:
    """Owns every ``Reputation``; mutation only through ``record_outcome``/``reset``."""

    def __init__(
        self,
        config: ReputationConfig | None = None,
        *,
        backend: ActorReputationBackend | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._config = config or ReputationConfig()
        self._backend = backend
        self._clock = clock or time.time
        self._records: dict[str, Reputation] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, actor_id: str) -> asyncio.Lock:
        lock = self._locks.get(actor_id)
        if lock is None:
            lock = self._locks.setdefault(actor_id, asyncio.Lock())
        return lock

    def _initial(self, actor_id: str) -> Reputation:
        return Reputation(
            actor_id=actor_id,
            spam_score=self._config.initial_spam_score,
            trust_score=self._config.initial_trust_score,
        )

    # -- read --

    async def get(self, actor_id: str) -> Reputation:
        """Return the actor's reputation, creating it on first reference."""
        record = self._records.get(actor_id)
        if record is not None and not self._expired(record):
            return record
        async with self._lock_for(actor_id):
            return await self._load_locked(actor_id)

    async def _load_locked(self, actor_id: str) -> Reputation:
        record = self._records.get(actor_id)
        if record is None and self._backend is not None:
            record = await self._backend.load(actor_id)
        if record is None:
            record = self._initial(actor_id)
        elif self._expired(record):
            logger.info("Violation history expired for actor %s", actor_id)
            record = record.model_copy(update={"violation_count": 0, "last_violation_at": None})
        self._records[actor_id] = record
        return record

    def _expired(self, record: Reputation) -> bool:
        ttl = self._config.violation_ttl_seconds
        if ttl is None or record.last_violation_at is None:
            return False
        return record.last_violation_at < self._clock() - ttl

    def snapshot(self) -> dict[str, Reputation]:
        """Return the currently cached records (test/admin helper)."""
        return dict(self._records)

    # -- write --

    async def record_outcome(
        self,
        actor_id: str,
        *,
        violations: int,
        spam_score: float | None = None,
    ) -> Reputation:
        """Fold one decision into the actor's reputation and return the new record."""
        if violations < 0:
            raise ValueError("violations must be >= 0")
        alpha = self._config.blend_factor
        async with self._lock_for(actor_id):
            current = await self._load_locked(actor_id)
            observed_spam = current.spam_score if spam_score is None else spam_score
            observed_trust = 0.0 if violations else 1.0
            updated = Reputation(
                actor_id=actor_id,
                violation_count=current.violation_count + violations,
                spam_score=_clamp((1 - alpha) * current.spam_score + alpha * observed_spam),
                trust_score=_clamp((1 - alpha) * current.trust_score + alpha * observed_trust),
                last_violation_at=(
                    int(self._clock()) if violations else current.last_violation_at
                ),
            )
            self._records[actor_id] = updated
            if self._backend is not None:
                try:
                    await self._backend.save(updated)
                except Exception:
                    logger.exception("Failed to persist reputation for actor %s", actor_id)
        return updated

    async def reset(self, actor_id: str) -> Reputation:
        """Explicitly restore the actor to a first-seen record."""
        async with self._lock_for(actor_id):
            record = self._initial(actor_id)
            self._records[actor_id] = record
            if self._backend is not None:
                await self._backend.save(record)
        return record
