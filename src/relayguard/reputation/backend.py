"""Durable storage for actor reputations.

``ActorReputationBackend`` is the seam the in-memory store writes through
to. ``RedisReputationBackend`` keeps one JSON document per actor under
``relayguard:reputation:{actor_id}``.
"""

from __future__ import annotations

import logging
from typing import Protocol
from typing import runtime_checkable

from pydantic import ValidationError
from redis.asyncio import Redis  # type: ignore[import-untyped]

from relayguard.models import Reputation

logger = logging.getLogger(__name__)

_PREFIX = "relayguard"
_REPUTATION_KEY = f"{_PREFIX}:reputation"


@runtime_checkable
class ActorReputationBackend(Protocol):
    """Persistence for ``Reputation`` records beyond process memory."""

    async def load(self, actor_id: str) -> Reputation | None: ...

    async def save(self, reputation: Reputation) -> None: ...

    async def delete(self, actor_id: str) -> None: ...


class RedisReputationBackend:
    """Redis-backed reputation persistence."""

    def __init__(self, redis: Redis, *, ttl: int | None = None) -> None:
        self._redis = redis
        self._ttl = ttl

    async def load(self, actor_id: str) -> Reputation | None:
        data = await self._redis.get(f"{_REPUTATION_KEY}:{actor_id}")
        if data is None:
            return None
        try:
            return Reputation.model_validate_json(data)
        except ValidationError:
            logger.warning("Discarding malformed reputation record for %s", actor_id)
            return None

    async def save(self, reputation: Reputation) -> None:
        await self._redis.set(
            f"{_REPUTATION_KEY}:{reputation.actor_id}",
            reputation.model_dump_json(),
            ex=self._ttl,
        )

    async def delete(self, actor_id: str) -> None:
        await self._redis.delete(f"{_REPUTATION_KEY}:{actor_id}")

    async def close(self) -> None:
        await self._redis.aclose()
