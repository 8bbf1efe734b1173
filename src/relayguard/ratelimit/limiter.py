"""Multi-dimensional sliding-window rate limiter.

Each ``(identifier, type)`` pair owns an independent bucket holding one
time-ordered deque of ``(timestamp, cost)`` per dimension. On every call
the deque for the requested dimension is pruned of entries at or before
``now - window`` before the capacity check.

Buckets are spread over lock stripes by key hash so that callers working
on unrelated identifiers never serialize on one global lock.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from threading import Lock

from pydantic import BaseModel

from relayguard.config import RateLimiterConfig
from relayguard.errors import RateLimiterConfigError

logger = logging.getLogger(__name__)


class LimitType(str, Enum):
    IP = "ip"
    ACTOR = "actor"
    TENANT = "tenant"


class Dimension(str, Enum):
    REQUESTS = "requests"
    EVENTS = "events"
    BYTES = "bytes"


SLIDING_WINDOW = "sliding_window"
# Declared by the relay admin API; accepted but enforced as a sliding window.
_UNIMPLEMENTED_STRATEGIES = frozenset({"fixed_window", "token_bucket"})


@dataclass(frozen=True)
class RateLimitRule:
    """Limits configured for one identifier."""

    type: LimitType = LimitType.IP
    window: int = 3600
    max_requests: int | None = 1000
    max_events: int | None = 500
    max_bytes: int | None = 10 * 1024 * 1024
    strategy: str = SLIDING_WINDOW

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "type", LimitType(self.type))
        except ValueError as exc:
            raise RateLimiterConfigError(f"Unknown limit type: {self.type!r}") from exc
        if self.window <= 0:
            raise RateLimiterConfigError("window must be > 0")
        for name in ("max_requests", "max_events", "max_bytes"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise RateLimiterConfigError(f"{name} must be >= 0")
        if self.strategy != SLIDING_WINDOW and self.strategy not in _UNIMPLEMENTED_STRATEGIES:
            raise RateLimiterConfigError(f"Unknown rate limit strategy: {self.strategy!r}")

    def max_for(self, dimension: Dimension) -> int | None:
        return {
            Dimension.REQUESTS: self.max_requests,
            Dimension.EVENTS: self.max_events,
            Dimension.BYTES: self.max_bytes,
        }[dimension]


class RateLimitDecision(BaseModel):
    """Result of one ``allow`` call. ``remaining`` is None when unlimited."""

    model_config = {"frozen": True}

    allowed: bool
    remaining: int | None = None
    reset_at: float | None = None
    retry_after: float | None = None


@dataclass
class RateLimitBucket:
    identifier: str
    type: LimitType
    rule: RateLimitRule
    entries: dict[Dimension, deque[tuple[float, int]]] = field(default_factory=dict)

    @property
    def window_seconds(self) -> int:
        return self.rule.window

    @property
    def max_by_dimension(self) -> dict[Dimension, int]:
        return {d: m for d in Dimension if (m := self.rule.max_for(d)) is not None}


@dataclass
class _Shard:
    lock: Lock = field(default_factory=Lock)
    buckets: dict[tuple[str, LimitType], RateLimitBucket] = field(default_factory=dict)


class RateLimiter:
    """Sliding-window limiter keyed by identifier and limit type."""

    def __init__(
        self,
        config: RateLimiterConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._config = config or RateLimiterConfig()
        if self._config.shards < 1:
            raise RateLimiterConfigError("shards must be >= 1")
        self._clock = clock or time.time
        self._shards = [_Shard() for _ in range(self._config.shards)]

    def _shard(self, key: tuple[str, LimitType]) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    # -- configuration --

    def configure(
        self,
        identifier: str,
        rule: RateLimitRule,
        *,
        keep_entries: bool = False,
    ) -> RateLimitBucket:
        """Install (or replace) the limits for *identifier*.

        Counters are reset unless *keep_entries* is set, in which case the
        usage already recorded for an existing bucket carries over.
        """
        if rule.strategy in _UNIMPLEMENTED_STRATEGIES:
            logger.warning(
                "Rate limit strategy %r is not implemented; enforcing %s for %s",
                rule.strategy,
                SLIDING_WINDOW,
                identifier,
            )
        key = (identifier, rule.type)
        bucket = RateLimitBucket(identifier=identifier, type=rule.type, rule=rule)
        shard = self._shard(key)
        with shard.lock:
            previous = shard.buckets.get(key)
            if keep_entries and previous is not None:
                bucket.entries = previous.entries
            shard.buckets[key] = bucket
        return bucket

    def reset(self, identifier: str, type: LimitType | str | None = None) -> int:
        """Drop the bucket(s) for *identifier*; return how many were removed."""
        types = list(LimitType) if type is None else [LimitType(type)]
        removed = 0
        for limit_type in types:
            key = (identifier, limit_type)
            shard = self._shard(key)
            with shard.lock:
                if shard.buckets.pop(key, None) is not None:
                    removed += 1
        return removed

    def rule_for(self, identifier: str, type: LimitType | str) -> RateLimitRule | None:
        key = (identifier, LimitType(type))
        shard = self._shard(key)
        with shard.lock:
            bucket = shard.buckets.get(key)
            return bucket.rule if bucket is not None else None

    # -- enforcement --

    def allow(
        self,
        identifier: str,
        type: LimitType | str,
        dimension: Dimension | str = Dimension.REQUESTS,
        cost: int = 1,
    ) -> RateLimitDecision:
        """Check and, when accepted, consume capacity for one call."""
        if cost < 0:
            raise ValueError("cost must be >= 0")
        dimension = Dimension(dimension)
        key = (identifier, LimitType(type))
        shard = self._shard(key)
        now = self._clock()

        with shard.lock:
            bucket = shard.buckets.get(key)
            if bucket is None:
                return RateLimitDecision(allowed=True)
            maximum = bucket.rule.max_for(dimension)
            if maximum is None:
                return RateLimitDecision(allowed=True)

            window = bucket.rule.window
            entries = bucket.entries.setdefault(dimension, deque())
            cutoff = now - window
            while entries and entries[0][0] <= cutoff:
                entries.popleft()

            if dimension is Dimension.BYTES:
                current = sum(c for _, c in entries)
            else:
                current = len(entries)

            if current + cost > maximum:
                oldest = entries[0][0] if entries else None
                return RateLimitDecision(
                    allowed=False,
                    remaining=max(maximum - current, 0),
                    reset_at=oldest + window if oldest is not None else None,
                    retry_after=oldest + window - now if oldest is not None else None,
                )

            entries.append((now, cost))
            if dimension is Dimension.BYTES:
                remaining = maximum - current - cost
            else:
                # count dimensions record one entry per call whatever the cost
                remaining = maximum - len(entries)
            return RateLimitDecision(
                allowed=True,
                remaining=remaining,
                reset_at=entries[0][0] + window,
            )
