"""Spam detection — an ensemble of independent heuristic filters.

Each filter returns its own capped contribution; the detector sums the
contributions (no averaging), caps the total at 1.0, and flags the event
when the total exceeds the configured threshold.

Filters are selected from an ordered strategy table keyed by name, so
callers can swap or extend the ensemble without touching the detector.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections import deque
from collections import OrderedDict
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from threading import Lock
from typing import Protocol
from typing import runtime_checkable

from relayguard.config import SpamConfig
from relayguard.errors import SpamDetectionError
from relayguard.models import ContentEvent
from relayguard.models import Reputation
from relayguard.models import SpamReason
from relayguard.models import SpamVerdict
from relayguard.reputation import ReputationStore
from relayguard.rules import RuleSet

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def jaccard_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the lower-cased whitespace word sets."""
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


# ---------------------------------------------------------------------------
# Filter contract
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilterContext:
    """Read-only inputs shared by all filters for one check."""

    reputation: Reputation
    now: float


@dataclass(frozen=True)
class FilterResult:
    score: float = 0.0
    reason: str = ""
    flagged: bool = False


_CLEAN = FilterResult()


@runtime_checkable
class SpamFilter(Protocol):
    """A single spam heuristic."""

    name: str

    def evaluate(self, event: ContentEvent, context: FilterContext) -> FilterResult: ...


class _ActorCache(OrderedDict):
    """LRU map of actor id to per-actor filter state."""

    def __init__(self, max_actors: int) -> None:
        super().__init__()
        self._max_actors = max_actors

    def touch(self, actor_id: str, value) -> None:
        self[actor_id] = value
        self.move_to_end(actor_id)
        while len(self) > self._max_actors:
            self.popitem(last=False)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class FrequencyFilter:
    """Flags actors posting more than N events in the trailing window."""

    name = "frequency"

    def __init__(self, config: SpamConfig) -> None:
        self._config = config
        self._lock = Lock()
        self._posts: _ActorCache = _ActorCache(config.actor_cache_size)

    def evaluate(self, event: ContentEvent, context: FilterContext) -> FilterResult:
        cfg = self._config
        cutoff = context.now - cfg.frequency_window_seconds
        with self._lock:
            posts: deque[float] = self._posts.get(event.actor_id) or deque()
            while posts and posts[0] <= cutoff:
                posts.popleft()
            if event.created_at > cutoff:
                posts.append(event.created_at)
            self._posts.touch(event.actor_id, posts)
            count = len(posts)

        if count > cfg.frequency_max_posts:
            return FilterResult(
                score=cfg.frequency_score,
                reason="excessive posting frequency",
                flagged=True,
            )
        return _CLEAN


class SimilarityFilter:
    """Flags an actor repeating near-identical content back to back."""

    name = "similarity"

    def __init__(self, config: SpamConfig) -> None:
        self._config = config
        self._lock = Lock()
        self._last_content: _ActorCache = _ActorCache(config.actor_cache_size)

    def evaluate(self, event: ContentEvent, context: FilterContext) -> FilterResult:
        cfg = self._config
        with self._lock:
            previous = self._last_content.get(event.actor_id)
            self._last_content.touch(event.actor_id, event.content)

        if previous is None:
            return _CLEAN
        similarity = jaccard_similarity(event.content, previous)
        if similarity > cfg.similarity_threshold:
            return FilterResult(
                score=cfg.similarity_score,
                reason="duplicate or very similar content detected",
                flagged=True,
            )
        return _CLEAN


_PUNCTUATION_RE = re.compile(r"[!?.]")


class BehavioralFilter:
    """Shouting, punctuation storms and character runs."""

    name = "behavioral"

    def __init__(self, config: SpamConfig) -> None:
        self._config = config
        self._repeat_re = re.compile(r"(.)\1{%d,}" % (config.repeat_run_length - 1))

    def evaluate(self, event: ContentEvent, context: FilterContext) -> FilterResult:
        cfg = self._config
        content = event.content
        score = 0.0
        reasons: list[str] = []

        if content == content.upper() and len(content) > cfg.caps_min_length:
            score += cfg.caps_score
            reasons.append("excessive capitalization")
        if len(_PUNCTUATION_RE.findall(content)) > cfg.punctuation_max:
            score += cfg.punctuation_score
            reasons.append("excessive punctuation")
        if self._repeat_re.search(content):
            score += cfg.repeat_score
            reasons.append("repetitive characters")

        if not reasons:
            return _CLEAN
        return FilterResult(score=score, reason=", ".join(reasons), flagged=score > 0.5)


class KeywordFilter:
    """Scores the rule set's spam-heuristic patterns like the content scanner."""

    name = "keywords"

    def __init__(self, rules: RuleSet, *, saturation_matches: int = 3) -> None:
        self._rules = rules
        self._saturation = saturation_matches

    def evaluate(self, event: ContentEvent, context: FilterContext) -> FilterResult:
        score = 0.0
        hits: list[str] = []
        for rule in self._rules.spam_heuristics():
            match = rule.evaluate(event)
            if match is None:
                continue
            score += rule.severity.weight * min(match.match_count / self._saturation, 1.0)
            hits.append(rule.description.lower())
        if not hits:
            return _CLEAN
        return FilterResult(score=min(score, 1.0), reason="; ".join(hits), flagged=True)


class ReputationFilter:
    """Penalizes actors whose stored spam score is already high."""

    name = "reputation"

    def __init__(self, config: SpamConfig) -> None:
        self._config = config

    def evaluate(self, event: ContentEvent, context: FilterContext) -> FilterResult:
        spam_score = context.reputation.spam_score
        if spam_score > self._config.reputation_floor:
            return FilterResult(
                score=spam_score * self._config.reputation_weight,
                reason="low user reputation",
                flagged=True,
            )
        return _CLEAN


# ---------------------------------------------------------------------------
# Recent events window (duplicate-content check)
# ---------------------------------------------------------------------------


@runtime_checkable
class RecentEventSource(Protocol):
    """Recent events of a kind, e.g. backed by the client's local cache."""

    async def recent(self, *, kind: int, since: float, limit: int) -> Sequence[ContentEvent]: ...

    async def record(self, event: ContentEvent) -> None: ...


class InMemoryRecentEvents:
    """Bounded in-process window of the most recently checked events."""

    def __init__(self, max_size: int = 1000) -> None:
        self._events: deque[ContentEvent] = deque(maxlen=max_size)
        self._lock = Lock()

    async def recent(self, *, kind: int, since: float, limit: int) -> list[ContentEvent]:
        with self._lock:
            snapshot = list(self._events)
        matches = [e for e in reversed(snapshot) if e.kind == kind and e.created_at >= since]
        return matches[:limit]

    async def record(self, event: ContentEvent) -> None:
        with self._lock:
            self._events.append(event)


# ---------------------------------------------------------------------------
# SpamDetector
# ---------------------------------------------------------------------------

_DUPLICATE_LOOKBACK = 100


class SpamDetector:
    """Runs the filter ensemble and combines the contributions."""

    def __init__(
        self,
        reputation_store: ReputationStore,
        rules: RuleSet | None = None,
        config: SpamConfig | None = None,
        *,
        filters: Sequence[SpamFilter] | None = None,
        recent_events: RecentEventSource | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._config = config or SpamConfig()
        self._reputation = reputation_store
        self._clock = clock or time.time
        self._recent = recent_events or InMemoryRecentEvents(
            self._config.duplicate_window_size
        )
        if filters is None:
            filters = default_filters(rules or RuleSet.default(), self._config)
        self._filters: dict[str, SpamFilter] = {f.name: f for f in filters}

    @property
    def threshold(self) -> float:
        return self._config.threshold

    @property
    def filter_names(self) -> list[str]:
        return list(self._filters)

    async def check(self, event: ContentEvent) -> SpamVerdict:
        """Score *event* across all filters and the duplicate-content window."""
        reputation = await self._reputation.get(event.actor_id)
        context = FilterContext(reputation=reputation, now=self._clock())

        reasons: list[SpamReason] = []
        for name, spam_filter in self._filters.items():
            try:
                result = spam_filter.evaluate(event, context)
            except Exception as exc:
                raise SpamDetectionError(f"Spam filter {name!r} failed: {exc}") from exc
            if result.score > 0:
                reasons.append(SpamReason(filter=name, reason=result.reason, score=result.score))

        duplicate = await self._duplicate_score(event, context.now)
        if duplicate > 0:
            reasons.append(
                SpamReason(
                    filter="duplicate_content",
                    reason="duplicate or similar content detected",
                    score=duplicate,
                )
            )

        score = min(sum(r.score for r in reasons), 1.0)
        return SpamVerdict(
            is_spam=score > self._config.threshold,
            score=score,
            reasons=reasons,
            threshold=self._config.threshold,
        )

    async def _duplicate_score(self, event: ContentEvent, now: float) -> float:
        cfg = self._config
        try:
            recent = await self._recent.recent(
                kind=event.kind,
                since=now - cfg.duplicate_window_seconds,
                limit=_DUPLICATE_LOOKBACK,
            )
            await self._recent.record(event)
        except (OSError, asyncio.TimeoutError) as exc:
            raise SpamDetectionError(f"Recent events unavailable: {exc}") from exc

        best = 0.0
        for other in recent:
            if other.id == event.id:
                continue
            best = max(best, jaccard_similarity(event.content, other.content))
        return best if best > cfg.duplicate_threshold else 0.0


def default_filters(rules: RuleSet, config: SpamConfig) -> list[SpamFilter]:
    """Build the standard ensemble in evaluation order."""
    return [
        FrequencyFilter(config),
        SimilarityFilter(config),
        BehavioralFilter(config),
        KeywordFilter(rules),
        ReputationFilter(config),
    ]
