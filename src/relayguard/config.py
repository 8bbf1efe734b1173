"""Moderation engine configuration.

One frozen dataclass per subsystem. Values are passed in by the caller;
only the server entry point and ``relayguard.auth`` read the environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailurePolicy(str, Enum):
    """What a checker verdict defaults to when the checker fails."""

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ModerationOptions:
    """Per-evaluation feature flags.

    Each ``enable_*`` flag gates whether the matching checker runs at all.
    """

    strict_mode: bool = False
    enable_content_scanning: bool = True
    enable_spam_detection: bool = True
    enable_automated_moderation: bool = True
    enable_compliance: bool = True


@dataclass(frozen=True)
class ScannerConfig:
    """Thresholds for the content rule scanner."""

    safe_threshold: float = 0.5
    strict_safe_threshold: float = 0.2
    max_tags: int = 20
    saturation_matches: int = 3
    max_evidence: int = 3


@dataclass(frozen=True)
class SpamConfig:
    """Tuneable parameters for the spam filter ensemble."""

    threshold: float = 0.5
    # Frequency filter
    frequency_window_seconds: int = 3600
    frequency_max_posts: int = 10
    frequency_score: float = 0.8
    # Similarity filter
    similarity_threshold: float = 0.9
    similarity_score: float = 0.7
    # Per-actor state held by the frequency and similarity filters (LRU)
    actor_cache_size: int = 10_000
    # Behavioral filter
    caps_min_length: int = 20
    caps_score: float = 0.3
    punctuation_max: int = 5
    punctuation_score: float = 0.2
    repeat_run_length: int = 5
    repeat_score: float = 0.3
    # Reputation filter
    reputation_floor: float = 0.7
    reputation_weight: float = 0.3
    # Duplicate-content window
    duplicate_window_seconds: int = 3600
    duplicate_threshold: float = 0.8
    duplicate_window_size: int = 1000


@dataclass(frozen=True)
class ReputationConfig:
    """Defaults and blending rule for per-actor reputation."""

    initial_spam_score: float = 0.1
    initial_trust_score: float = 0.8
    blend_factor: float = 0.3
    # None keeps violations forever; otherwise a count whose last violation
    # is older than this many seconds is reset on next read.
    violation_ttl_seconds: int | None = None


@dataclass(frozen=True)
class ModerationConfig:
    """Escalation policy and the automatic spam response."""

    repeat_offender_threshold: int = 3
    escalation_multiplier: int = 2
    spam_rate_limit: int = 10
    spam_rate_limit_duration: int = 3600


@dataclass(frozen=True)
class RateLimiterConfig:
    """Lock striping for the rate limiter."""

    shards: int = 16


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the bounded audit log and its optional JSONL mirror."""

    capacity: int = 10_000
    file_path: str | None = None
    enabled: bool = True


@dataclass(frozen=True)
class EvaluationConfig:
    """Deadline and failure posture for one ``evaluate`` call."""

    deadline_seconds: float | None = 5.0
    failure_policy: FailurePolicy = FailurePolicy.OPEN
