"""Rate limiting domain — sliding-window buckets per identifier."""

from relayguard.ratelimit.limiter import Dimension
from relayguard.ratelimit.limiter import LimitType
from relayguard.ratelimit.limiter import RateLimitBucket
from relayguard.ratelimit.limiter import RateLimitDecision
from relayguard.ratelimit.limiter import RateLimiter
from relayguard.ratelimit.limiter import RateLimitRule
from relayguard.ratelimit.limiter import SLIDING_WINDOW

__all__ = [
    "Dimension",
    "LimitType",
    "RateLimitBucket",
    "RateLimitDecision",
    "RateLimitRule",
    "RateLimiter",
    "SLIDING_WINDOW",
]
