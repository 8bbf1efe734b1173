"""Reputation domain — per-actor standing and its persistence seam."""

from relayguard.reputation.backend import ActorReputationBackend
from relayguard.reputation.backend import RedisReputationBackend
from relayguard.reputation.store import ReputationStore

__all__ = [
    "ActorReputationBackend",
    "RedisReputationBackend",
    "ReputationStore",
]
