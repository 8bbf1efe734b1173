"""Per-actor reputation record."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field


class Reputation(BaseModel):
    """Snapshot of an actor's standing.

    Instances are immutable; the reputation store hands out copies and
    replaces its own record on every update.
    """

    model_config = {"frozen": True}

    actor_id: str
    spam_score: float = Field(default=0.1, ge=0.0, le=1.0)
    violation_count: int = Field(default=0, ge=0)
    trust_score: float = Field(default=0.8, ge=0.0, le=1.0)
    last_violation_at: int | None = None
