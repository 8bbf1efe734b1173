"""Enforcement actions produced by the decision engine."""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel
from pydantic import Field


class ActionType(str, Enum):
    """Discriminant of the moderation action variant."""

    BLOCK = "block"
    SHADOW_BAN = "shadow_ban"
    CONTENT_DELETE = "content_delete"
    CONTENT_HIDE = "content_hide"
    RATE_LIMIT = "rate_limit"
    REPORT = "report"

    @property
    def targets_actor(self) -> bool:
        """True when the action applies to the author rather than the event."""
        return self in _ACTOR_ACTIONS


_ACTOR_ACTIONS = frozenset(
    {ActionType.BLOCK, ActionType.SHADOW_BAN, ActionType.RATE_LIMIT}
)


class ModerationAction(BaseModel):
    """A decided enforcement step.

    ``target`` is an actor id for block, shadow_ban and rate_limit, and an
    event id for the content and report actions.
    """

    model_config = {"frozen": True}

    type: ActionType
    target: str
    reason: str
    duration: int | None = Field(
        default=None,
        description="Seconds the action stays in force; None means permanent.",
    )
    created_at: int = Field(default_factory=lambda: int(time.time()))
    limit: int | None = Field(
        default=None,
        description="Allowed events per duration (rate_limit only).",
    )
    rule_id: str | None = None
    event_id: str | None = None
