"""Action execution seam and the in-process enforcement registry.

``ActionExecutor`` is the contract for turning a decided action into an
external effect (publishing a signed moderation event, updating a relay's
block list). ``InMemoryActionExecutor`` keeps the effects in process:
block list, shadow-ban watch list, hidden and deletion-requested events,
filed reports, and per-actor rate limits.
"""

from __future__ import annotations

import logging
from typing import Protocol
from typing import runtime_checkable

from relayguard.models import ActionType
from relayguard.models import ModerationAction
from relayguard.ratelimit import LimitType
from relayguard.ratelimit import RateLimiter
from relayguard.ratelimit import RateLimitRule

logger = logging.getLogger(__name__)


@runtime_checkable
class ActionExecutor(Protocol):
    """Fire-and-forget dispatch of one moderation action."""

    async def execute(self, action: ModerationAction) -> None: ...


class InMemoryActionExecutor:
    """Applies actions to in-process enforcement state."""

    def __init__(self, rate_limiter: RateLimiter | None = None) -> None:
        self._rate_limiter = rate_limiter
        self.block_list: dict[str, ModerationAction] = {}
        self.watch_list: dict[str, ModerationAction] = {}
        self.hidden_events: dict[str, ModerationAction] = {}
        self.deletion_requests: dict[str, ModerationAction] = {}
        self.reports: list[ModerationAction] = []

    async def execute(self, action: ModerationAction) -> None:
        if action.type is ActionType.BLOCK:
            self.block_list[action.target] = action
        elif action.type is ActionType.SHADOW_BAN:
            self.watch_list[action.target] = action
        elif action.type is ActionType.CONTENT_DELETE:
            self.deletion_requests[action.target] = action
        elif action.type is ActionType.CONTENT_HIDE:
            self.hidden_events[action.target] = action
        elif action.type is ActionType.REPORT:
            self.reports.append(action)
        elif action.type is ActionType.RATE_LIMIT:
            self._apply_rate_limit(action)
        logger.debug("Executed %s on %s", action.type.value, action.target)

    def _apply_rate_limit(self, action: ModerationAction) -> None:
        if self._rate_limiter is None:
            logger.warning("No rate limiter wired; dropping rate_limit for %s", action.target)
            return
        self._rate_limiter.configure(
            action.target,
            RateLimitRule(
                type=LimitType.ACTOR,
                window=action.duration or 3600,
                max_requests=None,
                max_events=action.limit,
                max_bytes=None,
            ),
            keep_entries=True,
        )

    def is_blocked(self, actor_id: str, *, now: float | None = None) -> bool:
        return self._active(self.block_list.get(actor_id), now)

    def is_shadow_banned(self, actor_id: str, *, now: float | None = None) -> bool:
        return self._active(self.watch_list.get(actor_id), now)

    def is_hidden(self, event_id: str) -> bool:
        return event_id in self.hidden_events or event_id in self.deletion_requests

    @staticmethod
    def _active(action: ModerationAction | None, now: float | None) -> bool:
        if action is None:
            return False
        if action.duration is None or now is None:
            return True
        return now < action.created_at + action.duration
