"""Background dispatch of decided actions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from relayguard.actions.executor import ActionExecutor
from relayguard.audit import AuditAction
from relayguard.audit import AuditLog
from relayguard.errors import AuditWriteError
from relayguard.models import ActionType
from relayguard.models import ModerationAction

logger = logging.getLogger(__name__)

_AUDIT_ACTIONS: dict[ActionType, AuditAction] = {
    ActionType.BLOCK: AuditAction.USER_BLOCKED,
    ActionType.SHADOW_BAN: AuditAction.USER_SHADOW_BANNED,
    ActionType.CONTENT_DELETE: AuditAction.CONTENT_DELETION_REQUESTED,
    ActionType.CONTENT_HIDE: AuditAction.CONTENT_HIDDEN,
    ActionType.RATE_LIMIT: AuditAction.RATE_LIMIT_APPLIED,
    ActionType.REPORT: AuditAction.MODERATION_REPORT_CREATED,
}


class ActionDispatcher:
    """Schedules executor calls as tasks so evaluation never waits on them.

    Task references are held until completion; failures are logged and
    never propagate back to the evaluation that produced the action.
    """

    def __init__(self, executor: ActionExecutor, audit_log: AuditLog | None = None) -> None:
        self._executor = executor
        self._audit = audit_log
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def executor(self) -> ActionExecutor:
        return self._executor

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, actions: Iterable[ModerationAction]) -> list[asyncio.Task[None]]:
        scheduled = []
        for action in actions:
            task = asyncio.create_task(self._run(action))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            scheduled.append(task)
        return scheduled

    async def _run(self, action: ModerationAction) -> None:
        try:
            await self._executor.execute(action)
        except Exception:
            logger.exception(
                "Action executor failed for %s on %s", action.type.value, action.target
            )
            return
        if self._audit is None:
            return
        try:
            await self._audit.record(
                _AUDIT_ACTIONS[action.type],
                {
                    "target": action.target,
                    "reason": action.reason,
                    "duration": action.duration,
                    "event_id": action.event_id,
                },
                actor=action.target if action.type.targets_actor else None,
            )
        except AuditWriteError:
            logger.warning("Audit write failed for %s on %s", action.type.value, action.target)

    async def drain(self) -> None:
        """Wait for all in-flight dispatches (shutdown and test helper)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
