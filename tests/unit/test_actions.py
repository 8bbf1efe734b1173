"""Unit tests for the enforcement registry and background dispatch."""

from __future__ import annotations

import logging

from relayguard.actions import ActionDispatcher
from relayguard.actions import ActionExecutor
from relayguard.actions import InMemoryActionExecutor
from relayguard.audit import AuditAction
from relayguard.audit import AuditLog
from relayguard.models import ActionType
from relayguard.models import ModerationAction
from relayguard.ratelimit import LimitType
from relayguard.ratelimit import RateLimiter

T0 = 1_700_000_000


def _action(action_type: ActionType, target: str = "npub1", **kwargs) -> ModerationAction:
    return ModerationAction(
        type=action_type,
        target=target,
        reason=kwargs.pop("reason", "test"),
        created_at=kwargs.pop("created_at", T0),
        **kwargs,
    )


class _FailingExecutor:
    async def execute(self, action: ModerationAction) -> None:
        raise RuntimeError("relay unreachable")


# ---------------------------------------------------------------------------
# InMemoryActionExecutor
# ---------------------------------------------------------------------------


class TestInMemoryActionExecutor:
    async def test_block_and_expiry(self):
        executor = InMemoryActionExecutor()
        assert isinstance(executor, ActionExecutor)
        await executor.execute(_action(ActionType.BLOCK, duration=100))
        assert executor.is_blocked("npub1")
        assert executor.is_blocked("npub1", now=T0 + 99)
        assert not executor.is_blocked("npub1", now=T0 + 100)

    async def test_permanent_block(self):
        executor = InMemoryActionExecutor()
        await executor.execute(_action(ActionType.BLOCK))
        assert executor.is_blocked("npub1", now=T0 + 10**9)

    async def test_shadow_ban(self):
        executor = InMemoryActionExecutor()
        await executor.execute(_action(ActionType.SHADOW_BAN, duration=60))
        assert executor.is_shadow_banned("npub1")
        assert not executor.is_blocked("npub1")

    async def test_content_actions_target_events(self):
        executor = InMemoryActionExecutor()
        await executor.execute(_action(ActionType.CONTENT_HIDE, target="evt1"))
        await executor.execute(_action(ActionType.CONTENT_DELETE, target="evt2"))
        await executor.execute(_action(ActionType.REPORT, target="evt3"))
        assert executor.is_hidden("evt1")
        assert executor.is_hidden("evt2")
        assert not executor.is_hidden("evt3")
        assert [r.target for r in executor.reports] == ["evt3"]

    async def test_rate_limit_configures_limiter(self):
        limiter = RateLimiter(clock=lambda: T0)
        executor = InMemoryActionExecutor(limiter)
        await executor.execute(_action(ActionType.RATE_LIMIT, duration=3600, limit=2))

        rule = limiter.rule_for("npub1", LimitType.ACTOR)
        assert rule.window == 3600
        assert rule.max_events == 2
        assert [limiter.allow("npub1", "actor", "events").allowed for _ in range(3)] == [
            True,
            True,
            False,
        ]

    async def test_rate_limit_without_limiter_is_dropped(self, caplog):
        executor = InMemoryActionExecutor()
        with caplog.at_level(logging.WARNING, logger="relayguard.actions.executor"):
            await executor.execute(_action(ActionType.RATE_LIMIT, limit=1))
        assert "No rate limiter" in caplog.text


# ---------------------------------------------------------------------------
# ActionDispatcher
# ---------------------------------------------------------------------------


class TestActionDispatcher:
    async def test_dispatch_executes_and_audits(self):
        executor = InMemoryActionExecutor()
        audit = AuditLog(clock=lambda: T0)
        dispatcher = ActionDispatcher(executor, audit)

        dispatcher.dispatch(
            [
                _action(ActionType.BLOCK, duration=60, event_id="evt1"),
                _action(ActionType.REPORT, target="evt1", event_id="evt1"),
            ]
        )
        await dispatcher.drain()

        assert executor.is_blocked("npub1")
        assert dispatcher.pending == 0
        blocked = audit.query(action=AuditAction.USER_BLOCKED)
        assert len(blocked) == 1
        assert blocked[0].actor == "npub1"
        assert blocked[0].payload["event_id"] == "evt1"
        report = audit.query(action=AuditAction.MODERATION_REPORT_CREATED)[0]
        assert report.actor is None

    async def test_executor_failure_is_logged_not_raised(self, caplog):
        audit = AuditLog()
        dispatcher = ActionDispatcher(_FailingExecutor(), audit)
        with caplog.at_level(logging.ERROR, logger="relayguard.actions.dispatcher"):
            dispatcher.dispatch([_action(ActionType.BLOCK)])
            await dispatcher.drain()
        assert "Action executor failed" in caplog.text
        assert len(audit) == 0

    async def test_dispatch_without_audit(self):
        executor = InMemoryActionExecutor()
        dispatcher = ActionDispatcher(executor)
        tasks = dispatcher.dispatch([_action(ActionType.SHADOW_BAN)])
        assert len(tasks) == 1
        await dispatcher.drain()
        assert executor.is_shadow_banned("npub1")
