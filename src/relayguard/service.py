"""Moderation service — the single ``evaluate`` entry point.

Wires the three checkers, the decision engine, the reputation store, the
audit log and background action dispatch. Every collaborator is passed in
(or built once by ``ModerationService.create``), so independent service
instances never share state.

Checker failures follow the configured ``FailurePolicy``: by default a
failing checker yields its permissive verdict (safe / not spam /
compliant) with ``error`` set, and evaluation continues with the other
checkers' results.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Iterable
from collections.abc import Mapping
from typing import Any
from typing import TypeVar

from pydantic import BaseModel
from pydantic import Field

from relayguard.actions import ActionDispatcher
from relayguard.actions import ActionExecutor
from relayguard.actions import InMemoryActionExecutor
from relayguard.audit import AuditAction
from relayguard.audit import AuditLog
from relayguard.config import AuditConfig
from relayguard.config import EvaluationConfig
from relayguard.config import FailurePolicy
from relayguard.config import ModerationConfig
from relayguard.config import ModerationOptions
from relayguard.config import RateLimiterConfig
from relayguard.config import ReputationConfig
from relayguard.config import ScannerConfig
from relayguard.config import SpamConfig
from relayguard.engine.compliance import ComplianceChecker
from relayguard.engine.decision import ModerationDecisionEngine
from relayguard.engine.scanner import coerce_event
from relayguard.engine.scanner import ContentScanner
from relayguard.engine.spam import RecentEventSource
from relayguard.engine.spam import SpamDetector
from relayguard.errors import AuditWriteError
from relayguard.models import ComplianceVerdict
from relayguard.models import ComplianceViolation
from relayguard.models import ContentEvent
from relayguard.models import ModerationAction
from relayguard.models import Reputation
from relayguard.models import ScanResult
from relayguard.models import Severity
from relayguard.models import SpamVerdict
from relayguard.observability import default_recorder
from relayguard.observability import LatencyRecorder
from relayguard.ratelimit import Dimension
from relayguard.ratelimit import LimitType
from relayguard.ratelimit import RateLimitDecision
from relayguard.ratelimit import RateLimiter
from relayguard.ratelimit import RateLimitRule
from relayguard.reputation import ActorReputationBackend
from relayguard.reputation import ReputationStore
from relayguard.rules import Rule
from relayguard.rules import RuleSet

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EvaluationResult(BaseModel):
    """Combined outcome of one ``evaluate`` call."""

    event_id: str
    actor_id: str
    scan_result: ScanResult
    spam_verdict: SpamVerdict
    compliance_verdict: ComplianceVerdict
    actions: list[ModerationAction] = Field(default_factory=list)


class ModerationService:
    """Evaluate events, decide actions, and keep the audit trail."""

    def __init__(
        self,
        *,
        scanner: ContentScanner,
        spam_detector: SpamDetector,
        compliance_checker: ComplianceChecker,
        decision_engine: ModerationDecisionEngine,
        reputation_store: ReputationStore,
        rate_limiter: RateLimiter,
        audit_log: AuditLog,
        dispatcher: ActionDispatcher,
        options: ModerationOptions | None = None,
        evaluation_config: EvaluationConfig | None = None,
        metrics: LatencyRecorder | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.scanner = scanner
        self.spam_detector = spam_detector
        self.compliance_checker = compliance_checker
        self.decision_engine = decision_engine
        self.reputation_store = reputation_store
        self.rate_limiter = rate_limiter
        self.audit_log = audit_log
        self.dispatcher = dispatcher
        self.options = options or ModerationOptions()
        self._eval_config = evaluation_config or EvaluationConfig()
        self._metrics = metrics or default_recorder()
        self._clock = clock or time.time

    @classmethod
    def create(
        cls,
        *,
        rules: RuleSet | None = None,
        custom_rules: Iterable[Rule] = (),
        options: ModerationOptions | None = None,
        scanner_config: ScannerConfig | None = None,
        spam_config: SpamConfig | None = None,
        reputation_config: ReputationConfig | None = None,
        moderation_config: ModerationConfig | None = None,
        rate_limiter_config: RateLimiterConfig | None = None,
        audit_config: AuditConfig | None = None,
        evaluation_config: EvaluationConfig | None = None,
        reputation_backend: ActorReputationBackend | None = None,
        executor: ActionExecutor | None = None,
        recent_events: RecentEventSource | None = None,
        metrics: LatencyRecorder | None = None,
        clock: Callable[[], float] | None = None,
    ) -> ModerationService:
        """Build a fully wired service from configuration objects."""
        rule_set = (rules or RuleSet.default()).with_rules(custom_rules)
        reputation = ReputationStore(
            reputation_config, backend=reputation_backend, clock=clock
        )
        rate_limiter = RateLimiter(rate_limiter_config, clock=clock)
        audit_log = AuditLog(audit_config, clock=clock)
        return cls(
            scanner=ContentScanner(rule_set, scanner_config, clock=clock),
            spam_detector=SpamDetector(
                reputation,
                rule_set,
                spam_config,
                recent_events=recent_events,
                clock=clock,
            ),
            compliance_checker=ComplianceChecker(rule_set),
            decision_engine=ModerationDecisionEngine(
                rule_set, reputation, moderation_config, clock=clock
            ),
            reputation_store=reputation,
            rate_limiter=rate_limiter,
            audit_log=audit_log,
            dispatcher=ActionDispatcher(
                executor or InMemoryActionExecutor(rate_limiter), audit_log
            ),
            options=options,
            evaluation_config=evaluation_config,
            metrics=metrics,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(
        self,
        event: ContentEvent | Mapping[str, Any],
        options: ModerationOptions | None = None,
    ) -> EvaluationResult:
        """Scan, spam-check and compliance-check *event*, then decide actions.

        Raises ``ScanError`` only when *event* itself cannot be parsed.
        """
        options = options or self.options
        with self._metrics.timed("moderation.evaluate"):
            event = coerce_event(event)
            scan_result, spam_verdict, compliance_verdict = await asyncio.gather(
                self._scan(event, options),
                self._check_spam(event, options),
                self._check_compliance(event, options),
            )

            actions: list[ModerationAction] = []
            if options.enable_automated_moderation:
                actions = await self.decision_engine.decide(
                    event, scan_result, spam_verdict, compliance_verdict
                )

            await self._audit_evaluation(
                event, scan_result, spam_verdict, compliance_verdict, actions
            )
            if actions:
                self.dispatcher.dispatch(actions)

        return EvaluationResult(
            event_id=event.id,
            actor_id=event.actor_id,
            scan_result=scan_result,
            spam_verdict=spam_verdict,
            compliance_verdict=compliance_verdict,
            actions=actions,
        )

    async def _scan(self, event: ContentEvent, options: ModerationOptions) -> ScanResult:
        if not options.enable_content_scanning:
            return ScanResult(safe=True, risk_score=0.0, scanned_at=int(self._clock()))

        async def run() -> ScanResult:
            return self.scanner.scan(event, options.strict_mode)

        def fallback(error: str) -> ScanResult:
            closed = self._eval_config.failure_policy is FailurePolicy.CLOSED
            return ScanResult(
                safe=not closed,
                risk_score=1.0 if closed else 0.0,
                scanned_at=int(self._clock()),
                error=error,
            )

        return await self._guarded("content_scan", event, run, fallback)

    async def _check_spam(self, event: ContentEvent, options: ModerationOptions) -> SpamVerdict:
        threshold = self.spam_detector.threshold
        if not options.enable_spam_detection:
            return SpamVerdict(is_spam=False, score=0.0, threshold=threshold)

        def fallback(error: str) -> SpamVerdict:
            closed = self._eval_config.failure_policy is FailurePolicy.CLOSED
            return SpamVerdict(
                is_spam=closed,
                score=1.0 if closed else 0.0,
                threshold=threshold,
                error=error,
            )

        return await self._guarded(
            "spam_detection", event, lambda: self.spam_detector.check(event), fallback
        )

    async def _check_compliance(
        self, event: ContentEvent, options: ModerationOptions
    ) -> ComplianceVerdict:
        if not options.enable_compliance:
            return ComplianceVerdict(compliant=True)

        async def run() -> ComplianceVerdict:
            return self.compliance_checker.check(event)

        def fallback(error: str) -> ComplianceVerdict:
            if self._eval_config.failure_policy is FailurePolicy.OPEN:
                return ComplianceVerdict(compliant=True, error=error)
            return ComplianceVerdict(
                compliant=False,
                violations=[
                    ComplianceViolation(
                        rule="compliance_unavailable",
                        severity=Severity.HIGH,
                        description=error,
                        requirement="Compliance verification",
                    )
                ],
                error=error,
            )

        return await self._guarded("compliance_check", event, run, fallback)

    async def _guarded(
        self,
        name: str,
        event: ContentEvent,
        run: Callable[[], Awaitable[T]],
        fallback: Callable[[str], T],
    ) -> T:
        """Run one checker under the deadline, applying the failure policy."""
        deadline = self._eval_config.deadline_seconds
        try:
            with self._metrics.timed(f"moderation.{name}"):
                if deadline is None:
                    return await run()
                return await asyncio.wait_for(run(), timeout=deadline)
        except asyncio.TimeoutError:
            logger.warning(
                "%s timed out after %.3fs for event %s (policy=%s)",
                name,
                deadline,
                event.id,
                self._eval_config.failure_policy.value,
            )
            return fallback(f"{name} timed out")
        except Exception as exc:
            logger.exception(
                "%s failed for event %s (policy=%s)",
                name,
                event.id,
                self._eval_config.failure_policy.value,
            )
            return fallback(str(exc))

    async def _audit_evaluation(
        self,
        event: ContentEvent,
        scan_result: ScanResult,
        spam_verdict: SpamVerdict,
        compliance_verdict: ComplianceVerdict,
        actions: list[ModerationAction],
    ) -> None:
        base = {"event_id": event.id, "kind": event.kind}
        await self._audit(
            AuditAction.CONTENT_SCAN,
            {
                **base,
                "violations": [v.model_dump(mode="json") for v in scan_result.violations],
                "risk_score": scan_result.risk_score,
                "safe": scan_result.safe,
            },
            actor=event.actor_id,
        )
        await self._audit(
            AuditAction.SPAM_DETECTION,
            {
                **base,
                "is_spam": spam_verdict.is_spam,
                "spam_score": spam_verdict.score,
                "reasons": [r.model_dump(mode="json") for r in spam_verdict.reasons],
            },
            actor=event.actor_id,
        )
        await self._audit(
            AuditAction.COMPLIANCE_CHECK,
            {
                **base,
                "compliant": compliance_verdict.compliant,
                "violations": [
                    v.model_dump(mode="json") for v in compliance_verdict.violations
                ],
            },
            actor=event.actor_id,
        )
        if actions:
            await self._audit(
                AuditAction.MODERATION_ACTION,
                {
                    **base,
                    "violations": [v.type for v in scan_result.violations],
                    "actions": [a.model_dump(mode="json") for a in actions],
                },
                actor=event.actor_id,
            )

    async def _audit(
        self,
        action: AuditAction,
        payload: dict[str, Any],
        *,
        actor: str | None = None,
    ) -> None:
        try:
            await self.audit_log.record(action, payload, actor=actor)
        except AuditWriteError:
            logger.warning("Audit write failed for %s", action.value, exc_info=True)

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    def check_rate_limit(
        self,
        identifier: str,
        type: LimitType | str = LimitType.IP,
        dimension: Dimension | str = Dimension.REQUESTS,
        cost: int = 1,
    ) -> RateLimitDecision:
        return self.rate_limiter.allow(identifier, type, dimension, cost)

    async def set_rate_limit(
        self,
        identifier: str,
        rule: RateLimitRule,
        *,
        admin: str | None = None,
    ) -> RateLimitRule:
        """Install limits for *identifier* and audit the change."""
        self.rate_limiter.configure(identifier, rule)
        await self._audit(
            AuditAction.RATE_LIMIT_UPDATE,
            {
                "identifier": identifier,
                "type": rule.type.value,
                "window": rule.window,
                "max_requests": rule.max_requests,
                "max_events": rule.max_events,
                "max_bytes": rule.max_bytes,
                "strategy": rule.strategy,
            },
            actor=admin,
        )
        return rule

    # ------------------------------------------------------------------
    # Reputation
    # ------------------------------------------------------------------

    async def get_reputation(self, actor_id: str) -> Reputation:
        return await self.reputation_store.get(actor_id)

    async def reset_reputation(self, actor_id: str, *, admin: str | None = None) -> Reputation:
        reputation = await self.reputation_store.reset(actor_id)
        await self._audit(
            AuditAction.REPUTATION_RESET,
            {"actor_id": actor_id},
            actor=admin,
        )
        return reputation

    async def shutdown(self) -> None:
        """Wait for in-flight action dispatches."""
        await self.dispatcher.drain()
