"""Moderation decision engine.

Maps violations to enforcement actions through each rule's declared
defaults, escalates repeat offenders, and folds the outcome back into the
reputation store.

Escalation: when the actor's ``violation_count`` exceeds the configured
threshold, every produced action has its duration multiplied (actions
without a duration stay permanent) and its reason rewritten to
``"Repeat violation: <description>"``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from relayguard.config import ModerationConfig
from relayguard.models import ActionType
from relayguard.models import ComplianceVerdict
from relayguard.models import ContentEvent
from relayguard.models import ModerationAction
from relayguard.models import Reputation
from relayguard.models import ScanResult
from relayguard.models import SpamVerdict
from relayguard.reputation import ReputationStore
from relayguard.rules import ActionTemplate
from relayguard.rules import RuleSet

logger = logging.getLogger(__name__)


class ModerationDecisionEngine:
    """Turn checker verdicts into actions and update actor history."""

    def __init__(
        self,
        rules: RuleSet,
        reputation_store: ReputationStore,
        config: ModerationConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._rules = rules
        self._reputation = reputation_store
        self._config = config or ModerationConfig()
        self._clock = clock or time.time

    # ---- pure planning ----

    def plan(
        self,
        event: ContentEvent,
        scan_result: ScanResult,
        spam_verdict: SpamVerdict,
        compliance_verdict: ComplianceVerdict,
        reputation: Reputation,
    ) -> list[ModerationAction]:
        """Return the actions for *event* without touching any state."""
        now = int(self._clock())
        repeat = reputation.violation_count > self._config.repeat_offender_threshold
        actions: list[ModerationAction] = []

        for violation in scan_result.violations:
            rule = self._rules.get(violation.rule_id)
            if rule is None:
                continue
            for template in rule.actions:
                actions.append(
                    self._instantiate(
                        template,
                        event,
                        description=violation.description,
                        rule_id=rule.id,
                        repeat=repeat,
                        now=now,
                    )
                )

        for violation in compliance_verdict.violations:
            rule = self._rules.get(violation.rule)
            if rule is None:
                continue
            for template in rule.actions:
                actions.append(
                    self._instantiate(
                        template,
                        event,
                        description=violation.description,
                        rule_id=rule.id,
                        repeat=False,
                        now=now,
                    )
                )

        if spam_verdict.is_spam:
            template = ActionTemplate(
                ActionType.RATE_LIMIT,
                duration=self._config.spam_rate_limit_duration,
                limit=self._config.spam_rate_limit,
            )
            actions.append(
                self._instantiate(
                    template,
                    event,
                    description="Spam detected",
                    rule_id=None,
                    repeat=repeat,
                    now=now,
                )
            )
        return actions

    def _instantiate(
        self,
        template: ActionTemplate,
        event: ContentEvent,
        *,
        description: str,
        rule_id: str | None,
        repeat: bool,
        now: int,
    ) -> ModerationAction:
        duration = template.duration
        reason = template.reason or description
        if repeat:
            if duration is not None:
                duration *= self._config.escalation_multiplier
            reason = f"Repeat violation: {description}"
        target = event.actor_id if template.type.targets_actor else event.id
        return ModerationAction(
            type=template.type,
            target=target,
            reason=reason,
            duration=duration,
            created_at=now,
            limit=template.limit,
            rule_id=rule_id,
            event_id=event.id,
        )

    # ---- decision with reputation update ----

    async def decide(
        self,
        event: ContentEvent,
        scan_result: ScanResult,
        spam_verdict: SpamVerdict,
        compliance_verdict: ComplianceVerdict,
        reputation: Reputation | None = None,
    ) -> list[ModerationAction]:
        """Plan actions, then record the outcome against the actor."""
        if reputation is None:
            reputation = await self._reputation.get(event.actor_id)
        actions = self.plan(event, scan_result, spam_verdict, compliance_verdict, reputation)
        violations = len(scan_result.violations)
        await self._reputation.record_outcome(
            event.actor_id,
            violations=violations,
            spam_score=spam_verdict.score,
        )
        if actions:
            logger.info(
                "Decided %d action(s) for event %s actor=%s repeat=%s",
                len(actions),
                event.id,
                event.actor_id,
                reputation.violation_count > self._config.repeat_offender_threshold,
            )
        return actions
