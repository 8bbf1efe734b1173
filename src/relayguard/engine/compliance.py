"""Regulatory compliance checks (GDPR, KYC/AML, age verification)."""

from __future__ import annotations

from relayguard.errors import ComplianceError
from relayguard.models import ComplianceVerdict
from relayguard.models import ComplianceViolation
from relayguard.models import ContentEvent
from relayguard.rules import RuleSet


class ComplianceChecker:
    """Applies each compliance rule independently.

    An event is compliant only when no rule reports a violation.
    """

    def __init__(self, rules: RuleSet) -> None:
        self._rules = rules

    def check(self, event: ContentEvent) -> ComplianceVerdict:
        rules = self._rules.compliance_rules()
        violations: list[ComplianceViolation] = []
        for rule in rules:
            try:
                match = rule.evaluate(event)
            except (TypeError, ValueError, RuntimeError) as exc:
                raise ComplianceError(f"Compliance rule {rule.id!r} failed: {exc}") from exc
            if match is None:
                continue
            violations.append(
                ComplianceViolation(
                    rule=rule.id,
                    severity=rule.severity,
                    description=rule.description,
                    requirement=rule.requirement,
                )
            )
        return ComplianceVerdict(
            compliant=not violations,
            violations=violations,
            total_rules=len(rules),
        )
