"""Content rule scanner.

Applies every content-filter rule to an event and folds the matches into a
normalized risk score::

    contribution(rule) = weight(severity) * min(match_count / 3, 1)
    risk_score         = min(sum(contributions), 1.0)

The scanner holds no per-event state; ``scan`` is a pure function of the
event, the rule set, and the strict-mode flag (plus the clock used for
``scanned_at``).
"""

from __future__ import annotations

import time
from collections.abc import Callable
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from relayguard.config import ScannerConfig
from relayguard.errors import ScanError
from relayguard.models import ContentEvent
from relayguard.models import ScanResult
from relayguard.models import Severity
from relayguard.models import Violation
from relayguard.rules import RuleSet

EXCESSIVE_TAGGING = "excessive_tagging"


def coerce_event(event: ContentEvent | Mapping[str, Any]) -> ContentEvent:
    """Accept a model or a raw mapping; raise ``ScanError`` when malformed."""
    if isinstance(event, ContentEvent):
        return event
    if isinstance(event, Mapping):
        try:
            return ContentEvent.model_validate(event)
        except ValidationError as exc:
            raise ScanError(f"Malformed event: {exc.errors()[0]['msg']}") from exc
    raise ScanError(f"Unsupported event type: {type(event).__name__}")


class ContentScanner:
    """Scores event content against the rule set's content filters."""

    def __init__(
        self,
        rules: RuleSet,
        config: ScannerConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._rules = rules
        self._config = config or ScannerConfig()
        self._clock = clock or time.time

    @property
    def rules(self) -> RuleSet:
        return self._rules

    def scan(
        self,
        event: ContentEvent | Mapping[str, Any],
        strict_mode: bool = False,
    ) -> ScanResult:
        """Evaluate *event* and return its risk score and violations."""
        event = coerce_event(event)
        cfg = self._config

        violations: list[Violation] = []
        total = 0.0
        for rule in self._rules.content_filters():
            try:
                match = rule.evaluate(event, max_evidence=cfg.max_evidence)
            except (TypeError, ValueError, RuntimeError) as exc:
                raise ScanError(f"Rule {rule.id!r} failed: {exc}") from exc
            if match is None:
                continue
            violations.append(
                Violation(
                    rule_id=rule.id,
                    type=rule.type,
                    severity=rule.severity,
                    match_count=match.match_count,
                    evidence=list(match.evidence),
                    description=rule.description,
                )
            )
            total += self.risk_contribution(rule.severity, match.match_count)

        if len(event.tags) > cfg.max_tags:
            violations.append(
                Violation(
                    rule_id=EXCESSIVE_TAGGING,
                    type=EXCESSIVE_TAGGING,
                    severity=Severity.MEDIUM,
                    match_count=len(event.tags),
                    evidence=[f"Found {len(event.tags)} tags"],
                    description="Excessive tagging",
                )
            )

        risk_score = min(total, 1.0)
        threshold = cfg.strict_safe_threshold if strict_mode else cfg.safe_threshold
        return ScanResult(
            safe=risk_score < threshold,
            risk_score=risk_score,
            violations=violations,
            scanned_at=int(self._clock()),
        )

    def risk_contribution(self, severity: Severity, match_count: int) -> float:
        saturation = self._config.saturation_matches
        return severity.weight * min(match_count / saturation, 1.0)
