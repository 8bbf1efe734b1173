"""Rule variants and the immutable rule collection.

Every rule is a frozen dataclass carrying compiled patterns and a severity.
The ``category`` class attribute is the discriminant the checkers select on:

- ``ContentFilterRule``: scored by the content scanner, mapped to actions
  by the decision engine.
- ``SpamHeuristicRule``: scored by the spam detector's keyword filter.
- ``ComplianceRule``: regulatory checks, optionally restricted to kinds.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import ClassVar

from relayguard.models import ActionType
from relayguard.models import ContentEvent
from relayguard.models import Severity


class RuleCategory(str, Enum):
    CONTENT_FILTER = "content_filter"
    SPAM_HEURISTIC = "spam_heuristic"
    COMPLIANCE = "compliance"


@dataclass(frozen=True)
class ActionTemplate:
    """Default enforcement a rule declares; instantiated per violation."""

    type: ActionType
    duration: int | None = None
    reason: str | None = None
    limit: int | None = None


@dataclass(frozen=True)
class RuleMatch:
    """Outcome of one rule matching one event."""

    rule_id: str
    match_count: int
    evidence: tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class PatternRule:
    """Common shape of all rule variants."""

    category: ClassVar[RuleCategory]

    id: str
    patterns: tuple[re.Pattern[str], ...]
    severity: Severity
    description: str
    actions: tuple[ActionTemplate, ...] = ()

    def evaluate(self, event: ContentEvent, *, max_evidence: int = 3) -> RuleMatch | None:
        """Count every match of every pattern in ``event.content``."""
        count = 0
        evidence: list[str] = []
        for pattern in self.patterns:
            for match in pattern.finditer(event.content):
                count += 1
                if len(evidence) < max_evidence:
                    evidence.append(match.group(0))
        if count == 0:
            return None
        return RuleMatch(rule_id=self.id, match_count=count, evidence=tuple(evidence))


@dataclass(frozen=True, kw_only=True)
class ContentFilterRule(PatternRule):
    category: ClassVar[RuleCategory] = RuleCategory.CONTENT_FILTER

    violation_type: str = ""

    @property
    def type(self) -> str:
        return self.violation_type or self.id


@dataclass(frozen=True, kw_only=True)
class SpamHeuristicRule(PatternRule):
    category: ClassVar[RuleCategory] = RuleCategory.SPAM_HEURISTIC


@dataclass(frozen=True, kw_only=True)
class ComplianceRule(PatternRule):
    category: ClassVar[RuleCategory] = RuleCategory.COMPLIANCE

    requirement: str
    kinds: frozenset[int] | None = None

    def evaluate(self, event: ContentEvent, *, max_evidence: int = 3) -> RuleMatch | None:
        """Report the first pattern hit; kind-scoped rules skip other kinds."""
        if self.kinds is not None and event.kind not in self.kinds:
            return None
        for pattern in self.patterns:
            match = pattern.search(event.content)
            if match is not None:
                return RuleMatch(rule_id=self.id, match_count=1, evidence=(match.group(0),))
        return None


Rule = ContentFilterRule | SpamHeuristicRule | ComplianceRule


@dataclass(frozen=True)
class RuleSet:
    """Immutable, id-keyed collection of rules across all categories."""

    rules: tuple[Rule, ...] = ()
    _by_id: dict[str, Rule] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_id: dict[str, Rule] = {}
        for rule in self.rules:
            if rule.id in by_id:
                raise ValueError(f"Duplicate rule id: {rule.id!r}")
            by_id[rule.id] = rule
        object.__setattr__(self, "_by_id", by_id)

    @classmethod
    def default(cls) -> RuleSet:
        from relayguard.rules.defaults import DEFAULT_RULES

        return cls(DEFAULT_RULES)

    def get(self, rule_id: str) -> Rule | None:
        return self._by_id.get(rule_id)

    def content_filters(self) -> tuple[ContentFilterRule, ...]:
        return tuple(r for r in self.rules if isinstance(r, ContentFilterRule))

    def spam_heuristics(self) -> tuple[SpamHeuristicRule, ...]:
        return tuple(r for r in self.rules if isinstance(r, SpamHeuristicRule))

    def compliance_rules(self) -> tuple[ComplianceRule, ...]:
        return tuple(r for r in self.rules if isinstance(r, ComplianceRule))

    def with_rules(self, rules: Iterable[Rule]) -> RuleSet:
        """Return a new set where *rules* are added or replace same-id rules."""
        merged = dict(self._by_id)
        for rule in rules:
            merged[rule.id] = rule
        return RuleSet(tuple(merged.values()))

    def without(self, *rule_ids: str) -> RuleSet:
        return RuleSet(tuple(r for r in self.rules if r.id not in rule_ids))

    def __len__(self) -> int:
        return len(self.rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id


def compile_patterns(*sources: str, flags: int = re.IGNORECASE) -> tuple[re.Pattern[str], ...]:
    """Compile pattern sources, case-insensitive by default."""
    return tuple(re.compile(source, flags) for source in sources)
