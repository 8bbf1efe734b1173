"""Rules domain — immutable pattern rules for all three checkers."""

from relayguard.rules.ruleset import ActionTemplate
from relayguard.rules.ruleset import compile_patterns
from relayguard.rules.ruleset import ComplianceRule
from relayguard.rules.ruleset import ContentFilterRule
from relayguard.rules.ruleset import PatternRule
from relayguard.rules.ruleset import Rule
from relayguard.rules.ruleset import RuleCategory
from relayguard.rules.ruleset import RuleMatch
from relayguard.rules.ruleset import RuleSet
from relayguard.rules.ruleset import SpamHeuristicRule

__all__ = [
    "ActionTemplate",
    "ComplianceRule",
    "ContentFilterRule",
    "PatternRule",
    "Rule",
    "RuleCategory",
    "RuleMatch",
    "RuleSet",
    "SpamHeuristicRule",
    "compile_patterns",
]
