"""Engine domain — checkers and the moderation decision engine."""

from relayguard.engine.compliance import ComplianceChecker
from relayguard.engine.decision import ModerationDecisionEngine
from relayguard.engine.scanner import coerce_event
from relayguard.engine.scanner import ContentScanner
from relayguard.engine.spam import BehavioralFilter
from relayguard.engine.spam import default_filters
from relayguard.engine.spam import FilterContext
from relayguard.engine.spam import FilterResult
from relayguard.engine.spam import FrequencyFilter
from relayguard.engine.spam import InMemoryRecentEvents
from relayguard.engine.spam import jaccard_similarity
from relayguard.engine.spam import KeywordFilter
from relayguard.engine.spam import RecentEventSource
from relayguard.engine.spam import ReputationFilter
from relayguard.engine.spam import SimilarityFilter
from relayguard.engine.spam import SpamDetector
from relayguard.engine.spam import SpamFilter

__all__ = [
    "BehavioralFilter",
    "ComplianceChecker",
    "ContentScanner",
    "FilterContext",
    "FilterResult",
    "FrequencyFilter",
    "InMemoryRecentEvents",
    "KeywordFilter",
    "ModerationDecisionEngine",
    "RecentEventSource",
    "ReputationFilter",
    "SimilarityFilter",
    "SpamDetector",
    "SpamFilter",
    "coerce_event",
    "default_filters",
    "jaccard_similarity",
]
