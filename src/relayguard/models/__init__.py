"""Models domain — events, verdicts, actions, and reputation."""

from relayguard.models.actions import ActionType
from relayguard.models.actions import ModerationAction
from relayguard.models.events import ContentEvent
from relayguard.models.events import SEVERITY_WEIGHTS
from relayguard.models.events import Severity
from relayguard.models.events import TEXT_NOTE_KIND
from relayguard.models.events import ZAP_RECEIPT_KIND
from relayguard.models.events import ZAP_REQUEST_KIND
from relayguard.models.reputation import Reputation
from relayguard.models.verdicts import ComplianceVerdict
from relayguard.models.verdicts import ComplianceViolation
from relayguard.models.verdicts import ScanResult
from relayguard.models.verdicts import SpamReason
from relayguard.models.verdicts import SpamVerdict
from relayguard.models.verdicts import Violation

__all__ = [
    "ActionType",
    "ComplianceVerdict",
    "ComplianceViolation",
    "ContentEvent",
    "ModerationAction",
    "Reputation",
    "SEVERITY_WEIGHTS",
    "ScanResult",
    "Severity",
    "SpamReason",
    "SpamVerdict",
    "TEXT_NOTE_KIND",
    "Violation",
    "ZAP_RECEIPT_KIND",
    "ZAP_REQUEST_KIND",
]
