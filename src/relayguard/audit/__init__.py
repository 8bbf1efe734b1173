"""Audit subsystem — bounded decision trail and compliance reporting."""

from relayguard.audit.schemas import AnalyticsSummary
from relayguard.audit.schemas import AuditAction
from relayguard.audit.schemas import AuditEntry
from relayguard.audit.schemas import ComplianceReport
from relayguard.audit.schemas import SecurityAnalytics
from relayguard.audit.store import AuditLog
from relayguard.audit.store import TIMEFRAMES

__all__ = [
    "AnalyticsSummary",
    "AuditAction",
    "AuditEntry",
    "AuditLog",
    "ComplianceReport",
    "SecurityAnalytics",
    "TIMEFRAMES",
]
