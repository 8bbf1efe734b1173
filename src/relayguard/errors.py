"""Error taxonomy for the moderation engine."""

from __future__ import annotations


class RelayGuardError(Exception):
    """Base class for all engine errors."""


class ScanError(RelayGuardError):
    """Raised for a malformed event or a content rule failure."""


class SpamDetectionError(RelayGuardError):
    """Raised when a spam filter cannot evaluate an event."""


class ComplianceError(RelayGuardError):
    """Raised when a compliance rule cannot evaluate an event."""


class RateLimiterConfigError(RelayGuardError):
    """Raised for an unknown strategy or invalid thresholds."""


class AuditWriteError(RelayGuardError):
    """Raised when an audit entry cannot be persisted."""
