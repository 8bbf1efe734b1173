"""Audit entry types and report models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class AuditAction(str, Enum):
    """Categories of auditable decisions."""

    CONTENT_SCAN = "content_scan"
    SPAM_DETECTION = "spam_detection"
    COMPLIANCE_CHECK = "compliance_check"
    MODERATION_ACTION = "moderation_action"
    USER_BLOCKED = "user_blocked"
    USER_SHADOW_BANNED = "user_shadow_banned"
    CONTENT_DELETION_REQUESTED = "content_deletion_requested"
    CONTENT_HIDDEN = "content_hidden"
    RATE_LIMIT_APPLIED = "rate_limit_applied"
    MODERATION_REPORT_CREATED = "moderation_report_created"
    RATE_LIMIT_UPDATE = "rate_limit_update"
    REPUTATION_RESET = "reputation_reset"


class AuditEntry(BaseModel):
    """A single immutable audit log entry."""

    model_config = {"frozen": True}

    timestamp: int = Field(
        default_factory=lambda: int(time.time()),
        description="Unix seconds when the decision was recorded.",
    )
    action: AuditAction = Field(
        description="Category of the audited decision.",
    )
    actor: str | None = Field(
        default=None,
        description="Actor the decision concerns, or the admin who made it.",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary decision-specific data.",
    )


class ComplianceReport(BaseModel):
    """Aggregate of audit entries over a trailing window."""

    timeframe: str
    generated_at: int
    since: int
    total_actions: int
    counts_by_action: dict[str, int] = Field(default_factory=dict)
    counts_by_hour: dict[int, int] = Field(
        default_factory=dict,
        description="Entry counts keyed by hour-aligned unix seconds.",
    )


class AnalyticsSummary(BaseModel):
    total_security_events: int = 0
    content_scans: int = 0
    spam_detections: int = 0
    moderation_actions: int = 0
    user_blocks: int = 0
    shadow_bans: int = 0


class SecurityAnalytics(BaseModel):
    """Moderation-centric view of the audit trail."""

    timeframe: str
    generated_at: int
    summary: AnalyticsSummary
    top_violations: dict[str, int] = Field(default_factory=dict)
    hourly_activity: dict[int, int] = Field(default_factory=dict)
