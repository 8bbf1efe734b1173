"""Checker outputs: scan results, spam and compliance verdicts."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field

from relayguard.models.events import Severity


class Violation(BaseModel):
    """One content rule that matched an event."""

    model_config = {"frozen": True}

    rule_id: str
    type: str
    severity: Severity
    match_count: int = Field(ge=0)
    evidence: list[str] = Field(default_factory=list)
    description: str = ""


class ScanResult(BaseModel):
    """Output of the content scanner."""

    model_config = {"frozen": True}

    safe: bool
    risk_score: float = Field(ge=0.0, le=1.0)
    violations: list[Violation] = Field(default_factory=list)
    scanned_at: int
    error: str | None = Field(
        default=None,
        description="Set when the verdict is a fallback after a scanner failure.",
    )


class SpamReason(BaseModel):
    """One filter's contribution to a spam verdict."""

    model_config = {"frozen": True}

    filter: str
    reason: str
    score: float


class SpamVerdict(BaseModel):
    """Ensemble spam verdict."""

    model_config = {"frozen": True}

    is_spam: bool
    score: float = Field(ge=0.0, le=1.0)
    reasons: list[SpamReason] = Field(default_factory=list)
    threshold: float = 0.5
    error: str | None = None


class ComplianceViolation(BaseModel):
    """A regulatory rule the event failed."""

    model_config = {"frozen": True}

    rule: str
    severity: Severity
    description: str
    requirement: str


class ComplianceVerdict(BaseModel):
    """Output of the compliance checker."""

    model_config = {"frozen": True}

    compliant: bool
    violations: list[ComplianceViolation] = Field(default_factory=list)
    total_rules: int = 0
    error: str | None = None
