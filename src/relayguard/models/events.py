"""Inbound event model and shared enums."""

from __future__ import annotations

import time
import uuid
from enum import Enum

from pydantic import BaseModel
from pydantic import Field

# Nostr event kinds the engine treats specially
TEXT_NOTE_KIND = 1
ZAP_REQUEST_KIND = 9734
ZAP_RECEIPT_KIND = 9735


class Severity(str, Enum):
    """Violation severity, ordered from least to most serious."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def weight(self) -> float:
        return SEVERITY_WEIGHTS[self]


SEVERITY_WEIGHTS: dict[Severity, float] = {
    Severity.LOW: 0.1,
    Severity.MEDIUM: 0.3,
    Severity.HIGH: 0.6,
    Severity.CRITICAL: 0.9,
}


class ContentEvent(BaseModel):
    """A single signed forum event submitted for evaluation."""

    model_config = {"frozen": True}

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Event identifier (hex digest on the wire).",
    )
    actor_id: str = Field(
        description="Public key of the author.",
    )
    kind: int = Field(
        default=TEXT_NOTE_KIND,
        description="Integer event category.",
    )
    tags: tuple[tuple[str, ...], ...] = Field(
        default=(),
        description="Ordered tag tuples, e.g. ('p', '<pubkey>').",
    )
    content: str = Field(
        default="",
        description="Free-text body of the event.",
    )
    created_at: int = Field(
        default_factory=lambda: int(time.time()),
        description="Unix seconds when the event was created.",
    )
