"""Bounded in-memory audit log with an optional async JSONL mirror.

The in-memory sequence is the source of truth for queries and reports.
When it grows past ``capacity`` the oldest ``capacity // 2`` entries are
dropped in one slice. Appends, eviction and reader snapshots all happen
under one lock, so a query sees the log either before or after an
eviction, never half-way.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from collections.abc import Callable
from functools import partial
from pathlib import Path
from threading import Lock

from pydantic import ValidationError

from relayguard.audit.schemas import AnalyticsSummary
from relayguard.audit.schemas import AuditAction
from relayguard.audit.schemas import AuditEntry
from relayguard.audit.schemas import ComplianceReport
from relayguard.audit.schemas import SecurityAnalytics
from relayguard.config import AuditConfig
from relayguard.errors import AuditWriteError

logger = logging.getLogger(__name__)

TIMEFRAMES: dict[str, int] = {
    "1h": 3_600,
    "24h": 86_400,
    "7d": 604_800,
    "30d": 2_592_000,
    "90d": 7_776_000,
}

_HOUR = 3_600


def timeframe_seconds(timeframe: str | int, *, default: str) -> tuple[str, int]:
    """Resolve a timeframe label (or raw seconds) to ``(label, seconds)``."""
    if isinstance(timeframe, int):
        if timeframe <= 0:
            raise ValueError("timeframe must be > 0 seconds")
        return f"{timeframe}s", timeframe
    if timeframe in TIMEFRAMES:
        return timeframe, TIMEFRAMES[timeframe]
    logger.warning("Unknown timeframe %r, falling back to %s", timeframe, default)
    return default, TIMEFRAMES[default]


def _hour_bucket(timestamp: int) -> int:
    return timestamp // _HOUR * _HOUR


class AuditLog:
    """Append-only, capacity-bounded audit trail."""

    def __init__(
        self,
        config: AuditConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = config or AuditConfig()
        if self.config.capacity < 2:
            raise ValueError("capacity must be >= 2")
        self._clock = clock or time.time
        self._entries: list[AuditEntry] = []
        self._lock = Lock()
        self._file_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def append(self, entry: AuditEntry) -> None:
        """Add *entry*; evict the oldest half in bulk when over capacity."""
        if not self.config.enabled:
            return
        capacity = self.config.capacity
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) > capacity:
                self._entries = self._entries[capacity // 2 :]

    async def log(self, entry: AuditEntry) -> None:
        """Append *entry* and mirror it to the JSONL file when configured.

        Raises ``AuditWriteError`` when the mirror write fails; the
        in-memory append has already happened by then.
        """
        self.append(entry)
        if not self.config.enabled or self.config.file_path is None:
            return
        line = entry.model_dump_json() + "\n"
        try:
            async with self._file_lock:
                await asyncio.to_thread(
                    partial(self._write_line, self.config.file_path, line),
                )
        except OSError as exc:
            raise AuditWriteError(
                f"Could not write audit entry to {self.config.file_path}: {exc}"
            ) from exc

    @staticmethod
    def _write_line(path: str, line: str) -> None:
        with open(path, "a") as fh:
            fh.write(line)

    async def record(
        self,
        action: AuditAction,
        payload: dict | None = None,
        *,
        actor: str | None = None,
    ) -> AuditEntry:
        """Build an entry stamped with the log's clock and ``log`` it."""
        entry = AuditEntry(
            timestamp=int(self._clock()),
            action=action,
            actor=actor,
            payload=payload or {},
        )
        await self.log(entry)
        return entry

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _snapshot(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def query(
        self,
        *,
        action: AuditAction | str | None = None,
        since: int | None = None,
        limit: int = 100,
    ) -> list[AuditEntry]:
        """Return the most recent *limit* matching entries, oldest first."""
        if limit <= 0:
            return []
        wanted = AuditAction(action) if action is not None else None
        matches = [
            entry
            for entry in self._snapshot()
            if (wanted is None or entry.action == wanted)
            and (since is None or entry.timestamp >= since)
        ]
        return matches[-limit:]

    def generate_compliance_report(self, timeframe: str | int = "30d") -> ComplianceReport:
        """Aggregate entries in the trailing window by action and by hour."""
        label, seconds = timeframe_seconds(timeframe, default="30d")
        now = int(self._clock())
        since = now - seconds
        entries = [e for e in self._snapshot() if e.timestamp >= since]

        by_action = Counter(e.action.value for e in entries)
        by_hour = Counter(_hour_bucket(e.timestamp) for e in entries)
        return ComplianceReport(
            timeframe=label,
            generated_at=now,
            since=since,
            total_actions=len(entries),
            counts_by_action=dict(by_action),
            counts_by_hour=dict(sorted(by_hour.items())),
        )

    def security_analytics(self, timeframe: str | int = "24h") -> SecurityAnalytics:
        """Moderation summary, top violation types and hourly activity."""
        label, seconds = timeframe_seconds(timeframe, default="24h")
        now = int(self._clock())
        entries = [e for e in self._snapshot() if e.timestamp >= now - seconds]

        counts = Counter(e.action for e in entries)
        top_violations: Counter[str] = Counter()
        for entry in entries:
            if entry.action is AuditAction.CONTENT_SCAN:
                for violation in entry.payload.get("violations", []):
                    top_violations[violation.get("type", "unknown")] += 1

        return SecurityAnalytics(
            timeframe=label,
            generated_at=now,
            summary=AnalyticsSummary(
                total_security_events=len(entries),
                content_scans=counts[AuditAction.CONTENT_SCAN],
                spam_detections=counts[AuditAction.SPAM_DETECTION],
                moderation_actions=counts[AuditAction.MODERATION_ACTION],
                user_blocks=counts[AuditAction.USER_BLOCKED],
                shadow_bans=counts[AuditAction.USER_SHADOW_BANNED],
            ),
            top_violations=dict(top_violations.most_common()),
            hourly_activity=dict(sorted(Counter(_hour_bucket(e.timestamp) for e in entries).items())),
        )

    async def read_persisted(
        self,
        *,
        action: AuditAction | None = None,
        since: int | None = None,
    ) -> list[AuditEntry]:
        """Read entries back from the JSONL mirror, optionally filtered."""
        if self.config.file_path is None:
            return []
        path = Path(self.config.file_path)
        if not path.exists():
            return []

        async with self._file_lock:
            raw = await asyncio.to_thread(path.read_text)
        entries: list[AuditEntry] = []
        for line_no, line in enumerate(raw.strip().splitlines(), start=1):
            try:
                entry = AuditEntry.model_validate_json(line)
            except ValidationError:
                logger.warning(
                    "Skipping malformed audit entry line %d in %s",
                    line_no,
                    path,
                )
                continue
            if action is not None and entry.action != action:
                continue
            if since is not None and entry.timestamp < since:
                continue
            entries.append(entry)
        return entries
