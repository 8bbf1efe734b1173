"""Unit tests for the bounded audit log and its reports."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from relayguard.audit import AuditAction
from relayguard.audit import AuditEntry
from relayguard.audit import AuditLog
from relayguard.config import AuditConfig
from relayguard.errors import AuditWriteError

HOUR = 3_600


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _entry(
    action: AuditAction = AuditAction.CONTENT_SCAN,
    timestamp: int = 1_700_000_000,
    payload: dict | None = None,
) -> AuditEntry:
    return AuditEntry(timestamp=timestamp, action=action, payload=payload or {})


def _file_config(tmp_path: Path, **kwargs) -> AuditConfig:
    return AuditConfig(file_path=str(tmp_path / "audit.jsonl"), **kwargs)


# ---------------------------------------------------------------------------
# Bounded retention
# ---------------------------------------------------------------------------


class TestRetention:
    def test_capacity_plus_one_evicts_oldest_half(self):
        log = AuditLog(AuditConfig(capacity=10))
        for i in range(11):
            log.append(_entry(timestamp=i))

        assert len(log) <= 10
        timestamps = [e.timestamp for e in log.query(limit=100)]
        assert timestamps[-1] == 10
        assert timestamps == list(range(5, 11))

    def test_never_exceeds_capacity(self):
        log = AuditLog(AuditConfig(capacity=4))
        for i in range(100):
            log.append(_entry(timestamp=i))
            assert len(log) <= 4

    def test_tiny_capacity_rejected(self):
        with pytest.raises(ValueError):
            AuditLog(AuditConfig(capacity=1))

    def test_disabled_log_records_nothing(self):
        log = AuditLog(AuditConfig(enabled=False))
        log.append(_entry())
        assert len(log) == 0


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


class TestQuery:
    def _log(self) -> AuditLog:
        log = AuditLog()
        log.append(_entry(AuditAction.CONTENT_SCAN, timestamp=100))
        log.append(_entry(AuditAction.USER_BLOCKED, timestamp=200))
        log.append(_entry(AuditAction.CONTENT_SCAN, timestamp=300))
        log.append(_entry(AuditAction.USER_BLOCKED, timestamp=400))
        return log

    def test_filter_by_action(self):
        entries = self._log().query(action="user_blocked")
        assert [e.timestamp for e in entries] == [200, 400]

    def test_filter_by_since(self):
        entries = self._log().query(since=300)
        assert [e.timestamp for e in entries] == [300, 400]

    def test_limit_keeps_most_recent(self):
        entries = self._log().query(limit=2)
        assert [e.timestamp for e in entries] == [300, 400]

    def test_zero_limit(self):
        assert self._log().query(limit=0) == []

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            self._log().query(action="not_an_action")


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


class TestRecord:
    async def test_record_uses_log_clock(self, clock):
        log = AuditLog(clock=clock)
        entry = await log.record(AuditAction.REPUTATION_RESET, {"actor_id": "a"}, actor="admin")
        assert entry.timestamp == int(clock.now)
        assert entry.actor == "admin"
        assert log.query() == [entry]


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class TestComplianceReport:
    def test_counts_by_action_and_hour(self, clock):
        log = AuditLog(clock=clock)
        now = int(clock.now)
        base = now - now % HOUR
        log.append(_entry(AuditAction.USER_BLOCKED, timestamp=base + 10))
        log.append(_entry(AuditAction.USER_BLOCKED, timestamp=base + 20))
        log.append(_entry(AuditAction.CONTENT_HIDDEN, timestamp=base - HOUR + 5))
        log.append(_entry(AuditAction.CONTENT_SCAN, timestamp=now - 31 * 86_400))

        report = log.generate_compliance_report("30d")

        assert report.timeframe == "30d"
        assert report.generated_at == now
        assert report.total_actions == 3
        assert report.counts_by_action == {"user_blocked": 2, "content_hidden": 1}
        assert report.counts_by_hour == {base - HOUR: 1, base: 2}

    def test_seven_day_window(self, clock):
        log = AuditLog(clock=clock)
        now = int(clock.now)
        log.append(_entry(timestamp=now - 8 * 86_400))
        log.append(_entry(timestamp=now - 86_400))
        assert log.generate_compliance_report("7d").total_actions == 1
        assert log.generate_compliance_report("90d").total_actions == 2

    def test_integer_seconds_timeframe(self, clock):
        log = AuditLog(clock=clock)
        log.append(_entry(timestamp=int(clock.now) - 30))
        report = log.generate_compliance_report(60)
        assert report.timeframe == "60s"
        assert report.total_actions == 1

    def test_unknown_timeframe_falls_back(self, clock, caplog):
        log = AuditLog(clock=clock)
        with caplog.at_level(logging.WARNING, logger="relayguard.audit.store"):
            report = log.generate_compliance_report("fortnight")
        assert report.timeframe == "30d"
        assert "Unknown timeframe" in caplog.text


class TestSecurityAnalytics:
    def test_summary_and_top_violations(self, clock):
        log = AuditLog(clock=clock)
        now = int(clock.now)
        scan = {"violations": [{"type": "hate_speech"}, {"type": "spam"}]}
        log.append(_entry(AuditAction.CONTENT_SCAN, timestamp=now, payload=scan))
        log.append(
            _entry(
                AuditAction.CONTENT_SCAN,
                timestamp=now,
                payload={"violations": [{"type": "spam"}]},
            )
        )
        log.append(_entry(AuditAction.SPAM_DETECTION, timestamp=now))
        log.append(_entry(AuditAction.USER_BLOCKED, timestamp=now))
        log.append(_entry(AuditAction.USER_SHADOW_BANNED, timestamp=now - 2 * 86_400))

        analytics = log.security_analytics("24h")

        assert analytics.summary.total_security_events == 4
        assert analytics.summary.content_scans == 2
        assert analytics.summary.spam_detections == 1
        assert analytics.summary.user_blocks == 1
        assert analytics.summary.shadow_bans == 0
        assert analytics.top_violations == {"spam": 2, "hate_speech": 1}
        assert sum(analytics.hourly_activity.values()) == 4


# ---------------------------------------------------------------------------
# JSONL mirror
# ---------------------------------------------------------------------------


class TestJsonlMirror:
    async def test_entries_written_as_jsonl(self, tmp_path):
        log = AuditLog(_file_config(tmp_path))
        await log.log(_entry(AuditAction.USER_BLOCKED, payload={"target": "npub1"}))
        await log.log(_entry(AuditAction.CONTENT_HIDDEN))

        lines = (tmp_path / "audit.jsonl").read_text().strip().splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["action"] == "user_blocked"
        assert first["payload"] == {"target": "npub1"}

    async def test_read_persisted_filters(self, tmp_path):
        log = AuditLog(_file_config(tmp_path))
        await log.log(_entry(AuditAction.USER_BLOCKED, timestamp=10))
        await log.log(_entry(AuditAction.CONTENT_HIDDEN, timestamp=20))

        blocked = await log.read_persisted(action=AuditAction.USER_BLOCKED)
        assert [e.timestamp for e in blocked] == [10]
        assert [e.timestamp for e in await log.read_persisted(since=15)] == [20]

    async def test_read_persisted_skips_malformed_lines(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        path.write_text("not json\n" + _entry(timestamp=5).model_dump_json() + "\n")
        log = AuditLog(_file_config(tmp_path))
        assert [e.timestamp for e in await log.read_persisted()] == [5]

    async def test_read_persisted_without_file(self, tmp_path):
        assert await AuditLog().read_persisted() == []
        assert await AuditLog(_file_config(tmp_path)).read_persisted() == []

    async def test_write_failure_raises_after_memory_append(self, tmp_path):
        config = AuditConfig(file_path=str(tmp_path / "missing" / "audit.jsonl"))
        log = AuditLog(config)
        with pytest.raises(AuditWriteError):
            await log.log(_entry())
        assert len(log) == 1
