"""MCP interface contract tests.

All tests use ``fastmcp.Client`` against an in-memory server, exercising
the full MCP protocol (serialization, validation) over a real
``ModerationService`` on a fake clock.
"""

from __future__ import annotations

import json

import pytest
from fastmcp.exceptions import ToolError

from relayguard.observability import latency_metrics_snapshot
from relayguard.observability import reset_latency_metrics


def _parse(result) -> dict:
    """Extract the JSON payload from a CallToolResult."""
    return json.loads(result.content[0].text)


class TestToolRegistry:
    async def test_lists_all_tools(self, mcp_client):
        tools = {tool.name for tool in await mcp_client.list_tools()}
        assert tools == {
            "evaluate_event",
            "check_rate_limit",
            "set_rate_limit",
            "query_audit_log",
            "compliance_report",
            "security_analytics",
            "get_reputation",
            "reset_reputation",
        }


# -----------------------------------------------------------------------
# evaluate_event
# -----------------------------------------------------------------------


class TestEvaluateEvent:
    async def test_clean_event(self, mcp_client):
        data = _parse(
            await mcp_client.call_tool(
                "evaluate_event", {"actor_id": "npub1", "content": "hello relay"}
            )
        )
        assert data["status"] == "ok"
        assert data["result"]["scan_result"]["safe"] is True
        assert data["result"]["actions"] == []

    async def test_violation_returns_actions(self, mcp_client):
        data = _parse(
            await mcp_client.call_tool(
                "evaluate_event",
                {"actor_id": "npub1", "content": "hate hate", "event_id": "evt1"},
            )
        )
        result = data["result"]
        assert result["event_id"] == "evt1"
        assert [a["type"] for a in result["actions"]] == ["block", "report"]

    async def test_tags_and_kind(self, mcp_client):
        data = _parse(
            await mcp_client.call_tool(
                "evaluate_event",
                {
                    "actor_id": "npub1",
                    "content": "zap of 25000 sats",
                    "kind": 9735,
                    "tags": [["p", "abc"]],
                },
            )
        )
        rules = [v["rule"] for v in data["result"]["compliance_verdict"]["violations"]]
        assert "kyc_aml" in rules

    async def test_strict_mode_override(self, mcp_client):
        data = _parse(
            await mcp_client.call_tool(
                "evaluate_event",
                {
                    "actor_id": "npub1",
                    "content": "buy now, click here, free money",
                    "strict_mode": True,
                },
            )
        )
        assert data["result"]["scan_result"]["safe"] is False

    async def test_rejects_missing_actor(self, mcp_client):
        with pytest.raises(Exception):
            await mcp_client.call_tool("evaluate_event", {"content": "hello"})

    async def test_records_tool_latency(self, mcp_client):
        reset_latency_metrics()
        await mcp_client.call_tool("evaluate_event", {"actor_id": "npub1", "content": "hi"})
        assert latency_metrics_snapshot()["mcp.evaluate_event"]["count"] == 1


# -----------------------------------------------------------------------
# Rate limiting
# -----------------------------------------------------------------------


class TestRateLimitTools:
    async def test_unconfigured_is_unlimited(self, mcp_client):
        data = _parse(
            await mcp_client.call_tool("check_rate_limit", {"identifier": "10.0.0.1"})
        )
        assert data["allowed"] is True
        assert data["remaining"] is None

    async def test_set_then_enforce(self, mcp_client):
        data = _parse(
            await mcp_client.call_tool(
                "set_rate_limit",
                {"identifier": "10.0.0.1", "window": 60, "max_requests": 2, "admin": "root"},
            )
        )
        assert data["status"] == "ok"
        assert data["limits"]["max_requests"] == 2

        allowed = [
            _parse(
                await mcp_client.call_tool("check_rate_limit", {"identifier": "10.0.0.1"})
            )["allowed"]
            for _ in range(3)
        ]
        assert allowed == [True, True, False]

    async def test_invalid_limits_rejected(self, mcp_client):
        data = _parse(
            await mcp_client.call_tool(
                "set_rate_limit", {"identifier": "10.0.0.1", "strategy": "leaky_bucket"}
            )
        )
        assert data["status"] == "rejected"
        assert data["error_code"] == "invalid_rate_limit"

    async def test_unknown_type_is_tool_error(self, mcp_client):
        with pytest.raises(Exception):
            await mcp_client.call_tool(
                "check_rate_limit", {"identifier": "x", "type": "planet"}
            )


# -----------------------------------------------------------------------
# Audit and reporting
# -----------------------------------------------------------------------


class TestAuditTools:
    async def test_query_audit_log(self, mcp_client):
        await mcp_client.call_tool("evaluate_event", {"actor_id": "npub1", "content": "hi"})
        data = _parse(
            await mcp_client.call_tool("query_audit_log", {"action": "content_scan"})
        )
        assert data["returned"] == 1
        assert data["entries"][0]["actor"] == "npub1"

    async def test_compliance_report(self, mcp_client):
        await mcp_client.call_tool("evaluate_event", {"actor_id": "npub1", "content": "hi"})
        data = _parse(await mcp_client.call_tool("compliance_report", {"timeframe": "7d"}))
        assert data["timeframe"] == "7d"
        assert data["total_actions"] == 3
        assert data["counts_by_action"]["content_scan"] == 1

    async def test_security_analytics(self, mcp_client):
        await mcp_client.call_tool(
            "evaluate_event", {"actor_id": "npub1", "content": "hate hate"}
        )
        data = _parse(await mcp_client.call_tool("security_analytics", {}))
        assert data["timeframe"] == "24h"
        assert data["summary"]["content_scans"] == 1
        assert data["top_violations"] == {"hate_speech": 1}


# -----------------------------------------------------------------------
# Reputation
# -----------------------------------------------------------------------


class TestReputationTools:
    async def test_get_reputation_defaults(self, mcp_client):
        data = _parse(await mcp_client.call_tool("get_reputation", {"actor_id": "npub9"}))
        assert data["actor_id"] == "npub9"
        assert data["violation_count"] == 0
        assert data["trust_score"] == 0.8

    async def test_reset_after_violation(self, mcp_client):
        await mcp_client.call_tool("evaluate_event", {"actor_id": "npub1", "content": "hate"})
        before = _parse(await mcp_client.call_tool("get_reputation", {"actor_id": "npub1"}))
        assert before["violation_count"] == 1

        after = _parse(
            await mcp_client.call_tool(
                "reset_reputation", {"actor_id": "npub1", "admin": "root"}
            )
        )
        assert after["violation_count"] == 0


# -----------------------------------------------------------------------
# Authorization
# -----------------------------------------------------------------------


class TestAuthorization:
    async def test_open_when_authz_disabled(self, mcp_client, monkeypatch):
        monkeypatch.delenv("RELAYGUARD_AUTHZ_ENABLED", raising=False)
        data = _parse(await mcp_client.call_tool("get_reputation", {"actor_id": "npub1"}))
        assert data["actor_id"] == "npub1"

    async def test_evaluate_rejected_without_token(self, mcp_client, monkeypatch):
        monkeypatch.setenv("RELAYGUARD_AUTHZ_ENABLED", "1")
        data = _parse(
            await mcp_client.call_tool(
                "evaluate_event", {"actor_id": "npub1", "content": "hate"}
            )
        )
        assert data["status"] == "rejected"
        assert data["error_code"] == "forbidden"
        assert data.get("result") is None

    async def test_set_rate_limit_rejected_without_token(self, mcp_client, monkeypatch):
        monkeypatch.setenv("RELAYGUARD_AUTHZ_ENABLED", "1")
        data = _parse(
            await mcp_client.call_tool("set_rate_limit", {"identifier": "10.0.0.1"})
        )
        assert data["status"] == "rejected"
        assert data["error_code"] == "forbidden"

    async def test_reset_reputation_raises_without_token(self, mcp_client, monkeypatch):
        monkeypatch.setenv("RELAYGUARD_AUTHZ_ENABLED", "1")
        with pytest.raises(ToolError, match="Insufficient scope for reset_reputation"):
            await mcp_client.call_tool("reset_reputation", {"actor_id": "npub1"})
