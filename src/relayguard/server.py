"""RelayGuard — FastMCP admin surface over a ``ModerationService``.

``create_server(service)`` registers the tools on a fresh ``FastMCP``
instance bound to that service; nothing is held at module level, so tests
and multi-tenant hosts can run several servers side by side.
"""

from __future__ import annotations

import os
from time import perf_counter
from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.auth import AccessToken
from fastmcp.server.auth import TokenVerifier
from fastmcp.server.dependencies import get_access_token
from pydantic import BaseModel
from pydantic import Field
from redis.asyncio import Redis  # type: ignore[import-untyped]

from relayguard.audit import AuditEntry
from relayguard.audit import ComplianceReport
from relayguard.audit import SecurityAnalytics
from relayguard.auth import create_admin_auth
from relayguard.authz import acting_admin
from relayguard.authz import authorize_tool
from relayguard.authz import AuthorizationDecision
from relayguard.config import AuditConfig
from relayguard.config import ModerationOptions
from relayguard.errors import RateLimiterConfigError
from relayguard.errors import ScanError
from relayguard.models import Reputation
from relayguard.observability import record_latency
from relayguard.ratelimit import RateLimitDecision
from relayguard.ratelimit import RateLimitRule
from relayguard.ratelimit import SLIDING_WINDOW
from relayguard.reputation import RedisReputationBackend
from relayguard.service import EvaluationResult
from relayguard.service import ModerationService

# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class EvaluateEventResult(BaseModel):
    status: str = Field(description="'ok' or 'rejected'.")
    error_code: str | None = None
    message: str | None = None
    result: EvaluationResult | None = None


class SetRateLimitResult(BaseModel):
    status: str
    identifier: str
    error_code: str | None = None
    message: str | None = None
    limits: dict[str, Any] = Field(default_factory=dict)


class AuditQueryResult(BaseModel):
    entries: list[AuditEntry] = Field(default_factory=list)
    returned: int = 0


def _timed(operation: str, start: float, ok: bool) -> None:
    record_latency(
        operation=f"mcp.{operation}",
        duration_ms=(perf_counter() - start) * 1000,
        ok=ok,
    )


def create_server(
    service: ModerationService,
    *,
    name: str = "RelayGuard",
    auth: TokenVerifier | None = None,
    tenant_id: str | None = None,
) -> FastMCP:
    """Build a FastMCP server whose tools delegate to *service*.

    When *tenant_id* is set, authorized calls must carry a token whose
    ``tenant_id`` claim names that tenant.
    """
    mcp = FastMCP(name, auth=auth)

    def _authorize(tool_name: str) -> tuple[AuthorizationDecision, AccessToken | None]:
        token = get_access_token()
        return authorize_tool(tool_name, token, tenant_id=tenant_id), token

    def _require(tool_name: str) -> AccessToken | None:
        decision, token = _authorize(tool_name)
        if not decision.allowed:
            raise ToolError(decision.message)
        return token

    @mcp.tool
    async def evaluate_event(
        actor_id: str,
        content: str,
        kind: int = 1,
        tags: list[list[str]] | None = None,
        event_id: str | None = None,
        created_at: int | None = None,
        strict_mode: bool | None = None,
    ) -> EvaluateEventResult:
        """Scan, spam-check and compliance-check an event and decide actions.

        Args:
            actor_id: Public key of the author.
            content: Event body.
            kind: Integer event kind.
            tags: Ordered tag lists.
            event_id: Event id; generated when omitted.
            created_at: Unix seconds; defaults to now.
            strict_mode: Override the service's strict-mode flag.
        """
        decision, _ = _authorize("evaluate_event")
        if not decision.allowed:
            return EvaluateEventResult(
                status="rejected", error_code=decision.error_code, message=decision.message
            )
        start = perf_counter()
        ok = False
        try:
            raw: dict[str, Any] = {
                "actor_id": actor_id,
                "content": content,
                "kind": kind,
                "tags": [tuple(tag) for tag in tags or []],
            }
            if event_id is not None:
                raw["id"] = event_id
            if created_at is not None:
                raw["created_at"] = created_at
            options = service.options
            if strict_mode is not None:
                options = ModerationOptions(
                    strict_mode=strict_mode,
                    enable_content_scanning=options.enable_content_scanning,
                    enable_spam_detection=options.enable_spam_detection,
                    enable_automated_moderation=options.enable_automated_moderation,
                    enable_compliance=options.enable_compliance,
                )
            try:
                result = await service.evaluate(raw, options)
            except ScanError as exc:
                return EvaluateEventResult(
                    status="rejected", error_code="invalid_event", message=str(exc)
                )
            ok = True
            return EvaluateEventResult(status="ok", result=result)
        finally:
            _timed("evaluate_event", start, ok)

    @mcp.tool
    async def check_rate_limit(
        identifier: str,
        type: str = "ip",
        dimension: str = "requests",
        cost: int = 1,
    ) -> RateLimitDecision:
        """Consume capacity for one request and report whether it is allowed.

        Args:
            identifier: IP address, actor public key or tenant id.
            type: One of ip, actor, tenant.
            dimension: One of requests, events, bytes.
            cost: Units consumed (bytes for the bytes dimension).
        """
        _require("check_rate_limit")
        start = perf_counter()
        ok = False
        try:
            decision = service.check_rate_limit(identifier, type, dimension, cost)
            ok = True
            return decision
        finally:
            _timed("check_rate_limit", start, ok)

    @mcp.tool
    async def set_rate_limit(
        identifier: str,
        type: str = "ip",
        window: int = 3600,
        max_requests: int | None = 1000,
        max_events: int | None = 500,
        max_bytes: int | None = 10 * 1024 * 1024,
        strategy: str = SLIDING_WINDOW,
        admin: str | None = None,
    ) -> SetRateLimitResult:
        """Install sliding-window limits for an identifier.

        Args:
            identifier: IP address, actor public key or tenant id.
            type: One of ip, actor, tenant.
            window: Window length in seconds.
            max_requests: Requests allowed per window.
            max_events: Events allowed per window.
            max_bytes: Bytes allowed per window.
            strategy: sliding_window (fixed_window and token_bucket are
                accepted and enforced as sliding_window).
            admin: Administrator recorded in the audit trail.
        """
        decision, token = _authorize("set_rate_limit")
        if not decision.allowed:
            return SetRateLimitResult(
                status="rejected",
                identifier=identifier,
                error_code=decision.error_code,
                message=decision.message,
            )
        try:
            rule = RateLimitRule(
                type=type,
                window=window,
                max_requests=max_requests,
                max_events=max_events,
                max_bytes=max_bytes,
                strategy=strategy,
            )
        except RateLimiterConfigError as exc:
            return SetRateLimitResult(
                status="rejected",
                identifier=identifier,
                error_code="invalid_rate_limit",
                message=str(exc),
            )
        await service.set_rate_limit(identifier, rule, admin=acting_admin(token, admin))
        return SetRateLimitResult(
            status="ok",
            identifier=identifier,
            limits={
                "type": rule.type.value,
                "window": rule.window,
                "max_requests": rule.max_requests,
                "max_events": rule.max_events,
                "max_bytes": rule.max_bytes,
                "strategy": rule.strategy,
            },
        )

    @mcp.tool
    async def query_audit_log(
        action: str | None = None,
        since: int | None = None,
        limit: int = 100,
    ) -> AuditQueryResult:
        """Return the most recent audit entries, optionally filtered.

        Args:
            action: Audit action name, e.g. user_blocked.
            since: Only entries at or after this unix timestamp.
            limit: Maximum entries returned.
        """
        _require("query_audit_log")
        entries = service.audit_log.query(action=action, since=since, limit=limit)
        return AuditQueryResult(entries=entries, returned=len(entries))

    @mcp.tool
    async def compliance_report(timeframe: str = "30d") -> ComplianceReport:
        """Aggregate audit entries by action and hour (7d, 30d, 90d, ...)."""
        _require("compliance_report")
        return service.audit_log.generate_compliance_report(timeframe)

    @mcp.tool
    async def security_analytics(timeframe: str = "24h") -> SecurityAnalytics:
        """Summarize scans, spam detections and enforcement (1h, 24h, 7d, 30d)."""
        _require("security_analytics")
        return service.audit_log.security_analytics(timeframe)

    @mcp.tool
    async def get_reputation(actor_id: str) -> Reputation:
        """Return the current reputation of an actor."""
        _require("get_reputation")
        return await service.get_reputation(actor_id)

    @mcp.tool
    async def reset_reputation(actor_id: str, admin: str | None = None) -> Reputation:
        """Clear an actor's violation history."""
        token = _require("reset_reputation")
        return await service.reset_reputation(actor_id, admin=acting_admin(token, admin))

    return mcp


def create_server_from_env() -> FastMCP:
    """Build a service and server from ``RELAYGUARD_*`` environment variables.

    - ``RELAYGUARD_REDIS_URL``: persist reputations in Redis.
    - ``RELAYGUARD_AUDIT_FILE``: mirror the audit log to a JSONL file.
    - ``RELAYGUARD_ADMIN_TOKEN``: require this bearer token on HTTP transports.
    - ``RELAYGUARD_TENANT_ID``: bind the server to one tenant.
    - ``RELAYGUARD_AUTHZ_ENABLED``: enforce per-tool scopes.
    """
    redis_url = os.getenv("RELAYGUARD_REDIS_URL", "").strip()
    audit_file = os.getenv("RELAYGUARD_AUDIT_FILE", "").strip()
    service = ModerationService.create(
        reputation_backend=(
            RedisReputationBackend(Redis.from_url(redis_url)) if redis_url else None
        ),
        audit_config=AuditConfig(file_path=audit_file or None),
    )
    tenant_id = os.getenv("RELAYGUARD_TENANT_ID", "").strip() or None
    return create_server(service, auth=create_admin_auth(), tenant_id=tenant_id)


def main() -> None:
    create_server_from_env().run()
