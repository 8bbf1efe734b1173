"""Scope and tenant checks for the MCP admin tools.

Checks run only when ``RELAYGUARD_AUTHZ_ENABLED`` is truthy. A token passes
a tool when it carries one of the tool's scopes (directly or through a
``role``/``roles`` claim) and, when the server is bound to a tenant, its
``tenant_id`` claim names that tenant.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from fastmcp.server.auth import AccessToken

from relayguard.auth import ADMIN_SCOPE

MODERATE_SCOPE = "relayguard:moderate"
AUDIT_READ_SCOPE = "relayguard:audit:read"

_ROLE_SCOPES: dict[str, set[str]] = {
    "analyst": {AUDIT_READ_SCOPE},
    "moderator": {AUDIT_READ_SCOPE, MODERATE_SCOPE},
    "admin": {AUDIT_READ_SCOPE, MODERATE_SCOPE, ADMIN_SCOPE},
}

_TOOL_REQUIRED_SCOPES: dict[str, set[str]] = {
    "evaluate_event": {MODERATE_SCOPE, ADMIN_SCOPE},
    "check_rate_limit": {MODERATE_SCOPE, ADMIN_SCOPE},
    "get_reputation": {MODERATE_SCOPE, AUDIT_READ_SCOPE, ADMIN_SCOPE},
    "query_audit_log": {AUDIT_READ_SCOPE, ADMIN_SCOPE},
    "compliance_report": {AUDIT_READ_SCOPE, ADMIN_SCOPE},
    "security_analytics": {AUDIT_READ_SCOPE, ADMIN_SCOPE},
    "set_rate_limit": {ADMIN_SCOPE},
    "reset_reputation": {ADMIN_SCOPE},
}

_AUTHZ_ENV = "RELAYGUARD_AUTHZ_ENABLED"


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    error_code: str | None = None
    message: str | None = None


def is_authorization_enabled() -> bool:
    """Return whether MCP authorization checks are enabled."""
    raw = os.getenv(_AUTHZ_ENV, "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _claims(token: AccessToken) -> dict[str, Any]:
    return token.claims if isinstance(token.claims, dict) else {}


def _extract_roles(claims: dict[str, Any]) -> set[str]:
    roles: set[str] = set()
    role = claims.get("role")
    if isinstance(role, str) and role.strip():
        roles.add(role.strip())

    role_list = claims.get("roles")
    if isinstance(role_list, list):
        for item in role_list:
            if isinstance(item, str) and item.strip():
                roles.add(item.strip())
    return roles


def _effective_scopes(token: AccessToken | None) -> set[str]:
    if token is None:
        return set()
    scopes = {scope.strip() for scope in token.scopes if scope.strip()}
    for role in _extract_roles(_claims(token)):
        scopes.update(_ROLE_SCOPES.get(role, set()))
    return scopes


def authorize_tool(
    tool_name: str,
    token: AccessToken | None,
    *,
    tenant_id: str | None = None,
) -> AuthorizationDecision:
    """Authorize access to a top-level MCP tool."""
    if not is_authorization_enabled():
        return AuthorizationDecision(allowed=True)

    required_scopes = _TOOL_REQUIRED_SCOPES.get(tool_name, {ADMIN_SCOPE})
    if not _effective_scopes(token).intersection(required_scopes):
        required = ", ".join(sorted(required_scopes))
        return AuthorizationDecision(
            allowed=False,
            error_code="forbidden",
            message=f"Insufficient scope for {tool_name}. Required one of: {required}.",
        )

    if tenant_id is not None and token is not None:
        token_tenant = _claims(token).get("tenant_id")
        if token_tenant != tenant_id:
            return AuthorizationDecision(
                allowed=False,
                error_code="wrong_tenant",
                message=f"Token is not scoped to tenant {tenant_id}.",
            )
    return AuthorizationDecision(allowed=True)


def acting_admin(token: AccessToken | None, admin: str | None) -> str | None:
    """Name recorded in the audit trail for an admin change."""
    if admin:
        return admin
    return token.client_id if token is not None else None
