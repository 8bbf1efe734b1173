"""Admin authentication for the MCP surface."""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
from collections.abc import Mapping

from fastmcp.server.auth import AccessToken
from fastmcp.server.auth import TokenVerifier

logger = logging.getLogger(__name__)

ADMIN_SCOPE = "relayguard:admin"


class AdminTokenVerifier(TokenVerifier):
    """Static bearer-token verifier for relay administrators."""

    def __init__(
        self,
        admin_token: str,
        *,
        scopes: list[str] | None = None,
        claims: Mapping[str, object] | None = None,
    ) -> None:
        normalized = admin_token.strip()
        if not normalized:
            raise ValueError("admin_token must be a non-empty, non-whitespace string")
        super().__init__()
        self._admin_token = normalized
        self._scopes = scopes[:] if scopes else [ADMIN_SCOPE]
        self._claims = dict(claims or {})

    async def verify_token(self, token: str) -> AccessToken | None:
        """Return an access token when the provided bearer token is valid."""
        if hmac.compare_digest(token, self._admin_token):
            return AccessToken(
                token=token,
                client_id="relayguard-admin",
                scopes=self._scopes,
                expires_at=None,
                claims=self._claims,
            )

        token_fingerprint = hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]
        logger.debug(
            "Invalid admin token provided (token_len=%d, token_fp=%s)",
            len(token),
            token_fingerprint,
        )
        return None


def get_admin_token() -> str | None:
    """Get the admin token from ``RELAYGUARD_ADMIN_TOKEN``."""
    token = os.getenv("RELAYGUARD_ADMIN_TOKEN")
    if token is None:
        return None
    stripped = token.strip()
    return stripped if stripped else None


def get_admin_scopes() -> list[str]:
    """Get scopes from the comma-separated ``RELAYGUARD_ADMIN_SCOPES``."""
    raw = os.getenv("RELAYGUARD_ADMIN_SCOPES", "")
    parsed = [scope.strip() for scope in raw.split(",") if scope.strip()]
    return parsed if parsed else [ADMIN_SCOPE]


def create_admin_auth() -> AdminTokenVerifier | None:
    """Create a verifier when ``RELAYGUARD_ADMIN_TOKEN`` is configured."""
    token = get_admin_token()
    if token:
        tenant = os.getenv("RELAYGUARD_TENANT_ID", "").strip()
        claims: dict[str, object] = {"tenant_id": tenant} if tenant else {}
        return AdminTokenVerifier(token, scopes=get_admin_scopes(), claims=claims)
    return None
