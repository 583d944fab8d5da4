"""Bearer-key authentication for the catlogs MCP server.

Two static keys are supported.  ``MCP_AUTH_KEY`` is the back-office key
whose scopes and role come from ``MCP_AUTH_SCOPES`` / ``MCP_AUTH_ROLE``.
``MCP_AUTH_READONLY_KEY`` is an optional second key for dashboards; it
is limited to the read scope and the ``viewer`` role.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field

from fastmcp.server.auth import AccessToken
from fastmcp.server.auth import TokenVerifier

from catlogs.authz import READ_SCOPE

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "catlogs:all"
CLIENT_ID = "catlogs-client"
READONLY_CLIENT_ID = "catlogs-dashboard"


@dataclass(frozen=True)
class APIKey:
    """One accepted bearer key and the grants it carries."""

    secret: str
    client_id: str = CLIENT_ID
    scopes: tuple[str, ...] = (DEFAULT_SCOPE,)
    claims: Mapping[str, object] = field(default_factory=dict)


def _fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


class APIKeyVerifier(TokenVerifier):
    """Matches the presented bearer token against a fixed set of keys."""

    def __init__(self, keys: Sequence[APIKey]) -> None:
        if not keys:
            raise ValueError("at least one API key is required")
        for key in keys:
            if not key.secret.strip():
                raise ValueError("api_key must be a non-empty, non-whitespace string")
        super().__init__()
        self._keys = [
            APIKey(
                secret=key.secret.strip(),
                client_id=key.client_id,
                scopes=tuple(key.scopes) or (DEFAULT_SCOPE,),
                claims=dict(key.claims),
            )
            for key in keys
        ]

    async def verify_token(self, token: str) -> AccessToken | None:
        # Every key is compared, even after a match.
        matched = None
        for key in self._keys:
            if hmac.compare_digest(token, key.secret) and matched is None:
                matched = key
        if matched is not None:
            return AccessToken(
                token=token,
                client_id=matched.client_id,
                scopes=list(matched.scopes),
                expires_at=None,
                claims=dict(matched.claims),
            )

        logger.debug(
            "Rejected MCP bearer token (token_len=%d, token_fp=%s)",
            len(token),
            _fingerprint(token),
        )
        return None


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


def _env(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    stripped = raw.strip()
    return stripped or None


def get_mcp_auth_key() -> str | None:
    """Return ``MCP_AUTH_KEY``, or None when unset or blank."""
    return _env("MCP_AUTH_KEY")


def get_mcp_readonly_key() -> str | None:
    return _env("MCP_AUTH_READONLY_KEY")


def get_mcp_auth_scopes() -> list[str]:
    """Parse the comma-separated ``MCP_AUTH_SCOPES`` list."""
    raw = os.getenv("MCP_AUTH_SCOPES", "")
    parsed = [scope.strip() for scope in raw.split(",") if scope.strip()]
    return parsed or [DEFAULT_SCOPE]


def get_mcp_auth_role() -> str | None:
    return _env("MCP_AUTH_ROLE")


def configured_keys() -> list[APIKey]:
    """Return the keys configured through the environment."""
    keys: list[APIKey] = []
    primary = get_mcp_auth_key()
    if primary is not None:
        claims: dict[str, object] = {}
        role = get_mcp_auth_role()
        if role is not None:
            claims["role"] = role
        keys.append(
            APIKey(secret=primary, scopes=tuple(get_mcp_auth_scopes()), claims=claims)
        )
    readonly = get_mcp_readonly_key()
    if readonly is not None:
        keys.append(
            APIKey(
                secret=readonly,
                client_id=READONLY_CLIENT_ID,
                scopes=(READ_SCOPE,),
                claims={"role": "viewer"},
            )
        )
    return keys


def create_mcp_auth() -> APIKeyVerifier | None:
    """Build a verifier when any key is configured, else None."""
    keys = configured_keys()
    if not keys:
        return None
    logger.info("MCP bearer auth enabled for %d key(s)", len(keys))
    return APIKeyVerifier(keys)
