"""MCP authorization policy helpers.

Each tool needs one of a small set of scopes.  Tokens carry scopes
directly, or a ``role`` / ``roles`` claim that expands to scopes.
Checks are off unless ``MCP_AUTHZ_ENABLED`` is truthy.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from fastmcp.server.auth import AccessToken

READ_SCOPE = "catlogs:logs:read"
WRITE_SCOPE = "catlogs:logs:write"
ADMIN_SCOPE = "catlogs:logs:admin"

_ROLE_SCOPES: dict[str, set[str]] = {
    "viewer": {READ_SCOPE},
    "editor": {READ_SCOPE, WRITE_SCOPE},
    "admin": {READ_SCOPE, WRITE_SCOPE, ADMIN_SCOPE},
}

_TOOL_REQUIRED_SCOPES: dict[str, set[str]] = {
    "get_logs": {READ_SCOPE},
    "get_archived_logs": {READ_SCOPE},
    "get_log_stats": {READ_SCOPE},
    "get_recent_activity": {READ_SCOPE},
    "export_logs": {READ_SCOPE},
    "create_log": {WRITE_SCOPE},
    "record_activity": {WRITE_SCOPE},
    # Archive maintenance moves or destroys data.
    "archive_logs": {ADMIN_SCOPE},
    "get_archive_progress": {ADMIN_SCOPE},
    "get_archive_final_result": {ADMIN_SCOPE},
    "delete_archived_logs": {ADMIN_SCOPE},
    "get_delete_progress": {ADMIN_SCOPE},
    "get_delete_final_result": {ADMIN_SCOPE},
    "fix_log_levels": {ADMIN_SCOPE},
}

_WILDCARD_SCOPE = "catlogs:all"
_AUTHZ_ENV = "MCP_AUTHZ_ENABLED"


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    error_code: str | None = None
    message: str | None = None


def is_authorization_enabled() -> bool:
    raw = os.getenv(_AUTHZ_ENV, "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _extract_roles(claims: dict[str, Any]) -> set[str]:
    roles: set[str] = set()
    role = claims.get("role")
    if isinstance(role, str) and role.strip():
        roles.add(role.strip())

    role_list = claims.get("roles")
    if isinstance(role_list, list):
        roles.update(
            item.strip() for item in role_list if isinstance(item, str) and item.strip()
        )
    return roles


def effective_scopes(token: AccessToken | None) -> set[str]:
    """Return the token's scopes plus those granted by its roles."""
    if token is None:
        return set()

    scopes = {scope.strip() for scope in token.scopes if scope.strip()}
    if _WILDCARD_SCOPE in scopes:
        return {_WILDCARD_SCOPE}

    claims = token.claims if isinstance(token.claims, dict) else {}
    for role in _extract_roles(claims):
        scopes.update(_ROLE_SCOPES.get(role, set()))
    return scopes


def authorize_tool(tool_name: str, token: AccessToken | None) -> AuthorizationDecision:
    """Authorize access to a top-level MCP tool.

    Unknown tool names are denied when authorization is enabled.
    """
    if not is_authorization_enabled():
        return AuthorizationDecision(allowed=True)

    token_scopes = effective_scopes(token)
    if _WILDCARD_SCOPE in token_scopes:
        return AuthorizationDecision(allowed=True)

    required_scopes = _TOOL_REQUIRED_SCOPES.get(tool_name, {ADMIN_SCOPE})
    if token_scopes.isdisjoint(required_scopes):
        required = ", ".join(sorted(required_scopes))
        return AuthorizationDecision(
            allowed=False,
            error_code="forbidden",
            message=f"Insufficient scope for {tool_name}. Required one of: {required}.",
        )
    return AuthorizationDecision(allowed=True)
