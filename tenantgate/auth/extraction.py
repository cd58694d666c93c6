"""Bearer token extraction from the Authorization header or auth cookies."""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import unquote

from tenantgate.core.types import UserContext

DEFAULT_ADMIN_COOKIE = "saas_auth_token"
DEFAULT_TENANT_COOKIE = "tenant_auth_token"
DEFAULT_CONTEXT_HEADER = "x-auth-context"


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                return candidate
    return value


def bearer_from_header(authorization: str | None) -> str | None:
    """``Bearer <token>`` with exactly two space-separated parts, else None."""
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def parse_cookie_value(cookie_header: str, key: str) -> str | None:
    """Return the URL-decoded value of ``key``; empty values count as absent."""
    for part in cookie_header.split(";"):
        trimmed = part.strip()
        if not trimmed.startswith(f"{key}="):
            continue
        decoded = unquote(trimmed[len(key) + 1:])
        return decoded or None
    return None


def extract_token(
    headers: Mapping[str, str],
    *,
    admin_cookie: str = DEFAULT_ADMIN_COOKIE,
    tenant_cookie: str = DEFAULT_TENANT_COOKIE,
    context_header: str = DEFAULT_CONTEXT_HEADER,
) -> str | None:
    """Pick the request's credential.

    Precedence: a well-formed bearer header, then the cookie named by the
    auth-context hint header, then (no hint) the admin cookie before the
    tenant cookie.
    """
    bearer = bearer_from_header(_header(headers, "authorization"))
    if bearer:
        return bearer

    cookie_header = _header(headers, "cookie")
    if not cookie_header:
        return None

    hint = (_header(headers, context_header) or "").strip().lower()
    if hint == UserContext.SAAS_ADMIN.value:
        return parse_cookie_value(cookie_header, admin_cookie)
    if hint == UserContext.TENANT_USER.value:
        return parse_cookie_value(cookie_header, tenant_cookie)

    return parse_cookie_value(cookie_header, admin_cookie) or parse_cookie_value(
        cookie_header, tenant_cookie
    )
