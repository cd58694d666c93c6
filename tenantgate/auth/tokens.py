"""Decoding of verified JWT payloads into typed AuthToken values."""

from __future__ import annotations

from typing import Any

from tenantgate.auth.jwt import AUDIENCE_SAAS_ADMIN, AUDIENCE_TENANT_USER, JWTManager
from tenantgate.core.exceptions import UnauthenticatedError
from tenantgate.core.types import (
    ModuleId,
    SaaSAdminToken,
    TenantId,
    TenantUserToken,
    UserContext,
    UserId,
)


class TokenCodec:
    """Turns bearer strings into SaaSAdminToken / TenantUserToken.

    Decoding only trusts the signed payload: permissions and active modules
    are taken verbatim from the claims. ``encode_*`` exists for development
    and tests; production tokens come from the login services.
    """

    def __init__(self, jwt: JWTManager) -> None:
        self._jwt = jwt

    # ── Decoding ─────────────────────────────────────────────────

    def decode_saas_admin(self, raw: str) -> SaaSAdminToken:
        payload = self._jwt.verify_token(raw, AUDIENCE_SAAS_ADMIN)
        if payload is None:
            raise UnauthenticatedError("Invalid or expired SaaS Admin token")
        if payload.get("context") != UserContext.SAAS_ADMIN.value:
            raise UnauthenticatedError("Invalid token context: expected saas_admin")

        user_id = payload.get("userId")
        role = payload.get("role")
        if not isinstance(user_id, str) or not user_id or not isinstance(role, str):
            raise UnauthenticatedError("Malformed SaaS Admin token")

        return SaaSAdminToken(user_id=UserId(user_id), role=role)

    def decode_tenant_user(self, raw: str) -> TenantUserToken:
        payload = self._jwt.verify_token(raw, AUDIENCE_TENANT_USER)
        if payload is None:
            raise UnauthenticatedError("Invalid or expired Tenant User token")
        if payload.get("context") != UserContext.TENANT_USER.value:
            raise UnauthenticatedError("Invalid token context: expected tenant_user")

        user_id = payload.get("userId")
        tenant_id = payload.get("tenantId")
        role = payload.get("role")
        if not all(isinstance(v, str) and v for v in (user_id, tenant_id)) or not isinstance(role, str):
            raise UnauthenticatedError("Malformed Tenant User token")

        permissions = _string_list(payload.get("permissions"))
        modules = _string_list(payload.get("activeModules"))
        if permissions is None or modules is None:
            raise UnauthenticatedError("Malformed Tenant User token")

        return TenantUserToken(
            user_id=UserId(user_id),
            tenant_id=TenantId(tenant_id),
            role=role,
            permissions=frozenset(permissions),
            active_modules=tuple(ModuleId(m) for m in modules),
        )

    # ── Encoding ─────────────────────────────────────────────────

    def encode_saas_admin(self, token: SaaSAdminToken) -> str:
        return self._jwt.create_token(
            {
                "context": UserContext.SAAS_ADMIN.value,
                "userId": token.user_id,
                "role": token.role,
            },
            audience=AUDIENCE_SAAS_ADMIN,
        )

    def encode_tenant_user(self, token: TenantUserToken) -> str:
        return self._jwt.create_token(
            {
                "context": UserContext.TENANT_USER.value,
                "userId": token.user_id,
                "tenantId": token.tenant_id,
                "role": token.role,
                "permissions": sorted(token.permissions),
                "activeModules": list(token.active_modules),
            },
            audience=AUDIENCE_TENANT_USER,
        )


def _string_list(value: Any) -> list[str] | None:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return None
    return value
