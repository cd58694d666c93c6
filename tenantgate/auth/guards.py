"""Auth guard chain — authenticate, resolve tenant, then gate on module and permission.

Each guard is a coroutine taking a ``GuardContext`` and returning a result
or raising a ``GuardError`` subclass. Module and permission guards run the
tenant-user guard first, so a request is always authenticated before it is
authorized.

The module guard trusts ``active_modules`` embedded in the token at issuance.
It does not consult the live activation table; a module disabled after the
token was issued stays reachable until the token expires.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from tenantgate.auth.tokens import TokenCodec
from tenantgate.core.exceptions import (
    ModuleAccessDeniedError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from tenantgate.core.types import (
    GuardStage,
    ModuleId,
    SaaSAdminToken,
    TenantId,
    TenantUserToken,
)

TENANT_HEADER = "x-tenant-id"
TENANT_PATH_PARAM = "tenantId"


@dataclass(frozen=True)
class GuardContext:
    """Per-request guard input built by the dispatcher."""

    token: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    subdomain: str | None = None
    path_params: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SaaSAdminGuardResult:
    token: SaaSAdminToken
    stages: tuple[GuardStage, ...] = (GuardStage.TOKEN_VALIDATED, GuardStage.AUTHORIZED)


@dataclass(frozen=True)
class TenantUserGuardResult:
    token: TenantUserToken
    tenant_id: TenantId
    stages: tuple[GuardStage, ...] = (GuardStage.TOKEN_VALIDATED, GuardStage.AUTHORIZED)

    def with_stage(self, stage: GuardStage) -> TenantUserGuardResult:
        # AUTHORIZED stays last
        head = tuple(s for s in self.stages if s is not GuardStage.AUTHORIZED)
        return replace(self, stages=(*head, stage, GuardStage.AUTHORIZED))


class AuthGuards:
    """Request-time guards over a TokenCodec. Stateless between requests."""

    def __init__(self, codec: TokenCodec) -> None:
        self._codec = codec

    # ── SaaS admin ───────────────────────────────────────────────

    async def require_saas_admin(self, context: GuardContext) -> SaaSAdminGuardResult:
        if not context.token:
            raise UnauthenticatedError("Authentication token required")
        token = self._codec.decode_saas_admin(context.token)
        return SaaSAdminGuardResult(token=token)

    # ── Tenant user ──────────────────────────────────────────────

    async def require_tenant_user(self, context: GuardContext) -> TenantUserGuardResult:
        if not context.token:
            raise UnauthenticatedError("Authentication token required")
        token = self._codec.decode_tenant_user(context.token)

        # The token's tenant wins; an explicit, different hint is a mismatch
        hinted = _tenant_hint(context)
        if hinted is not None and hinted != token.tenant_id:
            raise UnauthenticatedError(
                "Tenant mismatch: token tenant_id does not match resolved tenant_id",
                context={"token_tenant_id": token.tenant_id, "resolved_tenant_id": hinted},
            )

        return TenantUserGuardResult(token=token, tenant_id=token.tenant_id)

    # ── Module gate ──────────────────────────────────────────────

    async def require_module(
        self, context: GuardContext, module_id: ModuleId | str
    ) -> TenantUserGuardResult:
        result = await self.require_tenant_user(context)
        if not result.token.has_module(module_id):
            raise ModuleAccessDeniedError(
                f"Module access denied: {module_id} is not active for this tenant",
                context={"module_id": module_id, "tenant_id": result.tenant_id},
            )
        return result.with_stage(GuardStage.MODULE_CHECKED)

    # ── Permission gate ──────────────────────────────────────────

    async def require_permission(
        self, context: GuardContext, permission: str
    ) -> TenantUserGuardResult:
        result = await self.require_tenant_user(context)
        if not result.token.has_permission(permission):
            raise PermissionDeniedError(
                f"Permission denied: {permission} required",
                context={"permission": permission},
            )
        return result.with_stage(GuardStage.PERMISSION_CHECKED)

    async def require_any_permission(
        self, context: GuardContext, permissions: Iterable[str]
    ) -> TenantUserGuardResult:
        required = list(permissions)
        result = await self.require_tenant_user(context)
        if not any(result.token.has_permission(p) for p in required):
            raise PermissionDeniedError(
                f"Permission denied: one of [{', '.join(required)}] required",
                context={"permissions": required},
            )
        return result.with_stage(GuardStage.PERMISSION_CHECKED)

    async def require_all_permissions(
        self, context: GuardContext, permissions: Iterable[str]
    ) -> TenantUserGuardResult:
        required = list(permissions)
        result = await self.require_tenant_user(context)
        missing = [p for p in required if not result.token.has_permission(p)]
        if missing:
            raise PermissionDeniedError(
                f"Permission denied: missing [{', '.join(missing)}]",
                context={"missing": missing},
            )
        return result.with_stage(GuardStage.PERMISSION_CHECKED)

    # ── Role gate ────────────────────────────────────────────────

    async def require_role(self, context: GuardContext, role: str) -> TenantUserGuardResult:
        result = await self.require_tenant_user(context)
        if result.token.role != role:
            raise PermissionDeniedError(f"Role denied: {role} required", context={"role": role})
        return result

    async def require_any_role(
        self, context: GuardContext, roles: Iterable[str]
    ) -> TenantUserGuardResult:
        allowed = list(roles)
        result = await self.require_tenant_user(context)
        if result.token.role not in allowed:
            raise PermissionDeniedError(
                f"Role denied: one of [{', '.join(allowed)}] required",
                context={"roles": allowed},
            )
        return result


def _tenant_hint(context: GuardContext) -> str | None:
    for key, value in context.headers.items():
        if key.lower() == TENANT_HEADER and value:
            return value
    return context.path_params.get(TENANT_PATH_PARAM) or None
