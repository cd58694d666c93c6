"""Tests for the auth guard chain."""

from __future__ import annotations

import pytest

from tenantgate.auth.guards import AuthGuards, GuardContext, GuardStage
from tenantgate.auth.tokens import TokenCodec
from tenantgate.core.exceptions import (
    ModuleAccessDeniedError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from tenantgate.core.types import (
    ModuleDefinition,
    ModuleId,
    SaaSAdminToken,
    TenantId,
    TenantUserToken,
    UserId,
)
from tenantgate.modules.activation import TenantModuleService
from tenantgate.modules.registry import InMemoryModuleRegistry
from tenantgate.modules.store import InMemoryActivationRepository


def _ctx(raw: str | None, **kwargs: object) -> GuardContext:
    return GuardContext(token=raw, **kwargs)  # type: ignore[arg-type]


class TestRequireTenantUser:
    @pytest.mark.asyncio
    async def test_missing_token(self, guards: AuthGuards) -> None:
        with pytest.raises(UnauthenticatedError) as exc_info:
            await guards.require_tenant_user(_ctx(None))
        assert exc_info.value.status_code == 401
        assert exc_info.value.kind == "Unauthenticated"

    @pytest.mark.asyncio
    async def test_garbage_token(self, guards: AuthGuards) -> None:
        with pytest.raises(UnauthenticatedError):
            await guards.require_tenant_user(_ctx("not-a-jwt"))

    @pytest.mark.asyncio
    async def test_non_ascii_token(self, guards: AuthGuards) -> None:
        with pytest.raises(UnauthenticatedError) as exc_info:
            await guards.require_tenant_user(_ctx("a.b.\u00e9"))
        assert exc_info.value.stage is GuardStage.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_non_ascii_admin_token(self, guards: AuthGuards) -> None:
        with pytest.raises(UnauthenticatedError):
            await guards.require_saas_admin(_ctx("\u00e9.\u00e9.\u00e9"))

    @pytest.mark.asyncio
    async def test_valid_token(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        result = await guards.require_tenant_user(_ctx(codec.encode_tenant_user(tenant_token)))
        assert result.tenant_id == "tenant-a"
        assert result.token == tenant_token
        assert result.stages == (GuardStage.TOKEN_VALIDATED, GuardStage.AUTHORIZED)

    @pytest.mark.asyncio
    async def test_tenant_header_mismatch(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        raw = codec.encode_tenant_user(tenant_token)
        with pytest.raises(UnauthenticatedError, match="Tenant mismatch"):
            await guards.require_tenant_user(_ctx(raw, headers={"x-tenant-id": "tenant-b"}))

    @pytest.mark.asyncio
    async def test_tenant_path_param_mismatch(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        raw = codec.encode_tenant_user(tenant_token)
        with pytest.raises(UnauthenticatedError):
            await guards.require_tenant_user(_ctx(raw, path_params={"tenantId": "tenant-b"}))

    @pytest.mark.asyncio
    async def test_matching_hint_accepted(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        raw = codec.encode_tenant_user(tenant_token)
        result = await guards.require_tenant_user(_ctx(raw, headers={"x-tenant-id": "tenant-a"}))
        assert result.tenant_id == "tenant-a"

    @pytest.mark.asyncio
    async def test_admin_token_rejected(
        self, guards: AuthGuards, codec: TokenCodec, admin_token: SaaSAdminToken
    ) -> None:
        with pytest.raises(UnauthenticatedError):
            await guards.require_tenant_user(_ctx(codec.encode_saas_admin(admin_token)))


class TestRequireSaaSAdmin:
    @pytest.mark.asyncio
    async def test_valid(
        self, guards: AuthGuards, codec: TokenCodec, admin_token: SaaSAdminToken
    ) -> None:
        result = await guards.require_saas_admin(_ctx(codec.encode_saas_admin(admin_token)))
        assert result.token.user_id == "admin-1"

    @pytest.mark.asyncio
    async def test_tenant_token_rejected(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        with pytest.raises(UnauthenticatedError):
            await guards.require_saas_admin(_ctx(codec.encode_tenant_user(tenant_token)))

    @pytest.mark.asyncio
    async def test_missing_token(self, guards: AuthGuards) -> None:
        with pytest.raises(UnauthenticatedError):
            await guards.require_saas_admin(_ctx(None))


class TestRequireModule:
    @pytest.mark.asyncio
    async def test_module_in_token(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        raw = codec.encode_tenant_user(tenant_token)
        result = await guards.require_module(_ctx(raw), ModuleId("hello-module"))
        assert GuardStage.MODULE_CHECKED in result.stages
        assert result.stages[-1] is GuardStage.AUTHORIZED

    @pytest.mark.asyncio
    async def test_denied_even_when_activation_enabled(
        self, guards: AuthGuards, codec: TokenCodec, hello_module: ModuleDefinition
    ) -> None:
        registry = InMemoryModuleRegistry()
        await registry.register(hello_module)
        service = TenantModuleService(registry, InMemoryActivationRepository())
        await service.enable(TenantId("tenant-a"), "hello-module")
        assert await service.is_enabled(TenantId("tenant-a"), "hello-module") is True

        token = TenantUserToken(
            user_id=UserId("u1"),
            tenant_id=TenantId("tenant-a"),
            role="member",
            permissions=frozenset({"hello.read"}),
            active_modules=(),
        )
        with pytest.raises(ModuleAccessDeniedError) as exc_info:
            await guards.require_module(_ctx(codec.encode_tenant_user(token)), "hello-module")
        assert exc_info.value.status_code == 403
        assert exc_info.value.kind == "ModuleAccessDenied"
        assert exc_info.value.stage is GuardStage.DENIED

    @pytest.mark.asyncio
    async def test_unauthenticated_before_module_check(self, guards: AuthGuards) -> None:
        with pytest.raises(UnauthenticatedError):
            await guards.require_module(_ctx(None), "hello-module")


class TestRequirePermission:
    @pytest.mark.asyncio
    async def test_granted(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        raw = codec.encode_tenant_user(tenant_token)
        result = await guards.require_permission(_ctx(raw), "hello.read")
        assert GuardStage.PERMISSION_CHECKED in result.stages

    @pytest.mark.asyncio
    async def test_denied_regardless_of_role(self, guards: AuthGuards, codec: TokenCodec) -> None:
        owner = TenantUserToken(
            user_id=UserId("u1"),
            tenant_id=TenantId("tenant-a"),
            role="owner",
            permissions=frozenset(),
        )
        with pytest.raises(PermissionDeniedError) as exc_info:
            await guards.require_permission(_ctx(codec.encode_tenant_user(owner)), "hello.write")
        assert exc_info.value.status_code == 403
        assert exc_info.value.kind == "PermissionDenied"
        assert exc_info.value.stage is GuardStage.DENIED

    @pytest.mark.asyncio
    async def test_any_permission(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        raw = codec.encode_tenant_user(tenant_token)
        await guards.require_any_permission(_ctx(raw), ["nope", "usage.read"])
        with pytest.raises(PermissionDeniedError):
            await guards.require_any_permission(_ctx(raw), ["nope", "also.nope"])

    @pytest.mark.asyncio
    async def test_all_permissions(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        raw = codec.encode_tenant_user(tenant_token)
        await guards.require_all_permissions(_ctx(raw), ["hello.read", "usage.read"])
        with pytest.raises(PermissionDeniedError) as exc_info:
            await guards.require_all_permissions(_ctx(raw), ["hello.read", "usage.write"])
        assert exc_info.value.context["missing"] == ["usage.write"]


class TestRequireRole:
    @pytest.mark.asyncio
    async def test_role(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        raw = codec.encode_tenant_user(tenant_token)
        await guards.require_role(_ctx(raw), "member")
        with pytest.raises(PermissionDeniedError):
            await guards.require_role(_ctx(raw), "owner")

    @pytest.mark.asyncio
    async def test_any_role(
        self, guards: AuthGuards, codec: TokenCodec, tenant_token: TenantUserToken
    ) -> None:
        raw = codec.encode_tenant_user(tenant_token)
        await guards.require_any_role(_ctx(raw), ["owner", "member"])
        with pytest.raises(PermissionDeniedError):
            await guards.require_any_role(_ctx(raw), ["owner", "admin"])
