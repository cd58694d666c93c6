"""Tenant-user endpoints — auth context, usage metering and the module gate ping."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from tenantgate.api.deps import Container, get_container, get_plan_service
from tenantgate.api.middleware import (
    build_guard_context,
    require_any_permission,
    require_permission,
    require_tenant_user,
)
from tenantgate.api.models.schemas import AuthContextOut, UsageIncrement, UsageOut
from tenantgate.auth.guards import TenantUserGuardResult
from tenantgate.plans.service import PlanService

router = APIRouter(prefix="/tenant", tags=["tenant"])


@router.get("/me", response_model=AuthContextOut)
async def get_me(
    auth: TenantUserGuardResult = Depends(require_tenant_user),
) -> AuthContextOut:
    """Return the resolved auth context carried by the caller's token."""
    token = auth.token
    return AuthContextOut(
        user_id=token.user_id,
        tenant_id=auth.tenant_id,
        role=token.role,
        permissions=sorted(token.permissions),
        active_modules=list(token.active_modules),
    )


@router.get("/usage/{limit_key}", response_model=UsageOut)
async def get_usage(
    limit_key: str,
    auth: TenantUserGuardResult = Depends(require_any_permission(["usage.read", "usage.write"])),
    plans: PlanService = Depends(get_plan_service),
) -> UsageOut:
    return UsageOut(
        tenant_id=auth.tenant_id,
        limit_key=limit_key,
        used=await plans.get_tenant_usage(auth.tenant_id, limit_key),
        limit=await plans.check_tenant_limit(auth.tenant_id, limit_key),
    )


@router.post("/usage/{limit_key}", response_model=UsageOut)
async def increment_usage(
    limit_key: str,
    body: UsageIncrement,
    auth: TenantUserGuardResult = Depends(require_permission("usage.write")),
    plans: PlanService = Depends(get_plan_service),
) -> UsageOut:
    total = await plans.increment_tenant_usage(auth.tenant_id, limit_key, body.amount)
    return UsageOut(
        tenant_id=auth.tenant_id,
        limit_key=limit_key,
        used=total,
        limit=await plans.check_tenant_limit(auth.tenant_id, limit_key),
    )


@router.get("/modules/{module_id}/ping")
async def module_ping(
    module_id: str,
    request: Request,
    container: Container = Depends(get_container),
) -> dict[str, str]:
    """Module gate ping: 200 only when the token lists ``module_id``."""
    auth = await container.guards.require_module(build_guard_context(request), module_id)
    return {"module_id": module_id, "tenant_id": auth.tenant_id, "status": "ok"}
