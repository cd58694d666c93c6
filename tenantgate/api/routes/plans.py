"""SaaS admin endpoints — plan catalog and tenant plan assignment."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from tenantgate.api.deps import get_plan_service
from tenantgate.api.middleware import require_saas_admin
from tenantgate.api.models.schemas import PlanCreate, PlanOut, TenantPlanUpdate
from tenantgate.auth.guards import SaaSAdminGuardResult
from tenantgate.core.types import TenantId
from tenantgate.plans.service import PlanService

router = APIRouter(prefix="/admin", tags=["admin-plans"])


@router.get("/plans", response_model=list[PlanOut])
async def list_plans(
    _admin: SaaSAdminGuardResult = Depends(require_saas_admin),
    plans: PlanService = Depends(get_plan_service),
) -> list[PlanOut]:
    return [PlanOut.from_plan(p) for p in await plans.list_all_plans()]


@router.post("/plans", response_model=PlanOut, status_code=status.HTTP_201_CREATED)
async def create_plan(
    body: PlanCreate,
    _admin: SaaSAdminGuardResult = Depends(require_saas_admin),
    plans: PlanService = Depends(get_plan_service),
) -> PlanOut:
    plan = await plans.create_plan(
        name=body.name,
        description=body.description,
        modules=body.modules,
        limits=body.limits,
    )
    return PlanOut.from_plan(plan)


@router.put("/tenants/{tenant_id}/plan", status_code=status.HTTP_204_NO_CONTENT)
async def change_tenant_plan(
    tenant_id: str,
    body: TenantPlanUpdate,
    _admin: SaaSAdminGuardResult = Depends(require_saas_admin),
    plans: PlanService = Depends(get_plan_service),
) -> Response:
    await plans.change_tenant_plan(TenantId(tenant_id), body.plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
