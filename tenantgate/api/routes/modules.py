"""SaaS admin endpoints — module catalog and per-tenant activation."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from tenantgate.api.deps import get_module_service, get_registry
from tenantgate.api.middleware import require_saas_admin
from tenantgate.api.models.schemas import ActivationOut, ModuleOut
from tenantgate.auth.guards import SaaSAdminGuardResult
from tenantgate.core.types import TenantId
from tenantgate.modules.activation import TenantModuleService
from tenantgate.modules.registry import ModuleRegistry

router = APIRouter(prefix="/admin", tags=["admin-modules"])


@router.get("/modules", response_model=list[ModuleOut])
async def list_modules(
    tenant_id: str | None = None,
    _admin: SaaSAdminGuardResult = Depends(require_saas_admin),
    registry: ModuleRegistry = Depends(get_registry),
    modules: TenantModuleService = Depends(get_module_service),
) -> list[ModuleOut]:
    """List registered modules, flagging the ones active for ``tenant_id``."""
    definitions = await registry.list_registered_modules()
    active: set[str] = set()
    if tenant_id:
        active = set(await modules.list_enabled(TenantId(tenant_id)))

    out = [ModuleOut.from_definition(d, active=d.id in active) for d in definitions]
    return sorted(out, key=lambda m: m.id)


@router.get("/tenants/{tenant_id}/modules", response_model=list[ActivationOut])
async def list_tenant_modules(
    tenant_id: str,
    _admin: SaaSAdminGuardResult = Depends(require_saas_admin),
    modules: TenantModuleService = Depends(get_module_service),
) -> list[ActivationOut]:
    details = await modules.list_enabled_with_details(TenantId(tenant_id))
    return [ActivationOut.from_details(d) for d in details]


@router.post("/tenants/{tenant_id}/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def enable_module(
    tenant_id: str,
    module_id: str,
    _admin: SaaSAdminGuardResult = Depends(require_saas_admin),
    modules: TenantModuleService = Depends(get_module_service),
) -> Response:
    await modules.enable(TenantId(tenant_id), module_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/tenants/{tenant_id}/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
async def disable_module(
    tenant_id: str,
    module_id: str,
    _admin: SaaSAdminGuardResult = Depends(require_saas_admin),
    modules: TenantModuleService = Depends(get_module_service),
) -> Response:
    await modules.disable(TenantId(tenant_id), module_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
