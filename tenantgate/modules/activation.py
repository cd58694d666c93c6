"""Tenant module activation — enable/disable modules per tenant.

Only ``enable`` can fail. Every other operation degrades to a no-op or an
empty result, so stale or malformed module references in tenant UIs never
turn into errors.
"""

from __future__ import annotations

from datetime import datetime, timezone

from tenantgate.core.exceptions import ModuleNotRegisteredError
from tenantgate.core.logging import get_logger
from tenantgate.core.types import ActivationDetails, ModuleId, TenantId
from tenantgate.modules.registry import ModuleRegistry
from tenantgate.modules.store import ActivationRepository

log = get_logger(__name__)


class TenantModuleService:
    """Activation lifecycle over a registry (validation) and a repository (state)."""

    def __init__(self, registry: ModuleRegistry, repository: ActivationRepository) -> None:
        self._registry = registry
        self._repository = repository

    async def enable(self, tenant_id: TenantId, module_id: str) -> None:
        definition = await self._registry.get_module_definition(module_id)
        if definition is None:
            raise ModuleNotRegisteredError(
                f"Module {module_id} not registered in ModuleRegistry",
                context={"module_id": module_id, "tenant_id": tenant_id},
            )

        record = await self._repository.upsert_active(
            tenant_id, definition.id, datetime.now(timezone.utc)
        )
        log.info(
            "module_enabled",
            tenant_id=tenant_id,
            module_id=definition.id,
            activated_at=record.activated_at.isoformat(),
        )

    async def disable(self, tenant_id: TenantId, module_id: str) -> None:
        canonical = await self._registry.resolve_module_id(module_id)
        if canonical is None:
            return

        changed = await self._repository.deactivate(
            tenant_id, canonical, datetime.now(timezone.utc)
        )
        if changed:
            log.info("module_disabled", tenant_id=tenant_id, module_id=canonical)

    async def is_enabled(self, tenant_id: TenantId, module_id: str) -> bool:
        canonical = await self._registry.resolve_module_id(module_id)
        if canonical is None:
            return False
        record = await self._repository.find(tenant_id, canonical)
        if record is None:
            return False
        return record.is_enabled

    async def list_enabled(self, tenant_id: TenantId) -> list[ModuleId]:
        return [d.module_id for d in await self.list_enabled_with_details(tenant_id)]

    async def list_enabled_with_details(self, tenant_id: TenantId) -> list[ActivationDetails]:
        records = await self._repository.list_active(tenant_id)
        details: list[ActivationDetails] = []
        for record in records:
            if not record.is_enabled:
                continue
            # Rows written under a slug map back to the canonical id
            canonical = await self._registry.resolve_module_id(record.module_id)
            details.append(
                ActivationDetails(
                    module_id=canonical or record.module_id,
                    status=record.status,
                    activated_at=record.activated_at,
                    deactivated_at=record.deactivated_at,
                )
            )
        return details
