"""DB-backed module definition store and activation repository."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from tenantgate.core.types import (
    ActivationStatus,
    ModuleDefinition,
    ModuleId,
    TenantId,
    TenantModuleActivation,
)
from tenantgate.modules.store import (
    ActivationRepository,
    ModuleStore,
    definition_from_dict,
    definition_to_dict,
)


class SqlModuleStore(ModuleStore):
    """Async PostgreSQL-backed module catalog."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def save_definition(self, definition: ModuleDefinition) -> None:
        async with self._engine.begin() as conn:
            await conn.execute(
                text(
                    """
                    INSERT INTO module_definitions
                        (module_id, slug, name, version, definition, updated_at)
                    VALUES
                        (:mid, :slug, :name, :version, CAST(:definition AS JSONB), :now)
                    ON CONFLICT (module_id) DO UPDATE SET
                        slug = EXCLUDED.slug,
                        name = EXCLUDED.name,
                        version = EXCLUDED.version,
                        definition = EXCLUDED.definition,
                        updated_at = EXCLUDED.updated_at
                    """
                ),
                {
                    "mid": definition.id,
                    "slug": definition.slug,
                    "name": definition.name,
                    "version": definition.version,
                    "definition": json.dumps(definition_to_dict(definition)),
                    "now": datetime.now(timezone.utc),
                },
            )

    async def find_by_id(self, module_id: str) -> ModuleDefinition | None:
        return await self._find_one(
            "SELECT definition FROM module_definitions WHERE module_id = :key", module_id
        )

    async def find_by_slug(self, slug: str) -> ModuleDefinition | None:
        return await self._find_one(
            "SELECT definition FROM module_definitions WHERE slug = :key", slug
        )

    async def list_definitions(self) -> list[ModuleDefinition]:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text("SELECT definition FROM module_definitions ORDER BY module_id")
            )
            return [self._row_to_definition(r) for r in result.mappings().all()]

    async def _find_one(self, sql: str, key: str) -> ModuleDefinition | None:
        async with self._engine.begin() as conn:
            result = await conn.execute(text(sql), {"key": key})
            r = result.mappings().first()
            if r is None:
                return None
            return self._row_to_definition(r)

    @staticmethod
    def _row_to_definition(r: Any) -> ModuleDefinition:
        data = r["definition"]
        if isinstance(data, str):
            data = json.loads(data)
        return definition_from_dict(data)


class SqlActivationRepository(ActivationRepository):
    """Activation rows keyed by the (tenant_id, module_id) unique constraint."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def find(self, tenant_id: TenantId, module_id: ModuleId) -> TenantModuleActivation | None:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text(
                    "SELECT * FROM tenant_modules "
                    "WHERE tenant_id = :tid AND module_id = :mid"
                ),
                {"tid": tenant_id, "mid": module_id},
            )
            r = result.mappings().first()
            if r is None:
                return None
            return self._row_to_activation(r)

    async def upsert_active(
        self, tenant_id: TenantId, module_id: ModuleId, now: datetime
    ) -> TenantModuleActivation:
        # One statement: insert, or reactivate only when not already enabled
        async with self._engine.begin() as conn:
            await conn.execute(
                text(
                    """
                    INSERT INTO tenant_modules
                        (tenant_id, module_id, status, activated_at, deactivated_at)
                    VALUES
                        (:tid, :mid, 'active', :now, NULL)
                    ON CONFLICT (tenant_id, module_id) DO UPDATE SET
                        status = 'active',
                        deactivated_at = NULL,
                        activated_at = EXCLUDED.activated_at
                    WHERE tenant_modules.status <> 'active'
                       OR tenant_modules.deactivated_at IS NOT NULL
                    """
                ),
                {"tid": tenant_id, "mid": module_id, "now": now},
            )
            result = await conn.execute(
                text(
                    "SELECT * FROM tenant_modules "
                    "WHERE tenant_id = :tid AND module_id = :mid"
                ),
                {"tid": tenant_id, "mid": module_id},
            )
            return self._row_to_activation(result.mappings().one())

    async def deactivate(self, tenant_id: TenantId, module_id: ModuleId, now: datetime) -> bool:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text(
                    """
                    UPDATE tenant_modules
                    SET status = 'inactive', deactivated_at = :now
                    WHERE tenant_id = :tid AND module_id = :mid
                      AND status = 'active' AND deactivated_at IS NULL
                    """
                ),
                {"tid": tenant_id, "mid": module_id, "now": now},
            )
            return (result.rowcount or 0) > 0

    async def list_active(self, tenant_id: TenantId) -> list[TenantModuleActivation]:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text(
                    "SELECT * FROM tenant_modules "
                    "WHERE tenant_id = :tid AND status = 'active' "
                    "AND deactivated_at IS NULL"
                ),
                {"tid": tenant_id},
            )
            return [self._row_to_activation(r) for r in result.mappings().all()]

    @staticmethod
    def _row_to_activation(r: Any) -> TenantModuleActivation:
        """Convert a DB row mapping to a TenantModuleActivation."""
        try:
            status = ActivationStatus(r["status"])
        except ValueError:
            status = ActivationStatus.INACTIVE
        return TenantModuleActivation(
            tenant_id=TenantId(r["tenant_id"]),
            module_id=ModuleId(r["module_id"]),
            status=status,
            activated_at=r["activated_at"],
            deactivated_at=r.get("deactivated_at"),
        )
