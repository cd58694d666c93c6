"""DB-backed plan repository with an atomic conditional usage increment."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from tenantgate.core.exceptions import PlanNotFoundError
from tenantgate.core.types import ModuleId, Plan, PlanStatus, TenantId
from tenantgate.plans.repository import DEFAULT_PLAN_ID, PlanRepository, default_plans


class SqlPlanRepository(PlanRepository):
    """Async PostgreSQL-backed plans, tenant assignments and usage counters."""

    def __init__(self, engine: AsyncEngine, default_plan_id: str | None = DEFAULT_PLAN_ID) -> None:
        self._engine = engine
        self._default_plan_id = default_plan_id or None

    async def seed_defaults(self) -> None:
        """Insert the seed plans that are not yet present."""
        for plan in default_plans():
            if await self.get_plan_by_id(plan.id) is None:
                await self.save_plan(plan)

    async def save_plan(self, plan: Plan) -> None:
        now = datetime.now(timezone.utc)
        async with self._engine.begin() as conn:
            await conn.execute(
                text(
                    """
                    INSERT INTO plans
                        (plan_id, slug, name, description, modules, limits,
                         status, created_at, updated_at)
                    VALUES
                        (:pid, :slug, :name, :desc, CAST(:modules AS JSONB),
                         CAST(:limits AS JSONB), :status, :created, :now)
                    ON CONFLICT (plan_id) DO UPDATE SET
                        slug = EXCLUDED.slug,
                        name = EXCLUDED.name,
                        description = EXCLUDED.description,
                        modules = EXCLUDED.modules,
                        limits = EXCLUDED.limits,
                        status = EXCLUDED.status,
                        updated_at = EXCLUDED.updated_at
                    """
                ),
                {
                    "pid": plan.id,
                    "slug": plan.slug,
                    "name": plan.name,
                    "desc": plan.description,
                    "modules": json.dumps(list(plan.modules)),
                    "limits": json.dumps(plan.limits),
                    "status": plan.status.value,
                    "created": plan.created_at,
                    "now": now,
                },
            )

    async def get_plan_by_id(self, plan_id: str) -> Plan | None:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text("SELECT * FROM plans WHERE plan_id = :pid"),
                {"pid": plan_id},
            )
            r = result.mappings().first()
            if r is None:
                return None
            return self._row_to_plan(r)

    async def list_plans(self) -> list[Plan]:
        async with self._engine.begin() as conn:
            result = await conn.execute(text("SELECT * FROM plans ORDER BY created_at"))
            return [self._row_to_plan(r) for r in result.mappings().all()]

    async def get_tenant_plan(self, tenant_id: TenantId) -> Plan | None:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text(
                    "SELECT p.* FROM tenant_plans tp "
                    "JOIN plans p ON p.plan_id = tp.plan_id "
                    "WHERE tp.tenant_id = :tid"
                ),
                {"tid": tenant_id},
            )
            r = result.mappings().first()
            if r is not None:
                return self._row_to_plan(r)

        if self._default_plan_id is None:
            return None
        return await self.get_plan_by_id(self._default_plan_id)

    async def update_tenant_plan(self, tenant_id: TenantId, plan_id: str) -> None:
        if await self.get_plan_by_id(plan_id) is None:
            raise PlanNotFoundError(f"Plan {plan_id} not found", context={"plan_id": plan_id})
        async with self._engine.begin() as conn:
            await conn.execute(
                text(
                    """
                    INSERT INTO tenant_plans (tenant_id, plan_id, updated_at)
                    VALUES (:tid, :pid, :now)
                    ON CONFLICT (tenant_id) DO UPDATE SET
                        plan_id = EXCLUDED.plan_id,
                        updated_at = EXCLUDED.updated_at
                    """
                ),
                {"tid": tenant_id, "pid": plan_id, "now": datetime.now(timezone.utc)},
            )

    async def get_tenant_usage(self, tenant_id: TenantId, limit_key: str) -> int:
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text(
                    "SELECT used FROM tenant_usage "
                    "WHERE tenant_id = :tid AND limit_key = :key"
                ),
                {"tid": tenant_id, "key": limit_key},
            )
            return int(result.scalar() or 0)

    async def increment_usage_within_limit(
        self, tenant_id: TenantId, limit_key: str, amount: int, limit: int
    ) -> int | None:
        # Guard clause on both the insert and the conflict branch; no row
        # returned means the limit refused the increment.
        async with self._engine.begin() as conn:
            result = await conn.execute(
                text(
                    """
                    INSERT INTO tenant_usage (tenant_id, limit_key, used)
                    SELECT CAST(:tid AS VARCHAR), CAST(:key AS VARCHAR), CAST(:amount AS BIGINT)
                    WHERE CAST(:limit AS BIGINT) = -1 OR CAST(:amount AS BIGINT) <= CAST(:limit AS BIGINT)
                    ON CONFLICT (tenant_id, limit_key) DO UPDATE SET
                        used = tenant_usage.used + EXCLUDED.used
                    WHERE CAST(:limit AS BIGINT) = -1
                       OR tenant_usage.used + EXCLUDED.used <= CAST(:limit AS BIGINT)
                    RETURNING used
                    """
                ),
                {"tid": tenant_id, "key": limit_key, "amount": amount, "limit": limit},
            )
            total = result.scalar()
            return int(total) if total is not None else None

    @staticmethod
    def _row_to_plan(r: Any) -> Plan:
        """Convert a DB row mapping to a Plan."""
        modules = r["modules"] or []
        if isinstance(modules, str):
            modules = json.loads(modules)
        limits = r["limits"] or {}
        if isinstance(limits, str):
            limits = json.loads(limits)

        try:
            status = PlanStatus(r["status"])
        except ValueError:
            status = PlanStatus.INACTIVE

        return Plan(
            id=r["plan_id"],
            slug=r["slug"],
            name=r["name"],
            description=r.get("description") or "",
            modules=tuple(ModuleId(m) for m in modules),
            limits={k: int(v) for k, v in limits.items()},
            status=status,
            created_at=r["created_at"],
            updated_at=r["updated_at"],
        )
