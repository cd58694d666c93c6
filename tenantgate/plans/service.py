"""Plan/usage ledger — plan lookups, tenant plan assignment and limit enforcement.

``increment_tenant_usage`` is the single enforcement point for usage
counters: nothing else writes them. A limit of ``-1`` means unlimited and is
checked before any arithmetic; a key the plan does not list has limit 0.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from uuid_extensions import uuid7

from tenantgate.core.exceptions import (
    PlanLimitExceededError,
    PlanNotFoundError,
    TenantHasNoPlanError,
)
from tenantgate.core.logging import get_logger
from tenantgate.core.types import UNLIMITED, ModuleId, Plan, TenantId
from tenantgate.plans.repository import PlanRepository

log = get_logger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    return _SLUG_RE.sub("-", name.lower()).strip("-")


class PlanService:
    def __init__(self, repository: PlanRepository) -> None:
        self._repository = repository

    # ── Plans ────────────────────────────────────────────────────

    async def get_plan_by_id(self, plan_id: str) -> Plan | None:
        return await self._repository.get_plan_by_id(plan_id)

    async def list_all_plans(self) -> list[Plan]:
        return await self._repository.list_plans()

    async def check_module_in_plan(self, plan_id: str, module_id: str) -> bool:
        plan = await self._repository.get_plan_by_id(plan_id)
        if plan is None:
            return False
        return plan.has_module(module_id)

    async def check_plan_limit(self, plan_id: str, limit_key: str) -> int:
        plan = await self._repository.get_plan_by_id(plan_id)
        if plan is None:
            return 0
        return plan.limit_for(limit_key)

    async def save_plan(self, plan: Plan) -> None:
        await self._repository.save_plan(plan)
        log.info("plan_saved", plan_id=plan.id, slug=plan.slug)

    async def create_plan(
        self,
        name: str,
        description: str = "",
        modules: Iterable[str] = (),
        limits: Mapping[str, int] | None = None,
    ) -> Plan:
        """Create an admin-defined plan with a generated id and a slug from its name."""
        if not name.strip():
            msg = "plan name cannot be empty"
            raise ValueError(msg)
        plan = Plan(
            id=f"plan_{uuid7().hex}",
            slug=slugify(name),
            name=name,
            description=description,
            modules=tuple(ModuleId(m) for m in modules),
            limits=dict(limits or {}),
        )
        await self.save_plan(plan)
        return plan

    # ── Tenants ──────────────────────────────────────────────────

    async def get_tenant_plan(self, tenant_id: TenantId) -> Plan | None:
        return await self._repository.get_tenant_plan(tenant_id)

    async def change_tenant_plan(self, tenant_id: TenantId, new_plan_id: str) -> None:
        if await self._repository.get_plan_by_id(new_plan_id) is None:
            raise PlanNotFoundError(
                f"Plan {new_plan_id} not found",
                context={"plan_id": new_plan_id, "tenant_id": tenant_id},
            )
        await self._repository.update_tenant_plan(tenant_id, new_plan_id)
        log.info("tenant_plan_changed", tenant_id=tenant_id, plan_id=new_plan_id)

    async def check_tenant_has_module(self, tenant_id: TenantId, module_id: str) -> bool:
        plan = await self._repository.get_tenant_plan(tenant_id)
        if plan is None:
            return False
        return plan.has_module(module_id)

    async def check_tenant_limit(self, tenant_id: TenantId, limit_key: str) -> int:
        plan = await self._repository.get_tenant_plan(tenant_id)
        if plan is None:
            return 0
        return plan.limit_for(limit_key)

    async def get_tenant_usage(self, tenant_id: TenantId, limit_key: str) -> int:
        return await self._repository.get_tenant_usage(tenant_id, limit_key)

    async def increment_tenant_usage(
        self, tenant_id: TenantId, limit_key: str, amount: int = 1
    ) -> int:
        """Add ``amount`` to the tenant's counter and return the new total.

        Raises:
            ValueError: ``amount`` is zero or negative.
            TenantHasNoPlanError: the tenant has no plan.
            PlanLimitExceededError: the increment would pass a finite limit.
        """
        if amount <= 0:
            msg = f"usage amount must be positive, got {amount}"
            raise ValueError(msg)

        plan = await self._repository.get_tenant_plan(tenant_id)
        if plan is None:
            raise TenantHasNoPlanError(
                "Tenant has no plan assigned",
                context={"tenant_id": tenant_id},
            )

        limit = plan.limit_for(limit_key)
        total = await self._repository.increment_usage_within_limit(
            tenant_id, limit_key, amount, limit
        )
        if total is None:
            current = await self._repository.get_tenant_usage(tenant_id, limit_key)
            raise PlanLimitExceededError(
                f"Plan limit exceeded for {limit_key}. "
                f"Limit: {limit}, Current: {current}, Attempted: {amount}",
                context={
                    "tenant_id": tenant_id,
                    "plan_id": plan.id,
                    "limit_key": limit_key,
                    "limit": limit,
                    "current": current,
                    "attempted": amount,
                },
            )

        log.debug(
            "usage_incremented",
            tenant_id=tenant_id,
            limit_key=limit_key,
            total=total,
            unlimited=limit == UNLIMITED,
        )
        return total
