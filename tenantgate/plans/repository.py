"""Plan storage contract and the seeded in-memory implementation."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone

from tenantgate.core.exceptions import PlanNotFoundError
from tenantgate.core.types import UNLIMITED, ModuleId, Plan, TenantId

DEFAULT_PLAN_ID = "plan_free"

DEFAULT_PLAN_LIMITS: dict[str, dict[str, int]] = {
    "plan_free": {
        "users": 3,
        "storage_mb": 100,
        "api_calls_daily": 1_000,
    },
    "plan_pro": {
        "users": 10,
        "storage_mb": 1_000,
        "api_calls_daily": 10_000,
    },
    "plan_enterprise": {
        "users": UNLIMITED,
        "storage_mb": UNLIMITED,
        "api_calls_daily": UNLIMITED,
    },
}


def default_plans() -> list[Plan]:
    """Fresh copies of the seed plans."""
    return [
        Plan(
            id="plan_free",
            slug="free",
            name="Free",
            description="Basic plan for starters",
            modules=(ModuleId("hello-module"),),
            limits=dict(DEFAULT_PLAN_LIMITS["plan_free"]),
        ),
        Plan(
            id="plan_pro",
            slug="pro",
            name="Pro",
            description="For growing businesses",
            modules=(ModuleId("hello-module"), ModuleId("reports-module")),
            limits=dict(DEFAULT_PLAN_LIMITS["plan_pro"]),
        ),
        Plan(
            id="plan_enterprise",
            slug="enterprise",
            name="Enterprise",
            description="Unlimited power",
            modules=(
                ModuleId("hello-module"),
                ModuleId("reports-module"),
                ModuleId("audit-module"),
            ),
            limits=dict(DEFAULT_PLAN_LIMITS["plan_enterprise"]),
        ),
    ]


class PlanRepository(ABC):
    @abstractmethod
    async def save_plan(self, plan: Plan) -> None: ...

    @abstractmethod
    async def get_plan_by_id(self, plan_id: str) -> Plan | None: ...

    @abstractmethod
    async def list_plans(self) -> list[Plan]: ...

    @abstractmethod
    async def get_tenant_plan(self, tenant_id: TenantId) -> Plan | None:
        """The tenant's plan, the configured default plan, or None."""

    @abstractmethod
    async def update_tenant_plan(self, tenant_id: TenantId, plan_id: str) -> None:
        """Raises PlanNotFoundError for an unknown plan id."""

    @abstractmethod
    async def get_tenant_usage(self, tenant_id: TenantId, limit_key: str) -> int: ...

    @abstractmethod
    async def increment_usage_within_limit(
        self, tenant_id: TenantId, limit_key: str, amount: int, limit: int
    ) -> int | None:
        """Add ``amount`` unless that would push usage past ``limit``.

        Check and write are one atomic operation per (tenant, key). Returns
        the new total, or None when the increment was refused. ``limit == -1``
        never refuses.
        """


class MemoryPlanRepository(PlanRepository):
    """In-process plan store seeded with ``default_plans()``."""

    def __init__(
        self,
        default_plan_id: str | None = DEFAULT_PLAN_ID,
        seed: bool = True,
    ) -> None:
        self._lock = threading.RLock()
        self._default_plan_id = default_plan_id or None
        self._plans: dict[str, Plan] = {}
        self._tenant_plans: dict[str, str] = {}  # tenant_id -> plan_id
        self._usage: dict[str, dict[str, int]] = {}
        if seed:
            for plan in default_plans():
                self._plans[plan.id] = plan

    async def save_plan(self, plan: Plan) -> None:
        with self._lock:
            self._plans[plan.id] = replace(
                plan, limits=dict(plan.limits), updated_at=datetime.now(timezone.utc)
            )

    async def get_plan_by_id(self, plan_id: str) -> Plan | None:
        with self._lock:
            plan = self._plans.get(plan_id)
            return _copy(plan) if plan is not None else None

    async def list_plans(self) -> list[Plan]:
        with self._lock:
            return [_copy(p) for p in self._plans.values()]

    async def get_tenant_plan(self, tenant_id: TenantId) -> Plan | None:
        with self._lock:
            plan_id = self._tenant_plans.get(tenant_id, self._default_plan_id)
            plan = self._plans.get(plan_id) if plan_id is not None else None
            return _copy(plan) if plan is not None else None

    async def update_tenant_plan(self, tenant_id: TenantId, plan_id: str) -> None:
        with self._lock:
            if plan_id not in self._plans:
                raise PlanNotFoundError(f"Plan {plan_id} not found", context={"plan_id": plan_id})
            self._tenant_plans[tenant_id] = plan_id

    async def get_tenant_usage(self, tenant_id: TenantId, limit_key: str) -> int:
        with self._lock:
            return self._usage.get(tenant_id, {}).get(limit_key, 0)

    async def increment_usage_within_limit(
        self, tenant_id: TenantId, limit_key: str, amount: int, limit: int
    ) -> int | None:
        with self._lock:
            current = self._usage.get(tenant_id, {}).get(limit_key, 0)
            if limit != UNLIMITED and current + amount > limit:
                return None
            self._usage.setdefault(tenant_id, {})[limit_key] = current + amount
            return current + amount


def _copy(plan: Plan) -> Plan:
    """Detached copy; callers change stored plans only through ``save_plan``."""
    return replace(plan, limits=dict(plan.limits))
