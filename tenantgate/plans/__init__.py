"""Plan/usage ledger — plan catalog, tenant assignment and quota enforcement."""

from tenantgate.plans.repository import (
    DEFAULT_PLAN_ID,
    MemoryPlanRepository,
    PlanRepository,
    default_plans,
)
from tenantgate.plans.service import PlanService

__all__ = [
    "DEFAULT_PLAN_ID",
    "MemoryPlanRepository",
    "PlanRepository",
    "PlanService",
    "default_plans",
]
