"""Pydantic V2 request/response schemas for the tenantgate API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from tenantgate.core.types import ActivationDetails, ModuleDefinition, Plan


# ── Modules ──────────────────────────────────────────────────────

class PermissionOut(BaseModel):
    id: str
    name: str = ""
    description: str = ""


class ModuleOut(BaseModel):
    id: str
    slug: str
    name: str
    version: str
    description: str = ""
    required_plan: str | None = None
    permissions: list[PermissionOut] = Field(default_factory=list)
    event_types: list[str] = Field(default_factory=list)
    is_active_for_tenant: bool = False

    @classmethod
    def from_definition(cls, definition: ModuleDefinition, active: bool = False) -> ModuleOut:
        return cls(
            id=definition.id,
            slug=definition.slug,
            name=definition.name,
            version=definition.version,
            description=definition.description,
            required_plan=definition.required_plan,
            permissions=[
                PermissionOut(id=p.id, name=p.name, description=p.description)
                for p in definition.permissions
            ],
            event_types=[e.id for e in definition.event_types],
            is_active_for_tenant=active,
        )


class ActivationOut(BaseModel):
    module_id: str
    status: str
    activated_at: datetime
    deactivated_at: datetime | None = None

    @classmethod
    def from_details(cls, details: ActivationDetails) -> ActivationOut:
        return cls(
            module_id=details.module_id,
            status=details.status.value,
            activated_at=details.activated_at,
            deactivated_at=details.deactivated_at,
        )


# ── Plans ────────────────────────────────────────────────────────

class PlanCreate(BaseModel):
    """Request body for creating a plan."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    modules: list[str] = Field(default_factory=list)
    limits: dict[str, int] = Field(default_factory=dict)


class PlanOut(BaseModel):
    id: str
    slug: str
    name: str
    description: str = ""
    modules: list[str]
    limits: dict[str, int]
    status: str

    @classmethod
    def from_plan(cls, plan: Plan) -> PlanOut:
        return cls(
            id=plan.id,
            slug=plan.slug,
            name=plan.name,
            description=plan.description,
            modules=list(plan.modules),
            limits=dict(plan.limits),
            status=plan.status.value,
        )


class TenantPlanUpdate(BaseModel):
    plan_id: str = Field(..., min_length=1)


# ── Tenant ───────────────────────────────────────────────────────

class AuthContextOut(BaseModel):
    """Resolved auth context of the calling tenant user."""

    user_id: str
    tenant_id: str
    role: str
    permissions: list[str]
    active_modules: list[str]


class UsageIncrement(BaseModel):
    amount: int = Field(default=1, ge=1)


class UsageOut(BaseModel):
    tenant_id: str
    limit_key: str
    used: int
    limit: int


# ── Generic ──────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "dev"


class ErrorResponse(BaseModel):
    error: str
    message: str
