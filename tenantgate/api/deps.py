"""FastAPI dependency injection — the service container shared by routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request

from config.settings import Settings, get_settings
from tenantgate.auth.guards import AuthGuards
from tenantgate.auth.jwt import JWTManager
from tenantgate.auth.tokens import TokenCodec
from tenantgate.core.logging import get_logger
from tenantgate.core.types import ModuleDefinition, ModuleId, ModulePermission
from tenantgate.modules.activation import TenantModuleService
from tenantgate.modules.registry import ModuleRegistry, PersistentModuleRegistry
from tenantgate.modules.store import (
    ActivationRepository,
    InMemoryActivationRepository,
    InMemoryModuleStore,
)
from tenantgate.plans.repository import MemoryPlanRepository
from tenantgate.plans.service import PlanService

log = get_logger(__name__)

HELLO_MODULE = ModuleDefinition(
    id=ModuleId("hello-module"),
    name="Hello Module",
    version="1.0.0",
    permissions=(ModulePermission(id="hello.read", name="Read hello"),),
    required_plan="plan_free",
)


@dataclass
class Container:
    """Process-wide service instances, built once per application."""

    registry: ModuleRegistry
    activations: ActivationRepository
    modules: TenantModuleService
    plans: PlanService
    codec: TokenCodec
    guards: AuthGuards


def build_codec(settings: Settings) -> TokenCodec:
    jwt = JWTManager(
        secret=settings.jwt_secret.get_secret_value(),
        issuer=settings.jwt_issuer,
        expiry_seconds=settings.jwt_expiry_minutes * 60,
    )
    return TokenCodec(jwt)


def build_memory_container(settings: Settings) -> Container:
    """All-in-memory container; state lives as long as the process.

    The registry reads the same activation repository the service writes.
    """
    activations = InMemoryActivationRepository()
    registry = PersistentModuleRegistry(InMemoryModuleStore(), activations)
    codec = build_codec(settings)
    return Container(
        registry=registry,
        activations=activations,
        modules=TenantModuleService(registry, activations),
        plans=PlanService(MemoryPlanRepository(default_plan_id=settings.default_plan_id)),
        codec=codec,
        guards=AuthGuards(codec),
    )


async def build_sql_container(settings: Settings) -> Container:
    """PostgreSQL-backed container. Creates tables and seeds default plans."""
    from tenantgate.data.db import get_engine, init_schema
    from tenantgate.data.modules import SqlActivationRepository, SqlModuleStore
    from tenantgate.data.plans import SqlPlanRepository

    engine = await get_engine()
    await init_schema()

    activations = SqlActivationRepository(engine)
    registry = PersistentModuleRegistry(SqlModuleStore(engine), activations)
    plan_repo = SqlPlanRepository(engine, default_plan_id=settings.default_plan_id)
    await plan_repo.seed_defaults()

    codec = build_codec(settings)
    return Container(
        registry=registry,
        activations=activations,
        modules=TenantModuleService(registry, activations),
        plans=PlanService(plan_repo),
        codec=codec,
        guards=AuthGuards(codec),
    )


async def build_container(settings: Settings | None = None) -> Container:
    settings = settings or get_settings()
    if settings.storage_backend == "sql":
        container = await build_sql_container(settings)
    else:
        container = build_memory_container(settings)
    await container.registry.register(HELLO_MODULE)
    log.info("container_built", storage_backend=settings.storage_backend)
    return container


# ── Request-scoped providers ─────────────────────────────────────


def get_container(request: Request) -> Container:
    """The container attached to the running application."""
    return request.app.state.container


def get_module_service(container: Container = Depends(get_container)) -> TenantModuleService:
    return container.modules


def get_plan_service(container: Container = Depends(get_container)) -> PlanService:
    return container.plans


def get_registry(container: Container = Depends(get_container)) -> ModuleRegistry:
    return container.registry
