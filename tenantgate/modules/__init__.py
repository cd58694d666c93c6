"""Module registry and tenant module activation."""

from tenantgate.modules.activation import TenantModuleService
from tenantgate.modules.registry import (
    InMemoryModuleRegistry,
    ModuleIdResolver,
    ModuleRegistry,
    ModuleServiceRegistry,
    PersistentModuleRegistry,
)
from tenantgate.modules.store import (
    ActivationRepository,
    InMemoryActivationRepository,
    InMemoryModuleStore,
    ModuleStore,
)

__all__ = [
    "ActivationRepository",
    "InMemoryActivationRepository",
    "InMemoryModuleRegistry",
    "InMemoryModuleStore",
    "ModuleIdResolver",
    "ModuleRegistry",
    "ModuleServiceRegistry",
    "ModuleStore",
    "PersistentModuleRegistry",
    "TenantModuleService",
]
