"""Module registry — catalog of module definitions plus per-tenant active sets.

Two interchangeable backends share one contract:

- ``InMemoryModuleRegistry`` keeps everything in process memory and lives as
  long as the instance that owns it.
- ``PersistentModuleRegistry`` keeps definitions in a ``ModuleStore`` and
  activations in an ``ActivationRepository``, and accepts a slug wherever a
  module id is expected.

Neither is a module-level global: the application container builds one and
injects it, and tests build a fresh one per test.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from tenantgate.core.exceptions import UnknownModuleError
from tenantgate.core.logging import get_logger
from tenantgate.core.types import ModuleDefinition, ModuleId, TenantId
from tenantgate.modules.store import ActivationRepository, ModuleStore

log = get_logger(__name__)


class ModuleRegistry(ABC):
    @abstractmethod
    async def register(self, definition: ModuleDefinition) -> None:
        """Upsert by id. Last write wins; no merge, no version check."""

    @abstractmethod
    async def get_module_definition(self, module_id: str) -> ModuleDefinition | None: ...

    @abstractmethod
    async def list_registered_modules(self) -> list[ModuleDefinition]:
        """All definitions. Order is backend-specific; use it for display only."""

    @abstractmethod
    async def list_tenant_active_modules(self, tenant_id: TenantId) -> list[ModuleDefinition]: ...

    @abstractmethod
    async def activate_module_for_tenant(self, module_id: str, tenant_id: TenantId) -> None:
        """Raises UnknownModuleError when the module was never registered."""

    @abstractmethod
    async def deactivate_module_for_tenant(self, module_id: str, tenant_id: TenantId) -> None:
        """No-op when the pair is missing or already inactive."""

    @abstractmethod
    async def is_module_active_for_tenant(self, module_id: str, tenant_id: TenantId) -> bool: ...

    async def resolve_module_id(self, module_id: str) -> ModuleId | None:
        """Canonical id for ``module_id``, or None when it is unknown."""
        definition = await self.get_module_definition(module_id)
        return definition.id if definition is not None else None


class InMemoryModuleRegistry(ModuleRegistry):
    """Process-local registry. Mutations and reads share one lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._modules: dict[str, ModuleDefinition] = {}
        self._tenant_modules: dict[str, set[str]] = {}

    async def register(self, definition: ModuleDefinition) -> None:
        with self._lock:
            self._modules[definition.id] = definition
        log.debug("module_registered", module_id=definition.id, version=definition.version)

    async def get_module_definition(self, module_id: str) -> ModuleDefinition | None:
        with self._lock:
            return self._modules.get(module_id)

    async def list_registered_modules(self) -> list[ModuleDefinition]:
        with self._lock:
            return list(self._modules.values())

    async def list_tenant_active_modules(self, tenant_id: TenantId) -> list[ModuleDefinition]:
        with self._lock:
            active = self._tenant_modules.get(tenant_id, set())
            return [self._modules[m] for m in active if m in self._modules]

    async def activate_module_for_tenant(self, module_id: str, tenant_id: TenantId) -> None:
        with self._lock:
            if module_id not in self._modules:
                raise UnknownModuleError(
                    f"Module {module_id} not found",
                    context={"module_id": module_id},
                )
            self._tenant_modules.setdefault(tenant_id, set()).add(module_id)

    async def deactivate_module_for_tenant(self, module_id: str, tenant_id: TenantId) -> None:
        with self._lock:
            self._tenant_modules.get(tenant_id, set()).discard(module_id)

    async def is_module_active_for_tenant(self, module_id: str, tenant_id: TenantId) -> bool:
        with self._lock:
            return module_id in self._tenant_modules.get(tenant_id, set())


class ModuleIdResolver:
    """Two-step lookup: canonical id first, then the slug index."""

    def __init__(self, store: ModuleStore) -> None:
        self._store = store

    async def resolve_definition(self, id_or_slug: str) -> ModuleDefinition | None:
        if not id_or_slug:
            return None
        definition = await self._store.find_by_id(id_or_slug)
        if definition is None:
            definition = await self._store.find_by_slug(id_or_slug)
        return definition

    async def resolve(self, id_or_slug: str) -> ModuleId | None:
        definition = await self.resolve_definition(id_or_slug)
        return definition.id if definition is not None else None


class PersistentModuleRegistry(ModuleRegistry):
    """Store-backed registry; activations are rows in the activation repository."""

    def __init__(self, store: ModuleStore, activations: ActivationRepository) -> None:
        self._store = store
        self._activations = activations
        self._resolver = ModuleIdResolver(store)

    @property
    def resolver(self) -> ModuleIdResolver:
        return self._resolver

    async def register(self, definition: ModuleDefinition) -> None:
        await self._store.save_definition(definition)
        log.debug("module_registered", module_id=definition.id, version=definition.version)

    async def get_module_definition(self, module_id: str) -> ModuleDefinition | None:
        return await self._resolver.resolve_definition(module_id)

    async def list_registered_modules(self) -> list[ModuleDefinition]:
        return await self._store.list_definitions()

    async def list_tenant_active_modules(self, tenant_id: TenantId) -> list[ModuleDefinition]:
        records = await self._activations.list_active(tenant_id)
        definitions: list[ModuleDefinition] = []
        for record in records:
            definition = await self._resolver.resolve_definition(record.module_id)
            if definition is not None:
                definitions.append(definition)
        return definitions

    async def activate_module_for_tenant(self, module_id: str, tenant_id: TenantId) -> None:
        canonical = await self._resolver.resolve(module_id)
        if canonical is None:
            raise UnknownModuleError(
                f"Module {module_id} not found",
                context={"module_id": module_id},
            )
        await self._activations.upsert_active(tenant_id, canonical, datetime.now(timezone.utc))

    async def deactivate_module_for_tenant(self, module_id: str, tenant_id: TenantId) -> None:
        canonical = await self._resolver.resolve(module_id)
        if canonical is None:
            return
        await self._activations.deactivate(tenant_id, canonical, datetime.now(timezone.utc))

    async def is_module_active_for_tenant(self, module_id: str, tenant_id: TenantId) -> bool:
        canonical = await self._resolver.resolve(module_id)
        if canonical is None:
            return False
        record = await self._activations.find(tenant_id, canonical)
        return record is not None and record.is_enabled


class ModuleServiceRegistry:
    """Services a module exposes to others, keyed by (module_id, service_key)."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._services: dict[tuple[str, str], Any] = {}

    def register(self, module_id: str, service_key: str, service: Any) -> None:
        with self._lock:
            self._services[(module_id, service_key)] = service

    def get(self, module_id: str, service_key: str) -> Any | None:
        with self._lock:
            return self._services.get((module_id, service_key))
