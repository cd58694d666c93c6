"""Storage contracts for module definitions and tenant activation records.

Both contracts have an in-process implementation here; the SQL
implementations live in ``tenantgate.data.modules``.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Any

from tenantgate.core.types import (
    ActivationStatus,
    ModuleDefinition,
    ModuleEventType,
    ModuleId,
    ModulePermission,
    ModuleUIEntry,
    TenantId,
    TenantModuleActivation,
)


# ── Serialization ────────────────────────────────────────────────

def definition_to_dict(definition: ModuleDefinition) -> dict[str, Any]:
    ui = definition.ui_entry
    return {
        "id": definition.id,
        "slug": definition.slug,
        "name": definition.name,
        "version": definition.version,
        "description": definition.description,
        "required_plan": definition.required_plan,
        "can_disable": definition.can_disable,
        "permissions": [
            {"id": p.id, "name": p.name, "description": p.description}
            for p in definition.permissions
        ],
        "event_types": [
            {"id": e.id, "name": e.name, "description": e.description}
            for e in definition.event_types
        ],
        "ui_entry": None if ui is None else {
            "tenant_base_path": ui.tenant_base_path,
            "home_label": ui.home_label,
            "icon": ui.icon,
            "category": ui.category,
        },
    }


def definition_from_dict(data: dict[str, Any]) -> ModuleDefinition:
    ui = data.get("ui_entry")
    return ModuleDefinition(
        id=ModuleId(data["id"]),
        name=data.get("name", ""),
        version=data.get("version", ""),
        permissions=tuple(ModulePermission(**p) for p in data.get("permissions") or []),
        event_types=tuple(ModuleEventType(**e) for e in data.get("event_types") or []),
        required_plan=data.get("required_plan"),
        slug=data.get("slug") or "",
        description=data.get("description") or "",
        ui_entry=ModuleUIEntry(**ui) if ui else None,
        can_disable=data.get("can_disable", True),
    )


# ── Module definitions ───────────────────────────────────────────

class ModuleStore(ABC):
    """Persisted catalog of module definitions, addressable by id or slug."""

    @abstractmethod
    async def save_definition(self, definition: ModuleDefinition) -> None: ...

    @abstractmethod
    async def find_by_id(self, module_id: str) -> ModuleDefinition | None: ...

    @abstractmethod
    async def find_by_slug(self, slug: str) -> ModuleDefinition | None: ...

    @abstractmethod
    async def list_definitions(self) -> list[ModuleDefinition]: ...


class InMemoryModuleStore(ModuleStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_id: dict[str, ModuleDefinition] = {}
        self._slug_index: dict[str, str] = {}  # slug -> id

    async def save_definition(self, definition: ModuleDefinition) -> None:
        with self._lock:
            previous = self._by_id.get(definition.id)
            if previous is not None and self._slug_index.get(previous.slug) == previous.id:
                del self._slug_index[previous.slug]
            self._by_id[definition.id] = definition
            self._slug_index[definition.slug] = definition.id

    async def find_by_id(self, module_id: str) -> ModuleDefinition | None:
        with self._lock:
            return self._by_id.get(module_id)

    async def find_by_slug(self, slug: str) -> ModuleDefinition | None:
        with self._lock:
            module_id = self._slug_index.get(slug)
            return self._by_id.get(module_id) if module_id is not None else None

    async def list_definitions(self) -> list[ModuleDefinition]:
        with self._lock:
            return list(self._by_id.values())


# ── Activation records ───────────────────────────────────────────

class ActivationRepository(ABC):
    """Activation records keyed by the (tenant_id, module_id) pair."""

    @abstractmethod
    async def find(self, tenant_id: TenantId, module_id: ModuleId) -> TenantModuleActivation | None: ...

    @abstractmethod
    async def upsert_active(
        self, tenant_id: TenantId, module_id: ModuleId, now: datetime
    ) -> TenantModuleActivation:
        """Create, reactivate, or leave untouched — as one atomic operation.

        A missing record is created active; an inactive record is flipped to
        active with ``deactivated_at`` cleared and ``activated_at = now``; an
        active record is returned unchanged.
        """

    @abstractmethod
    async def deactivate(self, tenant_id: TenantId, module_id: ModuleId, now: datetime) -> bool:
        """Soft-disable an enabled record. Returns False when nothing changed."""

    @abstractmethod
    async def list_active(self, tenant_id: TenantId) -> list[TenantModuleActivation]: ...


class InMemoryActivationRepository(ActivationRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[tuple[str, str], TenantModuleActivation] = {}

    async def find(self, tenant_id: TenantId, module_id: ModuleId) -> TenantModuleActivation | None:
        with self._lock:
            record = self._records.get((tenant_id, module_id))
            return replace(record) if record is not None else None

    async def upsert_active(
        self, tenant_id: TenantId, module_id: ModuleId, now: datetime
    ) -> TenantModuleActivation:
        with self._lock:
            record = self._records.get((tenant_id, module_id))
            if record is None:
                record = TenantModuleActivation(
                    tenant_id=tenant_id,
                    module_id=module_id,
                    status=ActivationStatus.ACTIVE,
                    activated_at=now,
                )
                self._records[(tenant_id, module_id)] = record
            elif not record.is_enabled:
                record.status = ActivationStatus.ACTIVE
                record.deactivated_at = None
                record.activated_at = now
            return replace(record)

    async def deactivate(self, tenant_id: TenantId, module_id: ModuleId, now: datetime) -> bool:
        with self._lock:
            record = self._records.get((tenant_id, module_id))
            if record is None or not record.is_enabled:
                return False
            record.status = ActivationStatus.INACTIVE
            record.deactivated_at = now
            return True

    async def list_active(self, tenant_id: TenantId) -> list[TenantModuleActivation]:
        with self._lock:
            return [
                replace(r)
                for (tid, _), r in self._records.items()
                if tid == tenant_id and r.is_enabled
            ]

    async def count(self, tenant_id: TenantId) -> int:
        """Total records for the tenant, enabled or not."""
        with self._lock:
            return sum(1 for tid, _ in self._records if tid == tenant_id)
