"""Shared domain types — identifiers, module definitions, activations, plans and tokens."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import NewType, Union

# ── Identifiers ──────────────────────────────────────────────────

TenantId = NewType("TenantId", str)
UserId = NewType("UserId", str)
ModuleId = NewType("ModuleId", str)

UNLIMITED: int = -1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enums ────────────────────────────────────────────────────────

class UserContext(str, Enum):
    SAAS_ADMIN = "saas_admin"
    TENANT_USER = "tenant_user"


class ActivationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PlanStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class GuardStage(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    TOKEN_VALIDATED = "token_validated"
    MODULE_CHECKED = "module_checked"
    PERMISSION_CHECKED = "permission_checked"
    AUTHORIZED = "authorized"
    DENIED = "denied"


# ── Modules ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class ModulePermission:
    id: str
    name: str = ""
    description: str = ""


@dataclass(frozen=True)
class ModuleEventType:
    id: str
    name: str = ""
    description: str = ""


@dataclass(frozen=True)
class ModuleUIEntry:
    """Where a module mounts itself in the tenant admin."""

    tenant_base_path: str
    home_label: str
    icon: str = ""
    category: str = ""


@dataclass(frozen=True)
class ModuleDefinition:
    """Immutable description of a module, produced by the module's bootstrap code."""

    id: ModuleId
    name: str
    version: str
    permissions: tuple[ModulePermission, ...] = ()
    event_types: tuple[ModuleEventType, ...] = ()
    required_plan: str | None = None
    slug: str = ""
    description: str = ""
    ui_entry: ModuleUIEntry | None = None
    can_disable: bool = True

    def __post_init__(self) -> None:
        if not self.id:
            msg = "module id cannot be empty"
            raise ValueError(msg)
        # Frozen dataclass: slug defaults to the canonical id
        if not self.slug:
            object.__setattr__(self, "slug", str(self.id))
        object.__setattr__(self, "permissions", tuple(self.permissions))
        object.__setattr__(self, "event_types", tuple(self.event_types))

    @property
    def permission_ids(self) -> frozenset[str]:
        return frozenset(p.id for p in self.permissions)


@dataclass
class TenantModuleActivation:
    """Per (tenant, module) activation record. Updated in place, never deleted."""

    tenant_id: TenantId
    module_id: ModuleId
    status: ActivationStatus = ActivationStatus.ACTIVE
    activated_at: datetime = field(default_factory=_utcnow)
    deactivated_at: datetime | None = None

    @property
    def is_enabled(self) -> bool:
        return self.status is ActivationStatus.ACTIVE and self.deactivated_at is None


@dataclass(frozen=True)
class ActivationDetails:
    """Admin-facing projection of an activation record."""

    module_id: ModuleId
    status: ActivationStatus
    activated_at: datetime
    deactivated_at: datetime | None


# ── Plans ────────────────────────────────────────────────────────

@dataclass
class Plan:
    """A bundle of allowed modules and numeric limits (-1 = unlimited)."""

    id: str
    slug: str
    name: str
    description: str = ""
    modules: tuple[ModuleId, ...] = ()
    limits: dict[str, int] = field(default_factory=dict)
    status: PlanStatus = PlanStatus.ACTIVE
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        self.modules = tuple(self.modules)
        for key, value in self.limits.items():
            if value < UNLIMITED:
                msg = f"limit {key!r} must be >= -1, got {value}"
                raise ValueError(msg)

    def has_module(self, module_id: str) -> bool:
        return module_id in self.modules

    def limit_for(self, limit_key: str) -> int:
        """Configured limit for the key; absent keys fail closed to 0."""
        return self.limits.get(limit_key, 0)


# ── Tokens ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class SaaSAdminToken:
    user_id: UserId
    role: str
    context: UserContext = UserContext.SAAS_ADMIN


@dataclass(frozen=True)
class TenantUserToken:
    user_id: UserId
    tenant_id: TenantId
    role: str
    permissions: frozenset[str] = frozenset()
    active_modules: tuple[ModuleId, ...] = ()
    context: UserContext = UserContext.TENANT_USER

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    def has_module(self, module_id: str) -> bool:
        return module_id in self.active_modules


AuthToken = Union[SaaSAdminToken, TenantUserToken]
