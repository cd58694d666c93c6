"""Custom exception hierarchy for tenantgate."""

from __future__ import annotations

from typing import Any

from tenantgate.core.types import GuardStage


class TenantGateError(Exception):
    """Base exception for all tenantgate errors."""

    kind: str = "Error"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.context: dict[str, Any] = context or {}


# ── Guard Chain ──────────────────────────────────────────────────

class GuardError(TenantGateError):
    """Request-time authentication or authorization failure."""

    status_code: int = 401
    stage: GuardStage = GuardStage.DENIED


class UnauthenticatedError(GuardError):
    """No usable credential, or the credential is invalid or expired."""

    kind = "Unauthenticated"
    status_code = 401
    stage = GuardStage.UNAUTHENTICATED


class ModuleAccessDeniedError(GuardError):
    """Valid tenant identity, but the module is absent from the token."""

    kind = "ModuleAccessDenied"
    status_code = 403


class PermissionDeniedError(GuardError):
    """Valid tenant identity, but the permission (or role) is absent from the token."""

    kind = "PermissionDenied"
    status_code = 403


# ── Module Registry / Activation ─────────────────────────────────

class ModuleRegistryError(TenantGateError):
    """Administrative module error — server misconfiguration, not a client failure."""


class UnknownModuleError(ModuleRegistryError):
    """Registry asked to activate a module id it has never seen."""

    kind = "ModuleNotFound"


class ModuleNotRegisteredError(ModuleRegistryError):
    """Activation service asked to enable a module id missing from the registry."""

    kind = "ModuleNotRegistered"


# ── Plan / Usage Ledger ──────────────────────────────────────────

class PlanError(TenantGateError):
    """Plan or usage domain error."""


class PlanNotFoundError(PlanError):
    kind = "PlanNotFound"


class TenantHasNoPlanError(PlanError):
    kind = "TenantHasNoPlan"


class PlanLimitExceededError(PlanError):
    """Incrementing usage would push the counter past a finite plan limit."""

    kind = "PlanLimitExceeded"
