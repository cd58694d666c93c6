"""Guard dependencies for FastAPI routes and the guard-failure response mapping.

Each dependency builds a ``GuardContext`` from the request, runs one guard
and returns its result. A ``GuardError`` is turned into a response by
``tenantgate_error_handler`` — 401 for identity problems, 403 for
authorization problems — and never retried.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable

from fastapi import Depends, Request, status
from fastapi.responses import JSONResponse

from config.settings import get_settings
from tenantgate.api.deps import Container, get_container
from tenantgate.auth.extraction import extract_token
from tenantgate.auth.guards import GuardContext, SaaSAdminGuardResult, TenantUserGuardResult
from tenantgate.core.exceptions import (
    GuardError,
    ModuleNotRegisteredError,
    PlanLimitExceededError,
    PlanNotFoundError,
    TenantGateError,
    TenantHasNoPlanError,
    UnknownModuleError,
)
from tenantgate.core.logging import get_logger

log = get_logger(__name__)

SUBDOMAIN_HEADER = "x-tenant-subdomain"

_DOMAIN_STATUS: dict[type[TenantGateError], int] = {
    ModuleNotRegisteredError: status.HTTP_404_NOT_FOUND,
    UnknownModuleError: status.HTTP_404_NOT_FOUND,
    PlanNotFoundError: status.HTTP_404_NOT_FOUND,
    TenantHasNoPlanError: status.HTTP_409_CONFLICT,
    PlanLimitExceededError: status.HTTP_403_FORBIDDEN,
}


def build_guard_context(request: Request) -> GuardContext:
    """Assemble guard input from headers, cookies and path params."""
    settings = get_settings()
    headers = {k.lower(): v for k, v in request.headers.items()}
    token = extract_token(
        headers,
        admin_cookie=settings.saas_admin_cookie,
        tenant_cookie=settings.tenant_user_cookie,
        context_header=settings.auth_context_header,
    )
    return GuardContext(
        token=token,
        headers=headers,
        subdomain=headers.get(SUBDOMAIN_HEADER),
        path_params=dict(request.path_params),
    )


# ── Guard dependencies ───────────────────────────────────────────


async def require_tenant_user(
    request: Request,
    container: Container = Depends(get_container),
) -> TenantUserGuardResult:
    return await container.guards.require_tenant_user(build_guard_context(request))


async def require_saas_admin(
    request: Request,
    container: Container = Depends(get_container),
) -> SaaSAdminGuardResult:
    return await container.guards.require_saas_admin(build_guard_context(request))


def require_module(module_id: str) -> Callable[..., Awaitable[TenantUserGuardResult]]:
    """Dependency factory: tenant user whose token lists ``module_id``."""

    async def _dependency(
        request: Request,
        container: Container = Depends(get_container),
    ) -> TenantUserGuardResult:
        return await container.guards.require_module(build_guard_context(request), module_id)

    return _dependency


def require_permission(permission: str) -> Callable[..., Awaitable[TenantUserGuardResult]]:
    """Dependency factory: tenant user whose token grants ``permission``."""

    async def _dependency(
        request: Request,
        container: Container = Depends(get_container),
    ) -> TenantUserGuardResult:
        return await container.guards.require_permission(build_guard_context(request), permission)

    return _dependency


def require_any_permission(
    permissions: Iterable[str],
) -> Callable[..., Awaitable[TenantUserGuardResult]]:
    required = list(permissions)

    async def _dependency(
        request: Request,
        container: Container = Depends(get_container),
    ) -> TenantUserGuardResult:
        return await container.guards.require_any_permission(
            build_guard_context(request), required
        )

    return _dependency


# ── Error mapping ────────────────────────────────────────────────


async def tenantgate_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map tenantgate errors to ``{"error": kind, "message": str}`` bodies."""
    if isinstance(exc, GuardError):
        log.warning(
            "guard_denied",
            kind=exc.kind,
            stage=exc.stage.value,
            path=request.url.path,
            method=request.method,
            reason=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.kind, "message": exc.message},
        )

    if not isinstance(exc, TenantGateError):
        raise exc

    code = next(
        (c for cls, c in _DOMAIN_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    log.warning(
        "request_rejected",
        kind=exc.kind,
        path=request.url.path,
        status_code=code,
        reason=exc.message,
    )
    return JSONResponse(status_code=code, content={"error": exc.kind, "message": exc.message})


async def value_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.warning("invalid_request_value", path=request.url.path, reason=str(exc))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "InvalidValue", "message": str(exc)},
    )
