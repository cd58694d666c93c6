"""Identity tokens and the request-time guard chain."""

from tenantgate.auth.extraction import extract_token
from tenantgate.auth.guards import (
    AuthGuards,
    GuardContext,
    GuardStage,
    SaaSAdminGuardResult,
    TenantUserGuardResult,
)
from tenantgate.auth.jwt import JWTManager
from tenantgate.auth.tokens import TokenCodec

__all__ = [
    "AuthGuards",
    "GuardContext",
    "GuardStage",
    "JWTManager",
    "SaaSAdminGuardResult",
    "TenantUserGuardResult",
    "TokenCodec",
    "extract_token",
]
