"""Pytest configuration, compatibility helpers and shared fixtures.

This project includes async tests marked with ``@pytest.mark.asyncio``.
Some environments run unit tests without ``pytest-asyncio`` installed, which
would otherwise make those tests fail at collection/runtime.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any

import pytest

from tenantgate.auth.guards import AuthGuards
from tenantgate.auth.jwt import JWTManager
from tenantgate.auth.tokens import TokenCodec
from tenantgate.core.types import (
    ModuleDefinition,
    ModuleId,
    ModulePermission,
    SaaSAdminToken,
    TenantId,
    TenantUserToken,
    UserId,
)

TEST_SECRET = "test-secret-key"


def pytest_configure(config: pytest.Config) -> None:
    """Register local markers used in the suite."""
    config.addinivalue_line("markers", "asyncio: mark test as asyncio-compatible")
    config.addinivalue_line("markers", "integration: needs a live PostgreSQL database")


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run ``@pytest.mark.asyncio`` tests without external plugins.

    If pytest-asyncio (or another async plugin) is installed, this hook may be
    bypassed by that plugin depending on hook ordering. In plugin-less
    environments, this fallback executes coroutine tests via ``asyncio.run``.
    """
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    kwargs: dict[str, Any] = {
        arg: pyfuncitem.funcargs[arg]
        for arg in pyfuncitem._fixtureinfo.argnames
    }
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_func(**kwargs))
    finally:
        loop.close()
        # Keep a default loop available for sync tests that call
        # ``asyncio.get_event_loop()`` directly.
        asyncio.set_event_loop(asyncio.new_event_loop())
    return True


# ── Shared fixtures ──────────────────────────────────────────────


@pytest.fixture()
def jwt_manager() -> JWTManager:
    return JWTManager(secret=TEST_SECRET, issuer="saas-core", expiry_seconds=900)


@pytest.fixture()
def codec(jwt_manager: JWTManager) -> TokenCodec:
    return TokenCodec(jwt_manager)


@pytest.fixture()
def guards(codec: TokenCodec) -> AuthGuards:
    return AuthGuards(codec)


@pytest.fixture()
def hello_module() -> ModuleDefinition:
    return ModuleDefinition(
        id=ModuleId("hello-module"),
        name="Hello Module",
        version="1.0.0",
        permissions=(ModulePermission(id="hello.read", name="Read hello"),),
        required_plan="plan_free",
    )


@pytest.fixture()
def admin_token() -> SaaSAdminToken:
    return SaaSAdminToken(user_id=UserId("admin-1"), role="owner")


@pytest.fixture()
def tenant_token() -> TenantUserToken:
    return TenantUserToken(
        user_id=UserId("user-1"),
        tenant_id=TenantId("tenant-a"),
        role="member",
        permissions=frozenset({"hello.read", "usage.read"}),
        active_modules=(ModuleId("hello-module"),),
    )
