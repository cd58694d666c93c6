"""SQL repositories against a live PostgreSQL database.

Skipped unless ``TENANTGATE_TEST_DATABASE_URL`` points at a disposable
database (``postgresql+asyncpg://...``). Tables are dropped and recreated
for every test.
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from tenantgate.core.types import ModuleId, Plan, TenantId
from tenantgate.data.db import metadata
from tenantgate.data.modules import SqlActivationRepository
from tenantgate.data.plans import SqlPlanRepository

DATABASE_URL = os.environ.get("TENANTGATE_TEST_DATABASE_URL", "")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not DATABASE_URL, reason="TENANTGATE_TEST_DATABASE_URL not set"),
]

T1 = TenantId("tenant-a")
HELLO = ModuleId("hello-module")


async def _fresh_engine() -> AsyncEngine:
    engine = create_async_engine(DATABASE_URL, pool_size=10, max_overflow=10)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)
    return engine


async def _plans_with_limit(engine: AsyncEngine, limit: int) -> SqlPlanRepository:
    repo = SqlPlanRepository(engine, default_plan_id="plan_test")
    await repo.save_plan(Plan(id="plan_test", slug="test", name="Test", limits={"users": limit}))
    return repo


class TestUsageIncrement:
    @pytest.mark.asyncio
    async def test_refuses_past_limit(self) -> None:
        engine = await _fresh_engine()
        try:
            repo = await _plans_with_limit(engine, 3)
            assert await repo.increment_usage_within_limit(T1, "users", 2, 3) == 2
            assert await repo.increment_usage_within_limit(T1, "users", 2, 3) is None
            assert await repo.increment_usage_within_limit(T1, "users", 1, 3) == 3
            assert await repo.get_tenant_usage(T1, "users") == 3
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_first_increment_over_limit_inserts_nothing(self) -> None:
        engine = await _fresh_engine()
        try:
            repo = await _plans_with_limit(engine, 3)
            assert await repo.increment_usage_within_limit(T1, "users", 5, 3) is None
            assert await repo.get_tenant_usage(T1, "users") == 0
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_unlimited(self) -> None:
        engine = await _fresh_engine()
        try:
            repo = await _plans_with_limit(engine, -1)
            assert await repo.increment_usage_within_limit(T1, "users", 10_000, -1) == 10_000
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_concurrent_increments_never_exceed_limit(self) -> None:
        engine = await _fresh_engine()
        try:
            repo = await _plans_with_limit(engine, 5)
            results = await asyncio.gather(
                *(repo.increment_usage_within_limit(T1, "users", 1, 5) for _ in range(12))
            )
            assert sum(1 for r in results if r is not None) == 5
            assert await repo.get_tenant_usage(T1, "users") == 5
        finally:
            await engine.dispose()


class TestActivationUpsert:
    @pytest.mark.asyncio
    async def test_upsert_keeps_active_row(self) -> None:
        engine = await _fresh_engine()
        try:
            repo = SqlActivationRepository(engine)
            t0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
            first = await repo.upsert_active(T1, HELLO, t0)
            second = await repo.upsert_active(T1, HELLO, t0 + timedelta(hours=1))
            assert second.activated_at == first.activated_at
            assert len(await repo.list_active(T1)) == 1
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_reactivation_resets_row(self) -> None:
        engine = await _fresh_engine()
        try:
            repo = SqlActivationRepository(engine)
            t0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
            await repo.upsert_active(T1, HELLO, t0)
            assert await repo.deactivate(T1, HELLO, t0 + timedelta(minutes=5)) is True
            assert await repo.deactivate(T1, HELLO, t0 + timedelta(minutes=6)) is False

            record = await repo.upsert_active(T1, HELLO, t0 + timedelta(hours=1))
            assert record.is_enabled is True
            assert record.deactivated_at is None
            assert record.activated_at == t0 + timedelta(hours=1)
        finally:
            await engine.dispose()
