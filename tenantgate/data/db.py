"""PostgreSQL connection and schema definitions."""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from config.settings import get_settings
from tenantgate.core.logging import get_logger

log = get_logger(__name__)

metadata = MetaData()

# ── Tables ───────────────────────────────────────────────────────

module_definitions = Table(
    "module_definitions",
    metadata,
    Column("module_id", String, primary_key=True),
    Column("slug", String, nullable=False, unique=True),
    Column("name", String, nullable=False),
    Column("version", String, nullable=False),
    Column("definition", JSONB, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

tenant_modules = Table(
    "tenant_modules",
    metadata,
    Column("tenant_id", String, nullable=False, index=True),
    Column("module_id", String, nullable=False),
    Column("status", String, nullable=False),
    Column("activated_at", DateTime(timezone=True), nullable=False),
    Column("deactivated_at", DateTime(timezone=True), nullable=True),
    UniqueConstraint("tenant_id", "module_id", name="uq_tenant_modules_tenant_module"),
)

plans = Table(
    "plans",
    metadata,
    Column("plan_id", String, primary_key=True),
    Column("slug", String, nullable=False),
    Column("name", String, nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("modules", JSONB, nullable=False),
    Column("limits", JSONB, nullable=False),
    Column("status", String, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

tenant_plans = Table(
    "tenant_plans",
    metadata,
    Column("tenant_id", String, primary_key=True),
    Column("plan_id", String, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

tenant_usage = Table(
    "tenant_usage",
    metadata,
    Column("tenant_id", String, nullable=False),
    Column("limit_key", String, nullable=False),
    Column("used", BigInteger, nullable=False, default=0),
    PrimaryKeyConstraint("tenant_id", "limit_key", name="pk_tenant_usage"),
)


# ── Engine ───────────────────────────────────────────────────────

_engine: AsyncEngine | None = None


async def get_engine() -> AsyncEngine:
    """Get or create the async database engine (singleton)."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        settings = get_settings()
        db_url = settings.database_url.get_secret_value()
        _engine = create_async_engine(
            db_url,
            echo=False,
            pool_size=10,
            max_overflow=20,
        )
        log.info("database_engine_created", host=db_url.split("@")[-1].split("?")[0])
    return _engine


async def init_schema() -> None:
    """Create all tables."""
    engine = await get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    log.info("schema_initialized")


async def close_engine() -> None:
    """Dispose the database engine."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        log.info("database_engine_closed")
