"""tenantgate FastAPI application — entry point for the API server."""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from tenantgate.api.deps import Container, build_container
from tenantgate.api.middleware import tenantgate_error_handler, value_error_handler
from tenantgate.core.exceptions import TenantGateError
from tenantgate.core.logging import get_logger, setup_logging
from tenantgate.data.db import close_engine

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup/shutdown lifecycle — build the container, close the engine on exit."""
    settings = get_settings()
    setup_logging(json_output=settings.log_json, level=settings.log_level)
    log.info("api_starting", storage_backend=settings.storage_backend)
    if app.state.container is None:
        app.state.container = await build_container(settings)
    yield
    if settings.storage_backend == "sql":
        await close_engine()
    log.info("api_shutdown")


def create_app(container: Container | None = None) -> FastAPI:
    """Build and return the FastAPI application.

    A prebuilt ``container`` skips backend construction at startup.
    """
    settings = get_settings()

    app = FastAPI(
        title="tenantgate API",
        description="Tenant module activation, plan ledger and auth guards",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TenantGateError, tenantgate_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)

    # Register routers
    from tenantgate.api.routes.health import router as health_router
    from tenantgate.api.routes.modules import router as modules_router
    from tenantgate.api.routes.plans import router as plans_router
    from tenantgate.api.routes.tenant import router as tenant_router

    app.include_router(health_router, prefix="/api")
    app.include_router(modules_router, prefix="/api")
    app.include_router(plans_router, prefix="/api")
    app.include_router(tenant_router, prefix="/api")

    return app


app = create_app()
