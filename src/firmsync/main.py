"""FastAPI application factory.

Run with ``uvicorn --factory firmsync.main:create_app``.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from firmsync import __version__
from firmsync.api import api_router
from firmsync.config import settings
from firmsync.core.audit import (
    AuditSink,
    DatabaseAuditSink,
    FanoutAuditSink,
    StructlogAuditSink,
)
from firmsync.core.auth import PrincipalContextMiddleware, RequestIdMiddleware
from firmsync.core.errors import register_exception_handlers
from firmsync.core.jobs.registry import close_arq_pool, init_arq_pool
from firmsync.core.logging import RequestLoggingMiddleware, configure_logging
from firmsync.core.observability import (
    instrument_sqlalchemy,
    setup_tracing,
    shutdown_tracing,
)
from firmsync.core.tenancy import ConnectionManager


configure_logging(settings)

logger = structlog.get_logger()

DEV_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5173"]


def build_audit_sink(connections: ConnectionManager) -> AuditSink:
    """Log sink, plus the central store when persistence is enabled."""
    sink: AuditSink = StructlogAuditSink()
    if settings.audit_persist_events:
        sink = FanoutAuditSink([sink, DatabaseAuditSink(connections.central_session)])
    return sink


async def _evict_idle_pools(connections: ConnectionManager, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await connections.evict_idle_connections()
        except Exception as e:
            logger.warning("tenant_pool_eviction_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the central store and tenant pool cache; close them on exit.

    A manager or sink injected through ``create_app`` is used as-is and
    left open for its owner.
    """
    logger.info(
        "application_startup",
        app_name=settings.app_name,
        environment=settings.environment,
    )

    owns_connections = app.state.connections is None
    if owns_connections:
        app.state.connections = ConnectionManager.from_settings(settings)
    connections: ConnectionManager = app.state.connections

    if app.state.audit_sink is None:
        app.state.audit_sink = build_audit_sink(connections)
    if app.state.tracing_enabled:
        instrument_sqlalchemy(connections.central_engine)

    # Without Redis the API still serves tenant traffic; only provisioning
    # requests fail until the pool is back
    try:
        await init_arq_pool()
    except Exception as e:
        logger.warning("arq_pool_init_failed", error=str(e))

    eviction = asyncio.create_task(
        _evict_idle_pools(connections, settings.tenant_pool_eviction_interval)
    )

    yield

    logger.info("application_shutdown")
    eviction.cancel()
    with suppress(asyncio.CancelledError):
        await eviction

    if owns_connections:
        await connections.close_all_connections()
    shutdown_tracing()
    await close_arq_pool()
    logger.info("application_shutdown_complete")


def create_app(
    connections: ConnectionManager | None = None,
    audit_sink: AuditSink | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        connections: Connection manager to use instead of one built from
            settings at startup
        audit_sink: Audit sink to use instead of the configured default
    """
    docs_enabled = not settings.is_production
    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant boundary for law firm practice data",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.state.connections = connections
    app.state.audit_sink = audit_sink
    if connections is not None and audit_sink is None:
        app.state.audit_sink = build_audit_sink(connections)

    # add_middleware wraps, so the last one added runs first:
    # request id -> principal -> request logging -> CORS -> routes
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or (DEV_CORS_ORIGINS if settings.is_development else []),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(PrincipalContextMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)
    app.state.tracing_enabled = setup_tracing(app)

    return app
