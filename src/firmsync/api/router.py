"""Root router: probes plus the three feature routers.

Probes live outside ``/api`` so load balancers can reach them without
credentials. Readiness depends only on the central routing store; a
single unreachable tenant database must not take the whole service out
of rotation.
"""

from typing import Any

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from firmsync.api.dependencies import Connections
from firmsync.config import settings
from firmsync.core.tenancy.connections import ConnectionManager
from firmsync.modules.ghost_sessions.routes import router as ghost_sessions_router
from firmsync.modules.tenants.admin_routes import router as tenant_admin_router
from firmsync.modules.tenants.routes import router as tenant_router


logger = structlog.get_logger()


class HealthResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, Any]


async def readiness_checks(connections: ConnectionManager) -> tuple[bool, dict[str, Any]]:
    """Probe the central store and report how many tenant pools are open.

    Returns:
        Whether the service is ready, and the individual check results
    """
    try:
        await connections.ping_central()
    except Exception as e:
        logger.warning("readiness_central_failed", error_type=type(e).__name__)
        central = "unavailable"
    else:
        central = "ok"

    return central == "ok", {
        "central_database": central,
        "tenant_pools": len(connections.cache),
    }


health_router = APIRouter(tags=["health"])


@health_router.get(
    "/health/live",
    response_model=HealthResponse,
    summary="Liveness probe",
)
async def liveness() -> HealthResponse:
    return HealthResponse(status="alive")


@health_router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="503 while the central routing store is unreachable.",
)
async def readiness(connections: Connections) -> JSONResponse:
    ready, checks = await readiness_checks(connections)
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )


@health_router.get("/info", summary="Application info")
async def info() -> dict[str, Any]:
    return {
        "app": settings.app_name,
        "environment": settings.environment,
        "debug": settings.debug,
    }


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(tenant_router)
api_router.include_router(tenant_admin_router)
api_router.include_router(ghost_sessions_router)
