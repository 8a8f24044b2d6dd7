"""Ghost session routes for platform admins."""

from fastapi import APIRouter, status

from firmsync.api.dependencies import RequestMetaDep
from firmsync.core.auth.dependencies import PlatformAdmin
from firmsync.modules.ghost_sessions.schemas import GhostSessionResponse, GhostSessionStart
from firmsync.modules.ghost_sessions.services import GhostSessionSvc


router = APIRouter(prefix="/api/v1/admin/ghost-sessions", tags=["admin"])


@router.post(
    "",
    response_model=GhostSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a ghost session",
    description="Grants the calling admin time-boxed access to one firm.",
)
async def start_ghost_session(
    data: GhostSessionStart,
    admin: PlatformAdmin,
    service: GhostSessionSvc,
    meta: RequestMetaDep,
) -> GhostSessionResponse:
    ghost_session = await service.start(
        admin,
        target_firm_id=data.target_firm_id,
        purpose=data.purpose,
        access_level=data.access_level,
        duration_seconds=data.duration_seconds,
        meta=meta,
    )
    return GhostSessionResponse.model_validate(ghost_session)


@router.get(
    "",
    response_model=list[GhostSessionResponse],
    summary="List the caller's current ghost sessions",
)
async def list_ghost_sessions(
    admin: PlatformAdmin, service: GhostSessionSvc
) -> list[GhostSessionResponse]:
    return [GhostSessionResponse.model_validate(s) for s in await service.list_active(admin)]


@router.delete(
    "/{session_token}",
    response_model=GhostSessionResponse,
    summary="End a ghost session",
)
async def end_ghost_session(
    session_token: str,
    admin: PlatformAdmin,
    service: GhostSessionSvc,
    meta: RequestMetaDep,
) -> GhostSessionResponse:
    ghost_session = await service.end(session_token, admin, meta)
    return GhostSessionResponse.model_validate(ghost_session)
