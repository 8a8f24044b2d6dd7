"""Shared API dependencies."""

from collections.abc import AsyncGenerator
from typing import Annotated

from arq import ArqRedis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from firmsync.core.audit import AuditSink
from firmsync.core.jobs.registry import get_arq_pool
from firmsync.core.logging import get_client_ip
from firmsync.core.tenancy.connections import ConnectionManager
from firmsync.core.tenancy.context import RequestMeta


async def get_connection_manager(request: Request) -> ConnectionManager:
    """Return the connection manager created by the app lifespan."""
    return request.app.state.connections


Connections = Annotated[ConnectionManager, Depends(get_connection_manager)]


async def get_db(connections: Connections) -> AsyncGenerator[AsyncSession, None]:
    """Yield a central store session.

    Commits when the request succeeds and rolls back on error.
    """
    async with connections.central_session() as session:
        yield session


# Type alias for database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


async def get_audit_sink(request: Request) -> AuditSink:
    return request.app.state.audit_sink


AuditSinkDep = Annotated[AuditSink, Depends(get_audit_sink)]


async def get_job_queue() -> ArqRedis:
    """Return the arq pool used to enqueue background jobs."""
    return await get_arq_pool()


JobQueue = Annotated[ArqRedis, Depends(get_job_queue)]


async def get_request_meta(request: Request) -> RequestMeta:
    """Collect the request details copied into audit events."""
    return RequestMeta(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        url=str(request.url),
        request_id=getattr(request.state, "request_id", None),
    )


RequestMetaDep = Annotated[RequestMeta, Depends(get_request_meta)]
